"""
Utility modules for the Volunteer Hub backend.

This package contains shared utilities used across the application:
- logging_config: Named application loggers
- formatting: Naive-UTC datetime normalization and serialization
"""

from backend.src.utils.formatting import format_utc, to_naive_utc

__all__ = [
    "format_utc",
    "to_naive_utc",
]
