"""
Service layer for business logic.

This module exports all service classes for use in API endpoints.
"""

from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
    ConflictError,
    ValidationError,
    SummaryError,
)
from backend.src.services.recurring_series_service import RecurringSeriesService
from backend.src.services.calendar_service import CalendarService
from backend.src.services.summary_service import SummaryService, SummaryDispatcher
from backend.src.services.user_service import UserService

__all__ = [
    "ServiceError",
    "NotFoundError",
    "PermissionDeniedError",
    "PreconditionFailedError",
    "ConflictError",
    "ValidationError",
    "SummaryError",
    "RecurringSeriesService",
    "CalendarService",
    "SummaryService",
    "SummaryDispatcher",
    "UserService",
]
