"""
Middleware components for the Volunteer Hub backend.

This module provides:
- UserContext: Dataclass representing the authenticated caller
- require_auth: FastAPI dependency for requiring a bearer token
- create_access_token: Helper to issue bearer tokens
"""

from backend.src.middleware.auth import UserContext, require_auth, create_access_token

__all__ = [
    "UserContext",
    "require_auth",
    "create_access_token",
]
