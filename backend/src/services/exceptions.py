"""
Custom exceptions for service layer.

Provides specific exception types for business logic errors
that can be translated to appropriate HTTP responses.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for service layer errors."""
    pass


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Any, message: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        self.message = message or f"{resource} {identifier} not found"
        super().__init__(self.message)


class PermissionDeniedError(ServiceError):
    """Raised when the caller is not allowed to act on a resource."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PreconditionFailedError(ServiceError):
    """Raised when a resource is not in a state that allows the operation.

    Examples: materializing an instance for a paused series, exceeding the
    instance cap, or bookmarking an event the caller already registered for.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConflictError(ServiceError):
    """Raised when an operation conflicts with existing state."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class SummaryError(ServiceError):
    """Raised when the AI summary endpoint fails or returns no content."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
