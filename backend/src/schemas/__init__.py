"""
Pydantic schemas for API request/response validation.

This module exports all schema classes for use in API endpoints.
"""

from backend.src.schemas.event import (
    RecurringTypeChoice,
    EventCreate,
    AttendanceUpdate,
    UserSummary,
    OrganizationSummary,
    EventResponse,
    EventEnvelope,
    EventCompletionResponse,
    RegistrationResponse,
    RegistrationEnvelope,
)
from backend.src.schemas.recurring_series import (
    SeriesStatusChoice,
    SeriesStatusUpdate,
    RecurringSeriesResponse,
    SeriesStats,
    SeriesListResponse,
    SeriesDetailResponse,
    SeriesStatsResponse,
    SeriesStatusResponse,
    NextInstanceResponse,
)
from backend.src.schemas.calendar import (
    CalendarRole,
    CalendarEntryStatus,
    CalendarEntry,
    CalendarEventsResponse,
    CalendarStatus,
    CalendarStats,
    CalendarEventDetails,
)

__all__ = [
    # Event schemas
    "RecurringTypeChoice",
    "EventCreate",
    "AttendanceUpdate",
    "UserSummary",
    "OrganizationSummary",
    "EventResponse",
    "EventEnvelope",
    "EventCompletionResponse",
    "RegistrationResponse",
    "RegistrationEnvelope",
    # Recurring series schemas
    "SeriesStatusChoice",
    "SeriesStatusUpdate",
    "RecurringSeriesResponse",
    "SeriesStats",
    "SeriesListResponse",
    "SeriesDetailResponse",
    "SeriesStatsResponse",
    "SeriesStatusResponse",
    "NextInstanceResponse",
    # Calendar schemas
    "CalendarRole",
    "CalendarEntryStatus",
    "CalendarEntry",
    "CalendarEventsResponse",
    "CalendarStatus",
    "CalendarStats",
    "CalendarEventDetails",
]
