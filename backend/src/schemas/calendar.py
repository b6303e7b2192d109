"""
Pydantic schemas for calendar API responses.

Calendar entries are projected per request: a stored event or a virtual
occurrence of a recurring event (id "<event guid>_recurring_<index>").
"""

import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from backend.src.schemas.event import EventResponse, OrganizationSummary, UserSummary
from backend.src.utils.formatting import format_utc


class CalendarRole(str, enum.Enum):
    """Viewpoint of a calendar query."""
    VOLUNTEER = "volunteer"
    ORGANIZER = "organizer"


class CalendarEntryStatus(str, enum.Enum):
    """Status of a calendar entry relative to the current time."""
    UPCOMING = "upcoming"
    ATTENDED = "attended"
    MISSED = "missed"
    CREATED = "created"


# ============================================================================
# Response Schemas
# ============================================================================


class CalendarEntry(BaseModel):
    """
    One displayable calendar entry.

    Attributes:
        id: Event GUID, or "<event guid>_recurring_<index>" for a virtual occurrence
        status: upcoming, attended, missed, or created (organizer view)
        is_manually_added: Entry comes from a bookmark
        original_event_id: Base event GUID for virtual occurrences
        recurring_index: 0-based index among emitted occurrences
    """

    id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    event_type: Optional[str] = None
    start: datetime
    end: datetime

    organization: Optional[OrganizationSummary] = None
    created_by: Optional[UserSummary] = None

    status: CalendarEntryStatus
    is_creator: bool
    has_attended: bool
    is_manually_added: bool
    is_organizer_event: Optional[bool] = None

    is_recurring: bool
    is_recurring_instance: bool = False
    recurring_pattern: Optional[str] = None
    recurring_series_id: Optional[str] = Field(default=None, description="Series GUID")
    original_event_id: Optional[str] = None
    recurring_index: Optional[int] = None

    @field_serializer("start", "end")
    @classmethod
    def serialize_datetime_utc(cls, v: datetime) -> str:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return format_utc(v)


class CalendarEventsResponse(BaseModel):
    """Envelope for calendar entries."""

    success: bool = True
    message: str
    data: List[CalendarEntry]


class CalendarStatus(BaseModel):
    """Bookmark status of an event for the caller."""

    is_registered: bool
    is_organizer_event: bool
    is_in_calendar: bool
    can_add_to_calendar: bool
    can_remove_from_calendar: bool


class CalendarStatusResponse(BaseModel):
    """Envelope for bookmark status."""

    success: bool = True
    message: str
    data: CalendarStatus


class CalendarActionResponse(BaseModel):
    """Envelope for bookmark add/remove."""

    success: bool = True
    message: str
    data: Optional[CalendarStatus] = None


class CalendarStats(BaseModel):
    """Entry counts per status for a calendar range."""

    total: int = 0
    upcoming: int = 0
    attended: int = 0
    missed: int = 0
    created: int = 0


class CalendarStatsResponse(BaseModel):
    """Envelope for calendar statistics."""

    success: bool = True
    message: str
    data: CalendarStats


class RegistrationDetails(BaseModel):
    """Caller's registration for an event."""

    has_attended: bool
    registered_at: datetime

    @field_serializer("registered_at")
    @classmethod
    def serialize_datetime_utc(cls, v: datetime) -> str:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return format_utc(v)

    model_config = {"from_attributes": True}


class CalendarEventDetails(BaseModel):
    """Event with caller-specific flags."""

    event: EventResponse
    is_registered: bool
    is_organizer: bool
    registration: Optional[RegistrationDetails] = None


class CalendarEventDetailsResponse(BaseModel):
    """Envelope for calendar event details."""

    success: bool = True
    message: str
    data: CalendarEventDetails
