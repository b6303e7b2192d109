"""
Pydantic schemas for event API request/response validation.

Provides data validation and serialization for:
- Event creation requests (standalone and recurring)
- Event API responses
- Event completion, registration, and attendance

Design:
- A recurring event creates its RecurringSeries and becomes instance #1
- Incoming datetimes are normalized to naive UTC; outgoing datetimes are
  serialized with a "Z" suffix
- GUIDs are exposed, never internal IDs
"""

import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from backend.src.services.recurrence import validate_recurrence_anchor
from backend.src.utils.formatting import format_utc, to_naive_utc


# ============================================================================
# Enums
# ============================================================================


class RecurringTypeChoice(str, enum.Enum):
    """Recurrence kind accepted by the API."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# ============================================================================
# Request Schemas
# ============================================================================


class EventCreate(BaseModel):
    """
    Schema for creating an event.

    Required:
        title: Event title
        organization_guid: Hosting organization GUID (org_xxx)
        start_datetime: Start of the event
        end_datetime: End of the event (after start)

    Recurrence (optional):
        recurring_event: Create a recurring series from this event
        recurring_type: weekly or monthly (required when recurring)
        recurring_value: Weekday name or day of month 1-31 (required when recurring)
        series_end_date: No instance is materialized at or after this time
        series_max_instances: Instance cap for the series

    The remaining fields form the event template copied onto every
    instance of a recurring series.
    """

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None)
    organization_guid: str = Field(..., description="Organization GUID (org_xxx)")

    start_datetime: datetime
    end_datetime: datetime

    location: Optional[str] = Field(default=None, max_length=500)
    map_address: Optional[str] = Field(default=None, max_length=500)
    map_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    map_lng: Optional[float] = Field(default=None, ge=-180, le=180)

    event_type: Optional[str] = Field(default=None, max_length=100)
    max_volunteers: Optional[int] = Field(default=None, ge=1)
    unlimited_volunteers: bool = Field(default=False)
    instructions: Optional[str] = Field(default=None)
    group_registration: bool = Field(default=False)
    equipment_needed: List[str] = Field(default_factory=list)

    water_provided: bool = Field(default=False)
    medical_support: bool = Field(default=False)
    age_group: Optional[str] = Field(default=None, max_length=100)
    precautions: Optional[str] = Field(default=None)
    public_transport: Optional[str] = Field(default=None)
    contact_person: Optional[str] = Field(default=None, max_length=255)

    organizer_guids: List[str] = Field(
        default_factory=list,
        description="Additional organizer team members (usr_xxx)"
    )

    recurring_event: bool = Field(default=False)
    recurring_type: Optional[RecurringTypeChoice] = Field(default=None)
    recurring_value: Optional[str] = Field(default=None, max_length=20)
    series_end_date: Optional[datetime] = Field(default=None)
    series_max_instances: Optional[int] = Field(default=None, ge=1)

    @field_validator("title")
    @classmethod
    def validate_title_not_whitespace(cls, v: str) -> str:
        """Ensure title is not just whitespace."""
        if not v.strip():
            raise ValueError("Title cannot be empty or whitespace")
        return v.strip()

    @field_validator("start_datetime", "end_datetime", "series_end_date")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store datetimes as naive UTC."""
        return to_naive_utc(v)

    @model_validator(mode="after")
    def validate_schedule(self) -> "EventCreate":
        """Check the time range and the recurrence rule."""
        if self.end_datetime <= self.start_datetime:
            raise ValueError("end_datetime must be after start_datetime")

        if not self.recurring_event:
            self.recurring_type = None
            self.recurring_value = None
            self.series_end_date = None
            self.series_max_instances = None
            return self

        if self.recurring_type is None or not self.recurring_value:
            raise ValueError("recurring_type and recurring_value are required for recurring events")

        # Normalizes "monday" -> "Monday" and "05" -> "5"
        self.recurring_value = validate_recurrence_anchor(
            self.start_datetime, self.recurring_type.value, self.recurring_value
        )
        return self

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Beach Cleanup",
                "organization_guid": "org_01hgw2bbg0000000000000001",
                "start_datetime": "2024-01-01T09:00:00Z",
                "end_datetime": "2024-01-01T11:00:00Z",
                "location": "Juhu Beach",
                "event_type": "beach cleanup",
                "max_volunteers": 40,
                "equipment_needed": ["gloves", "bags"],
                "recurring_event": True,
                "recurring_type": "weekly",
                "recurring_value": "Monday",
            }
        }
    }


class AttendanceUpdate(BaseModel):
    """Schema for marking a volunteer's attendance."""

    has_attended: bool = Field(..., description="Whether the volunteer attended")


# ============================================================================
# Response Schemas
# ============================================================================


class UserSummary(BaseModel):
    """Minimal user info for embedding in responses."""

    guid: str = Field(..., description="User GUID (usr_xxx)")
    name: str
    username: str

    model_config = {"from_attributes": True}


class OrganizationSummary(BaseModel):
    """Minimal organization info for embedding in responses."""

    guid: str = Field(..., description="Organization GUID (org_xxx)")
    name: str

    model_config = {"from_attributes": True}


class OrganizerMemberResponse(BaseModel):
    """Organizer team member of an event."""

    user: UserSummary
    role: str
    has_attended: bool

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    """
    Schema for event API responses.

    Includes template fields, schedule, recurrence metadata, and the
    organizer team.
    """

    guid: str = Field(..., description="Event GUID (evt_xxx)")
    title: str
    description: Optional[str]

    start_datetime: datetime
    end_datetime: datetime

    location: Optional[str]
    map_address: Optional[str]
    map_lat: Optional[float]
    map_lng: Optional[float]
    event_type: Optional[str]
    max_volunteers: Optional[int]
    unlimited_volunteers: bool
    instructions: Optional[str]
    group_registration: bool
    equipment_needed: Optional[List[str]]

    water_provided: bool
    medical_support: bool
    age_group: Optional[str]
    precautions: Optional[str]
    public_transport: Optional[str]
    contact_person: Optional[str]

    summary: Optional[str]

    organization: Optional[OrganizationSummary]
    created_by: Optional[UserSummary]
    organizer_team: List[OrganizerMemberResponse] = Field(default_factory=list)

    # Recurrence
    recurring_event: bool
    recurring_type: Optional[str]
    recurring_value: Optional[str]
    recurring_pattern: Optional[str]
    series_guid: Optional[str] = Field(default=None, description="Series GUID if part of a series")
    recurring_instance_number: Optional[int]
    is_recurring_instance: bool
    recurring_status: Optional[str]
    next_recurring_date: Optional[datetime]

    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @field_serializer(
        "start_datetime", "end_datetime", "next_recurring_date",
        "completed_at", "created_at", "updated_at"
    )
    @classmethod
    def serialize_datetime_utc(cls, v: Optional[datetime]) -> Optional[str]:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return format_utc(v)

    model_config = {"from_attributes": True}


class EventEnvelope(BaseModel):
    """Envelope for single-event responses."""

    success: bool = True
    message: str
    data: EventResponse


class EventCompletionData(BaseModel):
    """Result of completing an event."""

    event: EventResponse
    next_instance: Optional[EventResponse] = None
    series_status: Optional[str] = None


class EventCompletionResponse(BaseModel):
    """Envelope for event completion."""

    success: bool = True
    message: str
    data: EventCompletionData


class RegistrationResponse(BaseModel):
    """Volunteer registration."""

    event_guid: str
    volunteer: UserSummary
    has_attended: bool
    registered_at: datetime

    @field_serializer("registered_at")
    @classmethod
    def serialize_datetime_utc(cls, v: datetime) -> str:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return format_utc(v)


class RegistrationEnvelope(BaseModel):
    """Envelope for registration responses."""

    success: bool = True
    message: str
    data: RegistrationResponse
