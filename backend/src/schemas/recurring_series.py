"""
Pydantic schemas for recurring series API request/response validation.

Every series endpoint answers with an envelope:
    {"success": bool, "message": str, "data": ...}
"""

import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from backend.src.schemas.event import EventResponse, OrganizationSummary, UserSummary
from backend.src.utils.formatting import format_utc


class SeriesStatusChoice(str, enum.Enum):
    """Lifecycle status accepted by the status endpoint."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ============================================================================
# Request Schemas
# ============================================================================


class SeriesStatusUpdate(BaseModel):
    """Schema for changing a series status."""

    status: SeriesStatusChoice = Field(..., description="New series status")

    model_config = {
        "json_schema_extra": {"example": {"status": "paused"}}
    }


# ============================================================================
# Response Schemas
# ============================================================================


class SeriesOrganizerResponse(BaseModel):
    """Organizer team template entry."""

    user: UserSummary
    role: str

    model_config = {"from_attributes": True}


class RecurringSeriesResponse(BaseModel):
    """
    Schema for recurring series API responses.

    Includes the recurrence rule, template summary, and counters.
    """

    guid: str = Field(..., description="Series GUID (ser_xxx)")
    title: str
    description: Optional[str]
    location: Optional[str]
    event_type: Optional[str]

    recurring_type: str
    recurring_value: str
    recurring_pattern: str
    start_date: datetime
    end_date: Optional[datetime]
    max_instances: Optional[int]
    status: str

    organization: Optional[OrganizationSummary]
    created_by: Optional[UserSummary]
    organizer_team: List[SeriesOrganizerResponse] = Field(default_factory=list)

    current_instance_number: int
    total_instances_created: int
    total_registrations: int
    total_attendances: int
    average_attendance: float

    created_at: datetime
    updated_at: datetime

    @field_serializer("start_date", "end_date", "created_at", "updated_at")
    @classmethod
    def serialize_datetime_utc(cls, v: Optional[datetime]) -> Optional[str]:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return format_utc(v)

    model_config = {"from_attributes": True}


class SeriesStats(BaseModel):
    """Recomputed series statistics."""

    total_instances: int
    completed_instances: int
    upcoming_instances: int
    total_registrations: int
    total_attendances: int
    average_attendance: float


class SeriesDetailData(BaseModel):
    """Series with its instances."""

    series: RecurringSeriesResponse
    instances: List[EventResponse]


class SeriesStatsData(SeriesStats):
    """Statistics plus the instances they were computed from."""

    instances: List[EventResponse]


class SeriesStatusData(BaseModel):
    """Result of a status change."""

    series: RecurringSeriesResponse
    updated_instances: int = Field(..., description="Future instances whose status changed")


class SeriesEnvelope(BaseModel):
    """Envelope carrying one series (or none, e.g. after a cancel)."""

    success: bool = True
    message: str
    data: Optional[RecurringSeriesResponse] = None


class SeriesListResponse(BaseModel):
    """Envelope for the caller's series list."""

    success: bool = True
    message: str
    data: List[RecurringSeriesResponse]


class SeriesDetailResponse(BaseModel):
    """Envelope for series details."""

    success: bool = True
    message: str
    data: SeriesDetailData


class SeriesStatsResponse(BaseModel):
    """Envelope for series statistics."""

    success: bool = True
    message: str
    data: SeriesStatsData


class SeriesStatusResponse(BaseModel):
    """Envelope for a status change."""

    success: bool = True
    message: str
    data: SeriesStatusData


class NextInstanceResponse(BaseModel):
    """Envelope for a materialized instance."""

    success: bool = True
    message: str
    data: EventResponse
