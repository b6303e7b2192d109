"""
Event model for volunteer events.

Events represent concrete, persisted occurrences. They can be standalone or
an instance of a RecurringSeries (including the first event that defined the
series). Recurrence metadata (recurring_type/recurring_value) is kept on each
instance so the calendar can project virtual occurrences from it.

Design Rationale:
- Template attributes are copied from the series at creation time
- (recurring_series_id, recurring_instance_number) is unique, so two
  concurrent materializations cannot produce the same instance number
- Events are never hard-deleted by the recurrence workflow; recurring_status
  carries series pause/cancel state onto future instances
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin, EventTemplateMixin


class RecurringType(enum.Enum):
    """Recurrence kind."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecurringStatus(enum.Enum):
    """Per-instance recurrence status (mirrors SeriesStatus)."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Event(Base, GuidMixin, EventTemplateMixin):
    """
    Volunteer event model.

    Attributes:
        id: Primary key (internal, never exposed)
        guid: GUID string property (evt_xxx, inherited from GuidMixin)
        (template columns inherited from EventTemplateMixin)

        Ownership:
            created_by_user_id: FK to creating user
            organization_id: FK to hosting organization

        Time Fields:
            start_datetime: Start (naive UTC)
            end_datetime: End (naive UTC)

        Recurrence Fields:
            recurring_event: Whether the event carries a recurrence rule
            recurring_type: "weekly" or "monthly"
            recurring_value: Weekday name (weekly) or day-of-month (monthly)
            recurring_series_id: FK to RecurringSeries
            recurring_instance_number: 1-based position in the series
            is_recurring_instance: True for every event linked to a series
            recurring_status: Instance-level series status
            next_recurring_date: Next computed occurrence (set on instance #1)

        summary: AI-generated summary (NULL until generated)
        completed_at: When an organizer marked the event completed

    Relationships:
        series: Parent RecurringSeries
        created_by: Creating user
        organization: Hosting organization
        organizer_team: EventOrganizer rows (CASCADE on delete)
        registrations: Volunteer registrations (CASCADE on delete)
        calendar_bookmarks: Personal calendar bookmarks (CASCADE on delete)
    """

    __tablename__ = "events"

    GUID_PREFIX = "evt"

    id = Column(Integer, primary_key=True, autoincrement=True)

    created_by_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    start_datetime = Column(DateTime, nullable=False, index=True)
    end_datetime = Column(DateTime, nullable=False)

    # Recurrence
    recurring_event = Column(Boolean, default=False, nullable=False)
    recurring_type = Column(String(20), nullable=True)
    recurring_value = Column(String(20), nullable=True)
    recurring_series_id = Column(
        Integer,
        ForeignKey("recurring_series.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    recurring_instance_number = Column(Integer, nullable=True)
    is_recurring_instance = Column(Boolean, default=False, nullable=False)
    recurring_status = Column(String(20), nullable=True)
    next_recurring_date = Column(DateTime, nullable=True)

    summary = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    series = relationship("RecurringSeries", back_populates="instances")
    created_by = relationship("User", foreign_keys=[created_by_user_id])
    organization = relationship("Organization", back_populates="events")
    organizer_team = relationship(
        "EventOrganizer",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventOrganizer.id",
    )
    registrations = relationship(
        "Registration",
        back_populates="event",
        cascade="all, delete-orphan",
    )
    calendar_bookmarks = relationship(
        "CalendarBookmark",
        back_populates="event",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint(
            "recurring_series_id",
            "recurring_instance_number",
            name="uq_event_series_instance_number"
        ),
        Index("idx_events_creator_start", "created_by_user_id", "start_datetime"),
    )

    @property
    def has_full_recurrence(self) -> bool:
        """True when the event carries a complete recurrence rule."""
        return bool(self.recurring_event and self.recurring_type and self.recurring_value)

    @property
    def recurring_pattern(self) -> Optional[str]:
        """Human-readable pattern, e.g. "weekly - Monday"."""
        if not self.has_full_recurrence:
            return None
        return f"{self.recurring_type} - {self.recurring_value}"

    def is_organizer(self, user_id: int) -> bool:
        """Check whether a user is the creator or on the organizer team."""
        if self.created_by_user_id == user_id:
            return True
        return any(member.user_id == user_id for member in self.organizer_team)

    def __repr__(self) -> str:
        return (
            f"<Event("
            f"id={self.id}, "
            f"title='{self.title}', "
            f"start={self.start_datetime}, "
            f"instance={self.recurring_instance_number}"
            f")>"
        )
