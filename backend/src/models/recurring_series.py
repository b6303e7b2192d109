"""
RecurringSeries model for weekly and monthly recurring events.

A RecurringSeries stores a recurrence rule plus the template attributes that
are stamped onto every materialized Event instance.

Design Rationale:
- Counters (current_instance_number, total_instances_created) are updated in
  the same transaction as the instance insert
- Aggregate statistics are a cache; RecurringSeriesService.update_series_statistics
  recomputes them from the instances and is the source of truth
- Deleting a series is a soft delete (status -> cancelled)
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Float, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin, EventTemplateMixin


class SeriesStatus(enum.Enum):
    """Lifecycle status of a recurring series."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecurringSeries(Base, GuidMixin, EventTemplateMixin):
    """
    Recurring event series model.

    Attributes:
        id: Primary key (internal, never exposed)
        guid: GUID string property (ser_xxx, inherited from GuidMixin)
        (template columns inherited from EventTemplateMixin)

        Rule:
            recurring_type: "weekly" or "monthly"
            recurring_value: Weekday name ("Monday") or day of month ("15")
            start_date: Start of the series (start of instance #1)
            end_date: Optional end bound (NULL = no end)
            max_instances: Optional instance cap (NULL = unlimited)
            status: active, paused, completed, cancelled

        Ownership:
            created_by_user_id: Owner (only the owner may manage the series)
            organization_id: Hosting organization

        Counters:
            current_instance_number: Number of the latest instance
            total_instances_created: Number of materialized instances
            total_registrations: Registrations across all instances
            total_attendances: Attended registrations on ended instances
            average_attendance: total_attendances / completed instances

    Relationships:
        instances: Event rows of the series
        organizer_team: SeriesOrganizer template rows
        created_by: Owner
        organization: Hosting organization

    Indexes:
        - (created_by_user_id, status)
        - (organization_id, status)
        - (status, start_date)
    """

    __tablename__ = "recurring_series"

    GUID_PREFIX = "ser"

    id = Column(Integer, primary_key=True, autoincrement=True)

    recurring_type = Column(String(20), nullable=False)
    recurring_value = Column(String(20), nullable=False)

    created_by_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="RESTRICT"),
        nullable=False
    )

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    max_instances = Column(Integer, nullable=True)

    status = Column(String(20), default=SeriesStatus.ACTIVE.value, nullable=False)

    current_instance_number = Column(Integer, default=1, nullable=False)
    total_instances_created = Column(Integer, default=0, nullable=False)

    total_registrations = Column(Integer, default=0, nullable=False)
    total_attendances = Column(Integer, default=0, nullable=False)
    average_attendance = Column(Float, default=0.0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    instances = relationship(
        "Event",
        back_populates="series",
        order_by="Event.recurring_instance_number",
    )
    organizer_team = relationship(
        "SeriesOrganizer",
        back_populates="series",
        cascade="all, delete-orphan",
        order_by="SeriesOrganizer.id",
    )
    created_by = relationship("User", foreign_keys=[created_by_user_id])
    organization = relationship("Organization", back_populates="recurring_series")

    __table_args__ = (
        Index("idx_series_creator_status", "created_by_user_id", "status"),
        Index("idx_series_org_status", "organization_id", "status"),
        Index("idx_series_status_start", "status", "start_date"),
    )

    @property
    def recurring_pattern(self) -> str:
        """Human-readable pattern, e.g. "monthly - 15"."""
        return f"{self.recurring_type} - {self.recurring_value}"

    def __repr__(self) -> str:
        return (
            f"<RecurringSeries("
            f"id={self.id}, "
            f"title='{self.title}', "
            f"pattern='{self.recurring_pattern}', "
            f"status={self.status}"
            f")>"
        )

    def __str__(self) -> str:
        return f"{self.title} ({self.recurring_pattern})"
