"""
EventOrganizer and SeriesOrganizer junction models.

EventOrganizer links users to the organizer team of a concrete event and
tracks whether the organizer attended. SeriesOrganizer holds the organizer
team template of a recurring series; it is copied onto each materialized
instance with has_attended reset to False.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from backend.src.models import Base


class EventOrganizer(Base):
    """
    Event organizer-team membership.

    Note: This is a junction table without its own GUID.

    Attributes:
        id: Primary key
        event_id: FK to events (CASCADE on delete)
        user_id: FK to users (CASCADE on delete)
        role: Team role ("creator", "organizer", ...)
        has_attended: Whether the organizer attended the event
        created_at: When the member was added

    Constraints:
        - Unique (event_id, user_id)
    """

    __tablename__ = "event_organizers"

    id = Column(Integer, primary_key=True, autoincrement=True)

    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    role = Column(String(50), default="organizer", nullable=False)
    has_attended = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    event = relationship("Event", back_populates="organizer_team")
    user = relationship("User", back_populates="organizer_roles")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_organizer"),
    )

    def __repr__(self) -> str:
        return (
            f"<EventOrganizer("
            f"event_id={self.event_id}, "
            f"user_id={self.user_id}, "
            f"role={self.role}"
            f")>"
        )


class SeriesOrganizer(Base):
    """
    Organizer-team template entry of a recurring series.

    Attributes:
        id: Primary key
        series_id: FK to recurring_series (CASCADE on delete)
        user_id: FK to users (CASCADE on delete)
        role: Team role copied onto each instance

    Constraints:
        - Unique (series_id, user_id)
    """

    __tablename__ = "series_organizers"

    id = Column(Integer, primary_key=True, autoincrement=True)

    series_id = Column(
        Integer,
        ForeignKey("recurring_series.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    role = Column(String(50), default="organizer", nullable=False)

    series = relationship("RecurringSeries", back_populates="organizer_team")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("series_id", "user_id", name="uq_series_organizer"),
    )

    def __repr__(self) -> str:
        return f"<SeriesOrganizer(series_id={self.series_id}, user_id={self.user_id})>"
