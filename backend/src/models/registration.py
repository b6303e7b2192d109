"""
Registration model linking volunteers to events.

A registration places the event on the volunteer's calendar automatically;
has_attended is set by the organizer attendance workflow.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from backend.src.models import Base


class Registration(Base):
    """
    Volunteer registration for an event.

    Attributes:
        id: Primary key
        event_id: FK to events (CASCADE on delete)
        volunteer_id: FK to users (CASCADE on delete)
        has_attended: Whether attendance was recorded
        registered_at: Registration timestamp

    Constraints:
        - Unique (event_id, volunteer_id)
    """

    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)

    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    volunteer_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    has_attended = Column(Boolean, default=False, nullable=False)
    registered_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    event = relationship("Event", back_populates="registrations")
    volunteer = relationship("User", back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("event_id", "volunteer_id", name="uq_registration_event_volunteer"),
    )

    def __repr__(self) -> str:
        return (
            f"<Registration("
            f"event_id={self.event_id}, "
            f"volunteer_id={self.volunteer_id}, "
            f"has_attended={self.has_attended}"
            f")>"
        )
