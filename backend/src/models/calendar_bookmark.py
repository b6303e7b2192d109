"""
CalendarBookmark model for personal calendar entries.

A bookmark pins an event to a user's calendar when the user is neither a
registrant nor on the event's organizer team (those events are on the
calendar implicitly).
"""

from datetime import datetime

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.src.models import Base


class CalendarBookmark(Base):
    """
    User calendar bookmark.

    Attributes:
        id: Primary key
        user_id: FK to users (CASCADE on delete)
        event_id: FK to events (CASCADE on delete)
        added_at: When the bookmark was added

    Constraints:
        - Unique (user_id, event_id): a user can bookmark an event once
    """

    __tablename__ = "calendar_bookmarks"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    added_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="calendar_bookmarks")
    event = relationship("Event", back_populates="calendar_bookmarks")

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_calendar_bookmark_user_event"),
    )

    def __repr__(self) -> str:
        return f"<CalendarBookmark(user_id={self.user_id}, event_id={self.event_id})>"
