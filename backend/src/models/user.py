"""
User model for volunteers and organizers.

Users own recurring series, register for events as volunteers, serve on
event organizer teams, and keep personal calendar bookmarks. Login and
credential management live outside this backend; a user is identified
by the GUID carried in the bearer token.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class User(Base, GuidMixin):
    """
    Platform user.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (usr_xxx, inherited from GuidMixin)
        name: Display name
        username: Unique handle
        email: Unique email address
        is_active: Inactive users are rejected by authentication
        created_at: Creation timestamp

    Relationships:
        registrations: Events this user registered for as a volunteer
        organizer_roles: Organizer-team memberships
        calendar_bookmarks: Events manually pinned to the user's calendar
    """

    __tablename__ = "users"

    GUID_PREFIX = "usr"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(255), nullable=False)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    registrations = relationship(
        "Registration",
        back_populates="volunteer",
        cascade="all, delete-orphan",
    )
    organizer_roles = relationship(
        "EventOrganizer",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    calendar_bookmarks = relationship(
        "CalendarBookmark",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
