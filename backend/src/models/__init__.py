"""
SQLAlchemy models for the Volunteer Hub backend.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# All models inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
# This is required for Alembic autogenerate to detect models
from backend.src.models.user import User
from backend.src.models.organization import Organization
from backend.src.models.event import Event, RecurringType, RecurringStatus
from backend.src.models.event_organizer import EventOrganizer, SeriesOrganizer
from backend.src.models.recurring_series import RecurringSeries, SeriesStatus
from backend.src.models.registration import Registration
from backend.src.models.calendar_bookmark import CalendarBookmark

__all__ = [
    "Base",
    "User",
    "Organization",
    "Event",
    "RecurringType",
    "RecurringStatus",
    "EventOrganizer",
    "SeriesOrganizer",
    "RecurringSeries",
    "SeriesStatus",
    "Registration",
    "CalendarBookmark",
]
