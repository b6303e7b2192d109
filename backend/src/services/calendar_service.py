"""
Calendar service for personal calendar views and bookmarks.

Builds the calendar of a user for a date range from:
- volunteer view: events the user registered for, plus bookmarked events
- organizer view: events the user created or organizes, plus bookmarked events

Recurring events are replaced by their virtual occurrences in the range
(services.calendar_projection) and every entry is tagged with a status
derived from the current time.

Bookmarks pin events that are not already on the calendar implicitly:
registered and organized events can be neither bookmarked nor unbookmarked.

Design:
- A recurring event whose anchor starts before the range still projects
  into it, so recurring events are selected when they start before the
  range end; other events must start inside the range
- The primary source wins over bookmarks on duplicates
- Attendance belongs to the stored event or series instance starting at
  an occurrence's start; other projected occurrences are not attended
- Entries failing a sanity check are dropped, never fatal
- Output is unique by id and sorted by (start, id)
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from backend.src.models import CalendarBookmark, Event, EventOrganizer, Registration
from backend.src.services.calendar_projection import process_recurring_events
from backend.src.services.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from backend.src.services.guid import GuidService
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

ROLE_VOLUNTEER = "volunteer"
ROLE_ORGANIZER = "organizer"
CALENDAR_ROLES = (ROLE_VOLUNTEER, ROLE_ORGANIZER)

STATUS_UPCOMING = "upcoming"
STATUS_ATTENDED = "attended"
STATUS_MISSED = "missed"
STATUS_CREATED = "created"


def derive_entry_status(
    end: datetime,
    now: datetime,
    role: str,
    is_creator: bool,
    is_manually_added: bool,
    has_attended: bool,
) -> str:
    """
    Derive the status of a calendar entry.

    - upcoming: the entry has not ended
    - created: organizer view, caller created the event, entry ended
    - missed: bookmarked entry that ended (attendance is only tracked for
      registrants and organizers)
    - attended / missed: ended entry, by the attendance flag
    """
    if now <= end:
        return STATUS_UPCOMING
    if role == ROLE_ORGANIZER and is_creator:
        return STATUS_CREATED
    if is_manually_added:
        return STATUS_MISSED
    return STATUS_ATTENDED if has_attended else STATUS_MISSED


def _person(user) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"guid": user.guid, "name": user.name, "username": user.username}


def _calendar_entry(event: Event) -> Dict[str, Any]:
    """Build the calendar entry of a stored event."""
    return {
        "id": event.guid,
        "title": event.title,
        "description": event.description,
        "location": event.location,
        "event_type": event.event_type,
        "start": event.start_datetime,
        "end": event.end_datetime,
        "organization": (
            {"guid": event.organization.guid, "name": event.organization.name}
            if event.organization else None
        ),
        "created_by": _person(event.created_by),
        "recurring_event": event.recurring_event,
        "recurring_type": event.recurring_type,
        "recurring_value": event.recurring_value,
        "recurring_series_id": event.series.guid if event.series else None,
        "recurring_pattern": event.recurring_pattern,
        "is_recurring_instance": event.is_recurring_instance,
        "original_event_id": None,
        "recurring_index": None,
    }


def _is_valid_entry(entry: Optional[Dict[str, Any]]) -> bool:
    return bool(
        entry
        and entry.get("id")
        and isinstance(entry.get("start"), datetime)
        and isinstance(entry.get("end"), datetime)
    )


class CalendarService:
    """
    Service for calendar views and calendar bookmarks.

    Usage:
        >>> service = CalendarService(db_session)
        >>> entries = service.get_calendar_events(
        ...     user_id=1,
        ...     start=datetime(2024, 1, 10),
        ...     end=datetime(2024, 1, 31),
        ...     role="volunteer",
        ... )
    """

    def __init__(self, db: Session):
        """
        Initialize calendar service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # =========================================================================
    # Lookups
    # =========================================================================

    def _get_event(self, guid: str) -> Event:
        if not GuidService.validate_guid(guid, "evt"):
            raise NotFoundError("Event", guid, "Event not found")

        event = (
            self.db.query(Event)
            .filter(Event.uuid == GuidService.parse_guid(guid, "evt"))
            .first()
        )
        if not event:
            raise NotFoundError("Event", guid, "Event not found")
        return event

    def _get_registration(self, event: Event, user_id: int) -> Optional[Registration]:
        return (
            self.db.query(Registration)
            .filter(Registration.event_id == event.id, Registration.volunteer_id == user_id)
            .first()
        )

    def _get_bookmark(self, event: Event, user_id: int) -> Optional[CalendarBookmark]:
        return (
            self.db.query(CalendarBookmark)
            .filter(CalendarBookmark.event_id == event.id, CalendarBookmark.user_id == user_id)
            .first()
        )

    # =========================================================================
    # Bookmarks
    # =========================================================================

    def get_bookmark_status(self, event_guid: str, user_id: int) -> Dict[str, bool]:
        """
        Get the bookmark status flags of an event for a user.

        Registered and organized events are always on the calendar; the
        bookmark row only matters for other events.

        Returns:
            Dict with is_registered, is_organizer_event, is_in_calendar,
            can_add_to_calendar, can_remove_from_calendar

        Raises:
            NotFoundError: If the event does not exist
        """
        event = self._get_event(event_guid)
        return self._status_flags(event, user_id)

    def _status_flags(self, event: Event, user_id: int) -> Dict[str, bool]:
        is_registered = self._get_registration(event, user_id) is not None
        is_organizer_event = event.is_organizer(user_id)
        implicit = is_registered or is_organizer_event

        is_bookmarked = False
        if not implicit:
            is_bookmarked = self._get_bookmark(event, user_id) is not None

        return {
            "is_registered": is_registered,
            "is_organizer_event": is_organizer_event,
            "is_in_calendar": implicit or is_bookmarked,
            "can_add_to_calendar": not implicit and not is_bookmarked,
            "can_remove_from_calendar": not implicit and is_bookmarked,
        }

    def _reject_implicit(self, event: Event, user_id: int, action: str) -> None:
        preposition = "to" if action == "add" else "from"
        if self._get_registration(event, user_id):
            raise PreconditionFailedError(
                f"Cannot {action} registered events {preposition} calendar. "
                "They are automatically included."
            )
        if event.is_organizer(user_id):
            raise PreconditionFailedError(
                f"Cannot {action} organizer events {preposition} calendar. "
                "They are automatically included."
            )

    def add_bookmark(self, event_guid: str, user_id: int) -> Dict[str, bool]:
        """
        Bookmark an event on the user's calendar.

        Raises:
            NotFoundError: Event missing
            PreconditionFailedError: Caller registered, organizes the event,
                or already bookmarked it
        """
        event = self._get_event(event_guid)
        self._reject_implicit(event, user_id, "add")

        if self._get_bookmark(event, user_id):
            raise PreconditionFailedError("Event is already in your calendar")

        self.db.add(CalendarBookmark(user_id=user_id, event_id=event.id))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise PreconditionFailedError("Event is already in your calendar")

        logger.info(
            "Event added to calendar",
            extra={"event_guid": event.guid, "user_id": user_id}
        )
        return self._status_flags(event, user_id)

    def remove_bookmark(self, event_guid: str, user_id: int) -> Dict[str, bool]:
        """
        Remove an event bookmark from the user's calendar.

        Raises:
            NotFoundError: Event missing, or no bookmark exists
            PreconditionFailedError: Caller registered for or organizes the event
        """
        event = self._get_event(event_guid)
        self._reject_implicit(event, user_id, "remove")

        bookmark = self._get_bookmark(event, user_id)
        if not bookmark:
            raise NotFoundError("Calendar bookmark", event_guid, "Event not found in your calendar")

        self.db.delete(bookmark)
        self.db.commit()

        logger.info(
            "Event removed from calendar",
            extra={"event_guid": event.guid, "user_id": user_id}
        )
        return self._status_flags(event, user_id)

    # =========================================================================
    # Calendar
    # =========================================================================

    @staticmethod
    def _window_filter(start: datetime, end: datetime):
        is_recurring = and_(
            Event.recurring_event.is_(True),
            Event.recurring_type.isnot(None),
            Event.recurring_value.isnot(None),
        )
        return or_(
            and_(is_recurring, Event.start_datetime <= end),
            and_(Event.start_datetime >= start, Event.start_datetime <= end),
        )

    def _event_query(self):
        return self.db.query(Event).options(
            joinedload(Event.organization),
            joinedload(Event.created_by),
            joinedload(Event.series),
        )

    def _bookmarked_events(
        self, user_id: int, start: datetime, end: datetime, exclude_ids: set
    ) -> List[Event]:
        events = (
            self._event_query()
            .join(CalendarBookmark, CalendarBookmark.event_id == Event.id)
            .filter(CalendarBookmark.user_id == user_id, self._window_filter(start, end))
            .order_by(Event.start_datetime, Event.id)
            .all()
        )
        return [event for event in events if event.id not in exclude_ids]

    def _volunteer_sources(
        self, user_id: int, start: datetime, end: datetime
    ) -> Tuple[List[Event], List[Event], Dict[int, bool]]:
        rows = (
            self.db.query(Registration.event_id, Registration.has_attended)
            .filter(Registration.volunteer_id == user_id)
            .all()
        )
        attended = {event_id: has_attended for event_id, has_attended in rows}

        primary = []
        if attended:
            primary = (
                self._event_query()
                .filter(Event.id.in_(list(attended)), self._window_filter(start, end))
                .order_by(Event.start_datetime, Event.id)
                .all()
            )
        return primary, self._bookmarked_events(user_id, start, end, {e.id for e in primary}), attended

    def _organizer_sources(
        self, user_id: int, start: datetime, end: datetime
    ) -> Tuple[List[Event], List[Event], Dict[int, bool]]:
        membership = and_(EventOrganizer.event_id == Event.id, EventOrganizer.user_id == user_id)
        primary = (
            self._event_query()
            .outerjoin(EventOrganizer, membership)
            .filter(
                or_(Event.created_by_user_id == user_id, EventOrganizer.id.isnot(None)),
                self._window_filter(start, end),
            )
            .order_by(Event.start_datetime, Event.id)
            .all()
        )

        attended = {}
        if primary:
            rows = (
                self.db.query(EventOrganizer.event_id, EventOrganizer.has_attended)
                .filter(
                    EventOrganizer.user_id == user_id,
                    EventOrganizer.event_id.in_([e.id for e in primary]),
                )
                .all()
            )
            attended = {event_id: has_attended for event_id, has_attended in rows}

        return primary, self._bookmarked_events(user_id, start, end, {e.id for e in primary}), attended

    def get_calendar_events(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        role: str = ROLE_VOLUNTEER,
    ) -> List[Dict[str, Any]]:
        """
        Build the calendar entries of a user for [start, end].

        Args:
            user_id: Caller's internal user ID
            start: Range start (naive UTC, inclusive)
            end: Range end (naive UTC, inclusive)
            role: "volunteer" or "organizer"

        Returns:
            Calendar entry dicts (see CalendarEntry schema), unique by id and
            sorted by (start, id)

        Raises:
            ValidationError: If the range or role is invalid
        """
        if role not in CALENDAR_ROLES:
            raise ValidationError(
                f"Invalid role '{role}'. Expected one of: {', '.join(CALENDAR_ROLES)}",
                field="role"
            )
        if start > end:
            raise ValidationError("start must not be after end", field="start")

        if role == ROLE_VOLUNTEER:
            primary, bookmarked, attended = self._volunteer_sources(user_id, start, end)
        else:
            primary, bookmarked, attended = self._organizer_sources(user_id, start, end)

        # Per base event: (is_primary, is_creator)
        context: Dict[str, Tuple[bool, bool]] = {}
        # Attendance per (series or event, start): a projected occurrence is
        # only attended when the stored instance at that start was
        attended_slots: Dict[Tuple[str, datetime], bool] = {}
        for event in primary:
            context[event.guid] = (True, event.created_by_user_id == user_id)
            slot = (event.series.guid if event.series else event.guid, event.start_datetime)
            attended_slots[slot] = bool(attended.get(event.id, False))
        for event in bookmarked:
            context[event.guid] = (False, event.created_by_user_id == user_id)

        entries = [_calendar_entry(event) for event in primary + bookmarked]
        processed = process_recurring_events(entries, start, end)

        now = datetime.utcnow()
        result = []
        seen = set()
        for entry in processed:
            if not _is_valid_entry(entry):
                logger.warning("Dropped malformed calendar entry", extra={"entry_id": (entry or {}).get("id")})
                continue
            if entry["id"] in seen:
                continue

            base_id = entry.get("original_event_id") or entry["id"]
            if base_id not in context:
                logger.warning("Dropped calendar entry without source", extra={"entry_id": entry["id"]})
                continue

            seen.add(entry["id"])
            is_primary, is_creator = context[base_id]
            slot = (entry.get("recurring_series_id") or base_id, entry["start"])
            has_attended = is_primary and attended_slots.get(slot, False)
            entry["is_creator"] = is_creator
            entry["has_attended"] = has_attended
            entry["is_manually_added"] = not is_primary
            entry["is_organizer_event"] = is_primary if role == ROLE_ORGANIZER else None
            entry["is_recurring"] = bool(entry.get("recurring_event") or entry.get("is_recurring_instance"))
            entry["status"] = derive_entry_status(
                entry["end"], now, role, is_creator, not is_primary, has_attended
            )
            result.append(entry)

        result.sort(key=lambda e: (e["start"], e["id"]))
        return result

    def get_calendar_stats(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        role: str = ROLE_VOLUNTEER,
    ) -> Dict[str, int]:
        """
        Count calendar entries per status for [start, end].

        Counts the same entries get_calendar_events returns.

        Returns:
            Dict with total, upcoming, attended, missed, created
        """
        stats = {
            "total": 0,
            STATUS_UPCOMING: 0,
            STATUS_ATTENDED: 0,
            STATUS_MISSED: 0,
            STATUS_CREATED: 0,
        }
        for entry in self.get_calendar_events(user_id, start, end, role):
            stats["total"] += 1
            stats[entry["status"]] += 1
        return stats

    def get_event_details(
        self, event_guid: str, user_id: int
    ) -> Tuple[Event, bool, bool, Optional[Registration]]:
        """
        Get an event with the caller's registration and organizer flags.

        Returns:
            Tuple of (event, is_registered, is_organizer, registration or None)

        Raises:
            NotFoundError: If the event does not exist
        """
        event = self._get_event(event_guid)
        registration = self._get_registration(event, user_id)
        return event, registration is not None, event.is_organizer(user_id), registration
