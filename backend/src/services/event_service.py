"""
Event service for managing volunteer events.

Provides business logic for creating and retrieving events, completing
events (which drives automatic materialization of recurring series),
volunteer registration, and attendance marking.

Design:
- Creating a recurring event also creates its RecurringSeries in the same
  transaction; the event becomes instance #1
- Completing an ended instance materializes the next one when the series
  policy (should_create_next_instance) allows it, then recomputes the
  series statistics
- Registering removes any calendar bookmark the volunteer had on the event,
  since registered events are always on the calendar
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from backend.src.models import (
    CalendarBookmark,
    Event,
    EventOrganizer,
    Organization,
    Registration,
)
from backend.src.schemas.event import EventCreate
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
)
from backend.src.services.guid import GuidService
from backend.src.services.recurrence import should_create_next_instance
from backend.src.services.recurring_series_service import RecurringSeriesService
from backend.src.services.summary_service import SummaryDispatcher
from backend.src.services.user_service import UserService
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


def build_event_response(event: Event) -> Dict[str, Any]:
    """
    Build the EventResponse payload for an event.

    Args:
        event: Event with relationships loadable

    Returns:
        Dict suitable for EventResponse(**payload)
    """
    payload = {
        column: getattr(event, column)
        for column in (
            "guid", "title", "description", "start_datetime", "end_datetime",
            "location", "map_address", "map_lat", "map_lng", "event_type",
            "max_volunteers", "unlimited_volunteers", "instructions",
            "group_registration", "equipment_needed", "water_provided",
            "medical_support", "age_group", "precautions", "public_transport",
            "contact_person", "summary", "recurring_event", "recurring_type",
            "recurring_value", "recurring_pattern", "recurring_instance_number",
            "is_recurring_instance", "recurring_status", "next_recurring_date",
            "completed_at", "created_at", "updated_at",
        )
    }
    payload["organization"] = event.organization
    payload["created_by"] = event.created_by
    payload["organizer_team"] = list(event.organizer_team)
    payload["series_guid"] = event.series.guid if event.series else None
    return payload


class EventService:
    """
    Service for managing volunteer events.

    Usage:
        >>> service = EventService(db_session, dispatcher)
        >>> event = service.create(user_id=1, data=EventCreate(...))
        >>> event.guid
        'evt_01hgw2bbg...'
    """

    def __init__(self, db: Session, dispatcher: Optional[SummaryDispatcher] = None):
        """
        Initialize event service.

        Args:
            db: SQLAlchemy database session
            dispatcher: Schedules AI summaries for new events
        """
        self.db = db
        self.dispatcher = dispatcher or SummaryDispatcher()
        self.series_service = RecurringSeriesService(db, self.dispatcher)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_by_guid(self, guid: str) -> Event:
        """
        Get an event by GUID.

        Args:
            guid: Event GUID (evt_xxx format)

        Returns:
            Event instance with relationships loaded

        Raises:
            NotFoundError: If event not found
        """
        if not GuidService.validate_guid(guid, "evt"):
            raise NotFoundError("Event", guid, "Event not found")

        try:
            uuid_value = GuidService.parse_guid(guid, "evt")
        except ValueError:
            raise NotFoundError("Event", guid, "Event not found")

        event = (
            self.db.query(Event)
            .options(
                joinedload(Event.organization),
                joinedload(Event.created_by),
                joinedload(Event.series),
            )
            .filter(Event.uuid == uuid_value)
            .first()
        )
        if not event:
            raise NotFoundError("Event", guid, "Event not found")

        return event

    def get_registration(self, event: Event, user_id: int) -> Optional[Registration]:
        """Get a user's registration for an event, if any."""
        return (
            self.db.query(Registration)
            .filter(Registration.event_id == event.id, Registration.volunteer_id == user_id)
            .first()
        )

    # =========================================================================
    # Creation
    # =========================================================================

    def create(self, user_id: int, data: EventCreate) -> Event:
        """
        Create an event, and its series when it is recurring.

        The creator joins the organizer team with role "creator"; users in
        data.organizer_guids join with role "organizer".

        Args:
            user_id: Creator's internal user ID
            data: Validated creation request

        Returns:
            Created Event

        Raises:
            NotFoundError: If the organization or an organizer does not exist
            ValidationError: If the series bounds are invalid
        """
        organization = self._get_organization(data.organization_guid)

        organizer_ids: List[int] = []
        user_service = UserService(self.db)
        for guid in data.organizer_guids:
            member = user_service.get_by_guid(guid)
            if member.id != user_id and member.id not in organizer_ids:
                organizer_ids.append(member.id)

        event = Event(
            title=data.title,
            description=data.description,
            location=data.location,
            map_address=data.map_address,
            map_lat=data.map_lat,
            map_lng=data.map_lng,
            event_type=data.event_type,
            max_volunteers=None if data.unlimited_volunteers else data.max_volunteers,
            unlimited_volunteers=data.unlimited_volunteers,
            instructions=data.instructions,
            group_registration=data.group_registration,
            equipment_needed=list(data.equipment_needed),
            water_provided=data.water_provided,
            medical_support=data.medical_support,
            age_group=data.age_group,
            precautions=data.precautions,
            public_transport=data.public_transport,
            contact_person=data.contact_person,
            start_datetime=data.start_datetime,
            end_datetime=data.end_datetime,
            created_by_user_id=user_id,
            organization_id=organization.id,
            recurring_event=data.recurring_event,
            recurring_type=data.recurring_type.value if data.recurring_type else None,
            recurring_value=data.recurring_value,
        )
        event.organizer_team = [EventOrganizer(user_id=user_id, role="creator")] + [
            EventOrganizer(user_id=member_id, role="organizer") for member_id in organizer_ids
        ]
        self.db.add(event)
        self.db.flush()

        try:
            if data.recurring_event:
                self.series_service.create_series_for_event(
                    event,
                    end_date=data.series_end_date,
                    max_instances=data.series_max_instances,
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(event)
        logger.info(
            f"Created event: {event.title} ({event.guid})",
            extra={"event_guid": event.guid, "recurring": event.recurring_event}
        )
        self._dispatch_summary(event)
        return event

    # =========================================================================
    # Completion
    # =========================================================================

    def complete_event(
        self, guid: str, user_id: int
    ) -> Tuple[Event, Optional[Event], Optional[str]]:
        """
        Mark an ended event as completed.

        For a series instance, materializes the next instance when the
        series policy allows it (anchored on the latest instance) and
        recomputes the series statistics.

        Args:
            guid: Event GUID
            user_id: Caller's internal user ID (creator or organizer team)

        Returns:
            Tuple of (event, next instance or None, series status or None)

        Raises:
            NotFoundError: Event or its series missing
            PermissionDeniedError: Caller is not on the organizer team
            PreconditionFailedError: Event has not ended yet
        """
        event = self.get_by_guid(guid)

        if not event.is_organizer(user_id):
            raise PermissionDeniedError("Not authorized to complete this event")

        if event.end_datetime > datetime.utcnow():
            raise PreconditionFailedError("Event has not ended yet")

        if event.completed_at is None:
            event.completed_at = datetime.utcnow()
        self.db.commit()

        if not (event.recurring_event and event.recurring_series_id):
            return event, None, None

        series = event.series
        if series is None:
            raise NotFoundError("Recurring series", event.recurring_series_id, "Recurring series not found")

        next_instance = None
        last_event = self.series_service.get_last_instance(series)
        if should_create_next_instance(series, last_event):
            next_instance = self.series_service.materialize_next_instance(series, last_event)

        self.series_service.update_series_statistics(series)
        return event, next_instance, series.status

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, guid: str, user_id: int) -> Registration:
        """
        Register a volunteer for an event.

        Raises:
            NotFoundError: Event missing
            PreconditionFailedError: Event ended, full, or caller organizes it
            ConflictError: Already registered
        """
        event = self.get_by_guid(guid)

        if event.is_organizer(user_id):
            raise PreconditionFailedError("Organizers cannot register as volunteers for their own event")

        if event.end_datetime <= datetime.utcnow():
            raise PreconditionFailedError("Event has already ended")

        if self.get_registration(event, user_id):
            raise ConflictError("Already registered for this event")

        if not event.unlimited_volunteers and event.max_volunteers:
            registered = (
                self.db.query(Registration)
                .filter(Registration.event_id == event.id)
                .count()
            )
            if registered >= event.max_volunteers:
                raise PreconditionFailedError("Event is full")

        registration = Registration(event_id=event.id, volunteer_id=user_id)
        self.db.add(registration)
        self.db.query(CalendarBookmark).filter(
            CalendarBookmark.event_id == event.id,
            CalendarBookmark.user_id == user_id,
        ).delete(synchronize_session=False)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Already registered for this event")

        self.db.refresh(registration)
        logger.info(
            "Volunteer registered",
            extra={"event_guid": event.guid, "user_id": user_id}
        )
        return registration

    def mark_attendance(
        self, guid: str, user_id: int, volunteer_guid: str, has_attended: bool
    ) -> Registration:
        """
        Record whether a registered volunteer attended.

        Raises:
            NotFoundError: Event, volunteer, or registration missing
            PermissionDeniedError: Caller is not on the organizer team
        """
        event = self.get_by_guid(guid)

        if not event.is_organizer(user_id):
            raise PermissionDeniedError("Not authorized to mark attendance for this event")

        volunteer = UserService(self.db).get_by_guid(volunteer_guid)
        registration = self.get_registration(event, volunteer.id)
        if not registration:
            raise NotFoundError("Registration", volunteer_guid, "Volunteer is not registered for this event")

        registration.has_attended = has_attended
        self.db.commit()
        self.db.refresh(registration)
        return registration

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_organization(self, guid: str) -> Organization:
        if not GuidService.validate_guid(guid, "org"):
            raise NotFoundError("Organization", guid, "Organization not found")

        organization = (
            self.db.query(Organization)
            .filter(Organization.uuid == GuidService.parse_guid(guid, "org"))
            .first()
        )
        if not organization:
            raise NotFoundError("Organization", guid, "Organization not found")
        return organization

    def _dispatch_summary(self, event: Event) -> None:
        try:
            self.dispatcher.dispatch(event.id)
        except Exception as e:
            logger.warning(
                f"Failed to dispatch AI summary for event {event.guid}: {e}",
                exc_info=True
            )
