"""
Recurring series service.

Owns the lifecycle of recurring event series: creating a series from its
first event, materializing the next instance, cascading status changes onto
future instances, and recomputing aggregate statistics.

Design:
- The first event of a series is instance #1; every later instance is
  materialized from the latest one (duration preserved, dates computed by
  services.recurrence)
- Materialization writes the instance and the series counters in a single
  transaction; the series row is locked FOR UPDATE where the dialect
  supports it and the (series, instance number) unique constraint rejects a
  concurrent duplicate
- update_series_statistics is a full recompute and the source of truth for
  the aggregate counters
- Series are never hard-deleted: cancel() sets status to cancelled
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from backend.src.models import (
    Event,
    EventOrganizer,
    RecurringSeries,
    Registration,
    SeriesOrganizer,
    SeriesStatus,
)
from backend.src.models.event import RecurringStatus
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
    ValidationError,
)
from backend.src.services.guid import GuidService
from backend.src.services.recurrence import (
    calculate_next_recurring_date,
    should_create_next_instance,
    validate_recurrence_anchor,
)
from backend.src.services.summary_service import SummaryDispatcher
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

SERIES_STATUSES = tuple(s.value for s in SeriesStatus)


class RecurringSeriesService:
    """
    Service for managing recurring event series.

    Usage:
        >>> service = RecurringSeriesService(db_session, dispatcher)
        >>> event = service.create_next_instance("ser_01hgw...", user_id=1)
        >>> event.recurring_instance_number
        2
    """

    def __init__(self, db: Session, dispatcher: Optional[SummaryDispatcher] = None):
        """
        Initialize recurring series service.

        Args:
            db: SQLAlchemy database session
            dispatcher: Schedules AI summaries for new instances
                (defaults to a dispatcher that discards requests)
        """
        self.db = db
        self.dispatcher = dispatcher or SummaryDispatcher()

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_by_guid(self, guid: str, lock: bool = False) -> RecurringSeries:
        """
        Get a series by GUID.

        Args:
            guid: Series GUID (ser_xxx format)
            lock: Lock the row FOR UPDATE until the transaction ends

        Raises:
            NotFoundError: If the series does not exist
        """
        try:
            uuid_value = GuidService.parse_guid(guid, "ser")
        except ValueError:
            raise NotFoundError("Recurring series", guid, "Recurring series not found")

        query = self.db.query(RecurringSeries).filter(RecurringSeries.uuid == uuid_value)
        if lock:
            query = query.with_for_update()

        series = query.first()
        if not series:
            raise NotFoundError("Recurring series", guid, "Recurring series not found")
        return series

    def get_owned(self, guid: str, user_id: int, lock: bool = False) -> RecurringSeries:
        """
        Get a series the caller owns.

        Raises:
            NotFoundError: If the series does not exist
            PermissionDeniedError: If the caller is not the owner
        """
        series = self.get_by_guid(guid, lock=lock)
        if series.created_by_user_id != user_id:
            raise PermissionDeniedError("Not authorized to manage this series")
        return series

    def get_last_instance(self, series: RecurringSeries) -> Optional[Event]:
        """Get the instance with the highest instance number."""
        return (
            self.db.query(Event)
            .filter(Event.recurring_series_id == series.id)
            .order_by(Event.recurring_instance_number.desc())
            .first()
        )

    def get_series_instances(self, series: RecurringSeries) -> List[Event]:
        """Get all instances of a series ordered by instance number."""
        return (
            self.db.query(Event)
            .filter(Event.recurring_series_id == series.id)
            .order_by(Event.recurring_instance_number.asc())
            .all()
        )

    def series_of_event(self, event_guid: str) -> Optional[RecurringSeries]:
        """
        Get the series an event belongs to.

        Returns:
            The parent series, or None when the event does not exist or is
            not part of a series
        """
        if not GuidService.validate_guid(event_guid, "evt"):
            return None

        event = (
            self.db.query(Event)
            .options(joinedload(Event.series))
            .filter(Event.uuid == GuidService.parse_guid(event_guid, "evt"))
            .first()
        )
        if not event:
            return None
        return event.series

    def list_for_user(self, user_id: int) -> List[RecurringSeries]:
        """List series owned by a user, newest first."""
        return (
            self.db.query(RecurringSeries)
            .options(joinedload(RecurringSeries.organization))
            .filter(RecurringSeries.created_by_user_id == user_id)
            .order_by(RecurringSeries.created_at.desc(), RecurringSeries.id.desc())
            .all()
        )

    def get_details(self, guid: str, user_id: int) -> Tuple[RecurringSeries, List[Event]]:
        """
        Get a series and all of its instances (owner only).

        Returns:
            Tuple of (series, instances ordered by instance number)
        """
        series = self.get_owned(guid, user_id)
        return series, self.get_series_instances(series)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_series_for_event(
        self,
        event: Event,
        end_date: Optional[datetime] = None,
        max_instances: Optional[int] = None,
    ) -> RecurringSeries:
        """
        Create the series defined by a recurring event.

        The event becomes instance #1 and receives its next_recurring_date.
        The series copies the event template and organizer team. Nothing is
        committed; the caller owns the transaction.

        Args:
            event: Flushed event with recurring_type/recurring_value set
            end_date: Optional series end bound
            max_instances: Optional instance cap

        Raises:
            ValidationError: If the recurrence rule is invalid or the event
                does not start on its selector
        """
        try:
            selector = validate_recurrence_anchor(
                event.start_datetime, event.recurring_type, event.recurring_value
            )
        except ValueError as e:
            raise ValidationError(str(e), field="recurring_value")

        if max_instances is not None and max_instances < 1:
            raise ValidationError("max_instances must be at least 1", field="max_instances")
        if end_date is not None and end_date <= event.start_datetime:
            raise ValidationError("end_date must be after the first event", field="end_date")

        series = RecurringSeries(
            **event.template_values(),
            recurring_type=event.recurring_type,
            recurring_value=selector,
            created_by_user_id=event.created_by_user_id,
            organization_id=event.organization_id,
            start_date=event.start_datetime,
            end_date=end_date,
            max_instances=max_instances,
            status=SeriesStatus.ACTIVE.value,
            current_instance_number=1,
            total_instances_created=1,
        )
        series.organizer_team = [
            SeriesOrganizer(user_id=member.user_id, role=member.role)
            for member in event.organizer_team
        ]
        self.db.add(series)
        self.db.flush()

        event.recurring_value = selector
        event.recurring_series_id = series.id
        event.recurring_instance_number = 1
        event.is_recurring_instance = True
        event.recurring_status = RecurringStatus.ACTIVE.value
        event.next_recurring_date = calculate_next_recurring_date(
            event.start_datetime, series.recurring_type, selector
        )
        self.db.flush()

        logger.info(
            f"Created recurring series: {series.title} ({series.recurring_pattern})",
            extra={"series_guid": series.guid, "event_guid": event.guid}
        )
        return series

    def create_recurring_event_instance(
        self,
        series: RecurringSeries,
        instance_number: int,
        start_datetime: datetime,
        end_datetime: datetime,
        commit: bool = True,
    ) -> Event:
        """
        Persist a new instance of a series.

        Copies the series template and organizer team (has_attended reset).
        Performs no date arithmetic: the caller supplies the start and end.
        When commit is True the instance is committed and its AI summary is
        dispatched; otherwise the caller commits and dispatches.

        Args:
            series: Parent series
            instance_number: 1-based instance number
            start_datetime: Instance start
            end_datetime: Instance end

        Returns:
            The new Event

        Raises:
            ConflictError: If the instance number already exists for the series
        """
        event = Event(
            **series.template_values(),
            start_datetime=start_datetime,
            end_datetime=end_datetime,
            created_by_user_id=series.created_by_user_id,
            organization_id=series.organization_id,
            recurring_event=True,
            recurring_type=series.recurring_type,
            recurring_value=series.recurring_value,
            recurring_series_id=series.id,
            recurring_instance_number=instance_number,
            is_recurring_instance=True,
            recurring_status=RecurringStatus.ACTIVE.value,
        )
        event.organizer_team = [
            EventOrganizer(user_id=member.user_id, role=member.role, has_attended=False)
            for member in series.organizer_team
        ]
        self.db.add(event)

        if not commit:
            self.db.flush()
            return event

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                f"Instance #{instance_number} already exists for this series"
            )
        self.db.refresh(event)
        self._dispatch_summary(event)
        return event

    def materialize_next_instance(self, series: RecurringSeries, last_event: Event) -> Event:
        """
        Create the instance following ``last_event`` and update the counters.

        Single transaction: the instance insert and the counter update are
        committed together.

        Raises:
            ConflictError: If a concurrent call already created this instance
        """
        next_start = calculate_next_recurring_date(
            last_event.start_datetime, series.recurring_type, series.recurring_value
        )
        duration = last_event.end_datetime - last_event.start_datetime
        instance_number = last_event.recurring_instance_number + 1

        try:
            event = self.create_recurring_event_instance(
                series,
                instance_number,
                next_start,
                next_start + duration,
                commit=False,
            )
            series.current_instance_number = instance_number
            series.total_instances_created = (series.total_instances_created or 0) + 1
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                f"Concurrent materialization rejected for instance #{instance_number}",
                extra={"series_guid": series.guid}
            )
            raise ConflictError(
                f"Instance #{instance_number} already exists for this series"
            )

        self.db.refresh(event)
        logger.info(
            f"Created recurring instance #{instance_number}: {event.title}",
            extra={
                "series_guid": series.guid,
                "event_guid": event.guid,
                "start": event.start_datetime.isoformat(),
            }
        )
        self._dispatch_summary(event)
        return event

    def create_next_instance(self, series_guid: str, user_id: int) -> Event:
        """
        Materialize the next instance of a series on behalf of its owner.

        Preconditions, checked in order:
        series exists, caller is owner, series is active, instance cap not
        reached, end date not passed, a prior instance exists.

        Args:
            series_guid: Series GUID
            user_id: Caller's internal user ID

        Returns:
            The new Event

        Raises:
            NotFoundError: Series or prior instance missing
            PermissionDeniedError: Caller is not the owner
            PreconditionFailedError: Series inactive, capped, or ended
            ConflictError: Concurrent duplicate materialization
        """
        try:
            series = self.get_owned(series_guid, user_id, lock=True)

            if series.status != SeriesStatus.ACTIVE.value:
                raise PreconditionFailedError("Series is not active")

            if series.max_instances and series.total_instances_created >= series.max_instances:
                raise PreconditionFailedError("Maximum instances reached")

            if series.end_date and datetime.utcnow() >= series.end_date:
                raise PreconditionFailedError("Series has ended")

            last_event = self.get_last_instance(series)
            if not last_event:
                raise NotFoundError("Event", series_guid, "No previous event found in series")
        except (NotFoundError, PermissionDeniedError, PreconditionFailedError):
            # Release the series row lock
            self.db.rollback()
            raise

        return self.materialize_next_instance(series, last_event)

    def materialize_due(self) -> List[Event]:
        """
        Materialize the next instance of every active series that is due.

        A series is due when should_create_next_instance() holds for its
        latest instance. Failures are logged per series and do not stop
        the run.

        Returns:
            The instances created
        """
        created = []
        series_list = (
            self.db.query(RecurringSeries)
            .filter(RecurringSeries.status == SeriesStatus.ACTIVE.value)
            .order_by(RecurringSeries.id)
            .all()
        )

        for series in series_list:
            last_event = self.get_last_instance(series)
            if last_event is None or not should_create_next_instance(series, last_event):
                continue
            try:
                created.append(self.materialize_next_instance(series, last_event))
            except ConflictError as e:
                logger.warning(f"Skipped series {series.guid}: {e.message}")
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to materialize series {series.guid}: {e}", exc_info=True)

        return created

    # =========================================================================
    # Status
    # =========================================================================

    def update_status(self, guid: str, user_id: int, status: str) -> Tuple[RecurringSeries, int]:
        """
        Set the series status and cascade it onto future instances.

        Future instances are those whose start is after the current time;
        their recurring_status is set to the new status.

        Returns:
            Tuple of (series, number of instances updated)

        Raises:
            ValidationError: If the status is unknown
        """
        if status not in SERIES_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'. Expected one of: {', '.join(SERIES_STATUSES)}",
                field="status"
            )

        series = self.get_owned(guid, user_id)
        series.status = status

        updated = (
            self.db.query(Event)
            .filter(
                Event.recurring_series_id == series.id,
                Event.start_datetime > datetime.utcnow(),
            )
            .update({Event.recurring_status: status}, synchronize_session="fetch")
        )
        self.db.commit()
        self.db.refresh(series)

        logger.info(
            f"Series status updated to {status}",
            extra={"series_guid": series.guid, "future_instances": updated}
        )
        return series, updated

    def cancel(self, guid: str, user_id: int) -> RecurringSeries:
        """Soft delete a series (status -> cancelled)."""
        series, _ = self.update_status(guid, user_id, SeriesStatus.CANCELLED.value)
        return series

    # =========================================================================
    # Statistics
    # =========================================================================

    def update_series_statistics(self, series: RecurringSeries) -> Dict[str, Any]:
        """
        Recompute and persist the aggregate counters of a series.

        Full recompute over all instances:
        - total_registrations: registrations on any instance
        - total_attendances: attended registrations on instances that ended
        - average_attendance: total_attendances / ended instances (2 decimals)
        - total_instances_created: instance count

        Running it twice with no intervening change yields identical values.

        Returns:
            Dict of computed statistics
        """
        now = datetime.utcnow()

        total_instances = (
            self.db.query(func.count(Event.id))
            .filter(Event.recurring_series_id == series.id)
            .scalar()
        ) or 0
        completed_instances = (
            self.db.query(func.count(Event.id))
            .filter(Event.recurring_series_id == series.id, Event.end_datetime < now)
            .scalar()
        ) or 0
        total_registrations = (
            self.db.query(func.count(Registration.id))
            .join(Event, Registration.event_id == Event.id)
            .filter(Event.recurring_series_id == series.id)
            .scalar()
        ) or 0
        total_attendances = (
            self.db.query(func.count(Registration.id))
            .join(Event, Registration.event_id == Event.id)
            .filter(
                Event.recurring_series_id == series.id,
                Event.end_datetime < now,
                Registration.has_attended.is_(True),
            )
            .scalar()
        ) or 0

        average = round(total_attendances / completed_instances, 2) if completed_instances else 0.0

        series.total_registrations = total_registrations
        series.total_attendances = total_attendances
        series.average_attendance = average
        series.total_instances_created = total_instances
        self.db.commit()

        return {
            "total_instances": total_instances,
            "completed_instances": completed_instances,
            "upcoming_instances": total_instances - completed_instances,
            "total_registrations": total_registrations,
            "total_attendances": total_attendances,
            "average_attendance": average,
        }

    def get_stats(self, guid: str, user_id: int) -> Tuple[Dict[str, Any], List[Event]]:
        """
        Recompute statistics for an owned series.

        Returns:
            Tuple of (statistics dict, instances ordered by instance number)
        """
        series = self.get_owned(guid, user_id)
        stats = self.update_series_statistics(series)
        return stats, self.get_series_instances(series)

    # =========================================================================
    # AI summaries
    # =========================================================================

    def request_summary_backfill(self, guid: str, user_id: int) -> RecurringSeries:
        """Schedule AI summaries for owned series instances that lack one."""
        series = self.get_owned(guid, user_id)
        self.dispatcher.dispatch_backfill(series.id)
        logger.info(
            "AI summary backfill scheduled",
            extra={"series_guid": series.guid}
        )
        return series

    def _dispatch_summary(self, event: Event) -> None:
        try:
            self.dispatcher.dispatch(event.id)
        except Exception as e:
            logger.warning(
                f"Failed to dispatch AI summary for event {event.guid}: {e}",
                exc_info=True
            )
