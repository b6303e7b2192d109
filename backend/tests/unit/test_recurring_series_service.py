"""
Unit tests for RecurringSeriesService.

Tests series creation from a recurring event, next-instance
materialization (numbering, duration, cap, end date, conflicts), status
cascade, statistics, and lookups.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from backend.src.models import Event, RecurringSeries
from backend.src.schemas.event import EventCreate
from backend.src.services.event_service import EventService
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
    ValidationError,
)
from backend.src.services.recurring_series_service import RecurringSeriesService


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def series_service(test_db_session, recording_dispatcher):
    """Create a RecurringSeriesService instance for testing."""
    return RecurringSeriesService(test_db_session, recording_dispatcher)


@pytest.fixture
def owner(sample_user):
    return sample_user(name='Olivia Organizer', username='olivia')


@pytest.fixture
def create_series(test_db_session, recording_dispatcher, event_create_data, owner):
    """Factory creating a recurring event and its series through EventService."""
    def _create(
        start=datetime(2024, 1, 1, 9, 0),
        duration=timedelta(hours=2),
        recurring_type='weekly',
        recurring_value='Monday',
        end_date=None,
        max_instances=None,
        creator=None,
        organizer_guids=(),
    ):
        creator = creator or owner
        data = EventCreate(**event_create_data(
            start_datetime=start,
            end_datetime=start + duration,
            recurring_event=True,
            recurring_type=recurring_type,
            recurring_value=recurring_value,
            series_end_date=end_date,
            series_max_instances=max_instances,
            organizer_guids=list(organizer_guids),
        ))
        event = EventService(test_db_session, recording_dispatcher).create(creator.id, data)
        return event, event.series

    return _create


# ============================================================================
# Series Creation
# ============================================================================


class TestSeriesCreation:
    """Tests for creating a series from its first event."""

    def test_first_event_becomes_instance_one(self, create_series):
        event, series = create_series()

        assert series is not None
        assert series.guid.startswith('ser_')
        assert event.recurring_series_id == series.id
        assert event.recurring_instance_number == 1
        assert event.is_recurring_instance is True
        assert event.recurring_status == 'active'
        assert event.next_recurring_date == datetime(2024, 1, 8, 9, 0)

    def test_series_copies_template_and_rule(self, create_series):
        event, series = create_series(recurring_value='monday')

        assert series.title == event.title
        assert series.location == event.location
        assert series.equipment_needed == ['gloves']
        assert series.recurring_type == 'weekly'
        assert series.recurring_value == 'Monday'
        assert series.recurring_pattern == 'weekly - Monday'
        assert series.start_date == event.start_datetime
        assert series.status == 'active'
        assert series.current_instance_number == 1
        assert series.total_instances_created == 1

    def test_series_copies_organizer_team(self, create_series, sample_user, owner):
        helper = sample_user(name='Hank Helper')
        _, series = create_series(organizer_guids=[helper.guid])

        team = {(m.user_id, m.role) for m in series.organizer_team}
        assert team == {(owner.id, 'creator'), (helper.id, 'organizer')}

    def test_summary_dispatched_for_first_event(self, create_series, recording_dispatcher):
        event, _ = create_series()
        assert recording_dispatcher.event_ids == [event.id]

    def test_end_date_before_start_rejected(self, create_series, test_db_session):
        with pytest.raises(ValidationError):
            create_series(end_date=datetime(2023, 12, 1))

        assert test_db_session.query(RecurringSeries).count() == 0
        assert test_db_session.query(Event).count() == 0

    def test_weekly_start_off_selector_rejected(self, series_service, sample_event, test_db_session):
        """A Wednesday event cannot start a Monday series."""
        event = sample_event(start=datetime(2030, 1, 2, 9), recurring_type='weekly', recurring_value='Monday')

        with pytest.raises(ValidationError, match='Wednesday'):
            series_service.create_series_for_event(event)

        assert test_db_session.query(RecurringSeries).count() == 0

    def test_monthly_start_off_selector_rejected(self, series_service, sample_event):
        event = sample_event(start=datetime(2024, 1, 10, 9), recurring_type='monthly', recurring_value='15')

        with pytest.raises(ValidationError, match='day 10'):
            series_service.create_series_for_event(event)

    def test_monthly_start_on_clamped_day_accepted(self, series_service, create_series, owner):
        """Day 31 in February starts on the 29th and keeps day 31 afterwards."""
        first, series = create_series(
            start=datetime(2024, 2, 29, 10), recurring_type='monthly', recurring_value='31'
        )

        second = series_service.create_next_instance(series.guid, owner.id)

        assert first.next_recurring_date == datetime(2024, 3, 31, 10)
        assert second.start_datetime == datetime(2024, 3, 31, 10)


# ============================================================================
# Materialization
# ============================================================================


class TestCreateNextInstance:
    """Tests for owner-triggered materialization."""

    def test_next_instance_dates_and_duration(self, series_service, create_series, owner):
        _, series = create_series(duration=timedelta(hours=2, minutes=30))

        second = series_service.create_next_instance(series.guid, owner.id)

        assert second.start_datetime == datetime(2024, 1, 8, 9, 0)
        assert second.end_datetime - second.start_datetime == timedelta(hours=2, minutes=30)
        assert second.recurring_instance_number == 2
        assert second.recurring_series_id == series.id
        assert second.is_recurring_instance is True

    def test_numbering_is_monotonic(self, series_service, create_series, owner, test_db_session):
        _, series = create_series()

        for _ in range(3):
            series_service.create_next_instance(series.guid, owner.id)

        instances = series_service.get_series_instances(series)
        assert [e.recurring_instance_number for e in instances] == [1, 2, 3, 4]
        assert [e.start_datetime.day for e in instances] == [1, 8, 15, 22]

        test_db_session.refresh(series)
        assert series.current_instance_number == 4
        assert series.total_instances_created == 4

    def test_instance_copies_template_and_team(self, series_service, create_series, owner):
        first, series = create_series()

        second = series_service.create_next_instance(series.guid, owner.id)

        assert second.title == first.title
        assert second.equipment_needed == first.equipment_needed
        assert [(m.user_id, m.role, m.has_attended) for m in second.organizer_team] == [
            (owner.id, 'creator', False)
        ]

    def test_monthly_month_end(self, series_service, create_series, owner):
        _, series = create_series(
            start=datetime(2024, 1, 31, 10), recurring_type='monthly', recurring_value='31'
        )

        second = series_service.create_next_instance(series.guid, owner.id)
        third = series_service.create_next_instance(series.guid, owner.id)

        assert second.start_datetime == datetime(2024, 2, 29, 10)
        assert third.start_datetime == datetime(2024, 3, 31, 10)

    def test_summary_dispatched(self, series_service, create_series, owner, recording_dispatcher):
        _, series = create_series()
        second = series_service.create_next_instance(series.guid, owner.id)
        assert recording_dispatcher.event_ids[-1] == second.id

    def test_unknown_series(self, series_service, owner):
        with pytest.raises(NotFoundError):
            series_service.create_next_instance('ser_01hgw2bbg00000000000000000', owner.id)

    def test_malformed_guid(self, series_service, owner):
        with pytest.raises(NotFoundError):
            series_service.create_next_instance('not-a-guid', owner.id)

    def test_non_owner_rejected(self, series_service, create_series, sample_user):
        _, series = create_series()
        stranger = sample_user()

        with pytest.raises(PermissionDeniedError):
            series_service.create_next_instance(series.guid, stranger.id)

    def test_paused_series_rejected(self, series_service, create_series, owner):
        _, series = create_series()
        series_service.update_status(series.guid, owner.id, 'paused')

        with pytest.raises(PreconditionFailedError, match='not active'):
            series_service.create_next_instance(series.guid, owner.id)

    def test_rejection_releases_series_lock(self, series_service, create_series, owner, test_db_session):
        _, series = create_series()
        series_service.update_status(series.guid, owner.id, 'paused')

        with patch.object(test_db_session, 'rollback', wraps=test_db_session.rollback) as rollback:
            with pytest.raises(PreconditionFailedError):
                series_service.create_next_instance(series.guid, owner.id)

        rollback.assert_called_once()

    def test_non_owner_rejection_releases_series_lock(
        self, series_service, create_series, sample_user, test_db_session
    ):
        _, series = create_series()
        stranger = sample_user()

        with patch.object(test_db_session, 'rollback', wraps=test_db_session.rollback) as rollback:
            with pytest.raises(PermissionDeniedError):
                series_service.create_next_instance(series.guid, stranger.id)

        rollback.assert_called_once()

    def test_cap_enforced(self, series_service, create_series, owner, test_db_session):
        _, series = create_series(max_instances=2)

        series_service.create_next_instance(series.guid, owner.id)
        with pytest.raises(PreconditionFailedError, match='Maximum instances'):
            series_service.create_next_instance(series.guid, owner.id)

        assert test_db_session.query(Event).filter(Event.recurring_series_id == series.id).count() == 2

    def test_end_date_enforced(self, series_service, create_series, owner):
        _, series = create_series(end_date=datetime(2024, 2, 1))

        with freeze_time('2024-01-20 12:00:00'):
            series_service.create_next_instance(series.guid, owner.id)

        with freeze_time('2024-02-01 00:00:00'):
            with pytest.raises(PreconditionFailedError, match='ended'):
                series_service.create_next_instance(series.guid, owner.id)

    def test_concurrent_duplicate_rejected(self, series_service, create_series, test_db_session):
        first, series = create_series()

        series_service.materialize_next_instance(series, first)
        with pytest.raises(ConflictError):
            series_service.materialize_next_instance(series, first)

        test_db_session.refresh(series)
        assert series.total_instances_created == 2
        assert test_db_session.query(Event).filter(Event.recurring_series_id == series.id).count() == 2


class TestMaterializeDue:
    """Tests for batch materialization."""

    @freeze_time('2024-01-20 12:00:00')
    def test_only_due_series_materialized(self, series_service, create_series, owner):
        _, due = create_series(start=datetime(2024, 1, 15, 9))
        _, running = create_series(
            start=datetime(2024, 1, 20, 9), duration=timedelta(hours=8), recurring_value='Saturday'
        )
        _, paused = create_series(start=datetime(2024, 1, 8, 9))
        series_service.update_status(paused.guid, owner.id, 'paused')

        created = series_service.materialize_due()

        assert [e.recurring_series_id for e in created] == [due.id]
        assert created[0].start_datetime == datetime(2024, 1, 22, 9)
        assert len(series_service.get_series_instances(running)) == 1


# ============================================================================
# Status
# ============================================================================


class TestUpdateStatus:
    """Tests for status changes and cascade."""

    @freeze_time('2024-01-20 12:00:00')
    def test_status_cascades_to_future_instances(self, series_service, create_series, owner):
        _, series = create_series()
        for _ in range(4):
            series_service.create_next_instance(series.guid, owner.id)

        series, updated = series_service.update_status(series.guid, owner.id, 'paused')

        assert series.status == 'paused'
        assert updated == 2
        statuses = {e.start_datetime.day: e.recurring_status for e in series_service.get_series_instances(series)}
        assert statuses == {1: 'active', 8: 'active', 15: 'active', 22: 'paused', 29: 'paused'}

    @freeze_time('2024-01-20 12:00:00')
    def test_cancel_is_soft_delete(self, series_service, create_series, owner, test_db_session):
        _, series = create_series()
        series_service.create_next_instance(series.guid, owner.id)
        series_service.create_next_instance(series.guid, owner.id)
        series_service.create_next_instance(series.guid, owner.id)

        cancelled = series_service.cancel(series.guid, owner.id)

        assert cancelled.status == 'cancelled'
        assert test_db_session.query(RecurringSeries).count() == 1
        instances = series_service.get_series_instances(cancelled)
        assert len(instances) == 4
        assert instances[-1].recurring_status == 'cancelled'
        assert instances[0].recurring_status == 'active'

    def test_invalid_status(self, series_service, create_series, owner):
        _, series = create_series()
        with pytest.raises(ValidationError):
            series_service.update_status(series.guid, owner.id, 'archived')

    def test_non_owner_rejected(self, series_service, create_series, sample_user):
        _, series = create_series()
        with pytest.raises(PermissionDeniedError):
            series_service.update_status(series.guid, sample_user().id, 'paused')


# ============================================================================
# Statistics
# ============================================================================


class TestSeriesStatistics:
    """Tests for statistics recomputation."""

    @freeze_time('2024-01-20 12:00:00')
    def test_statistics_values(self, series_service, create_series, owner, sample_user, register):
        first, series = create_series()
        second = series_service.create_next_instance(series.guid, owner.id)
        series_service.create_next_instance(series.guid, owner.id)
        future = series_service.create_next_instance(series.guid, owner.id)

        a, b = sample_user(), sample_user()
        register(first, a, has_attended=True)
        register(first, b, has_attended=False)
        register(second, a, has_attended=True)
        register(future, b, has_attended=True)

        stats = series_service.update_series_statistics(series)

        assert stats == {
            'total_instances': 4,
            'completed_instances': 3,
            'upcoming_instances': 1,
            'total_registrations': 4,
            'total_attendances': 2,
            'average_attendance': 0.67,
        }
        assert series.total_registrations == 4
        assert series.total_attendances == 2
        assert series.average_attendance == 0.67
        assert series.total_instances_created == 4

    @freeze_time('2024-01-20 12:00:00')
    def test_statistics_idempotent(self, series_service, create_series, owner, sample_user, register):
        first, series = create_series()
        series_service.create_next_instance(series.guid, owner.id)
        register(first, sample_user(), has_attended=True)

        stats_1 = series_service.update_series_statistics(series)
        stats_2 = series_service.update_series_statistics(series)

        assert stats_1 == stats_2

    def test_no_completed_instances(self, series_service, create_series):
        _, series = create_series(start=datetime.utcnow() + timedelta(days=3))
        stats = series_service.update_series_statistics(series)
        assert stats['average_attendance'] == 0.0
        assert stats['completed_instances'] == 0

    def test_get_stats_requires_owner(self, series_service, create_series, sample_user):
        _, series = create_series()
        with pytest.raises(PermissionDeniedError):
            series_service.get_stats(series.guid, sample_user().id)


# ============================================================================
# Lookups
# ============================================================================


class TestLookups:
    """Tests for series lookups."""

    def test_list_for_user_newest_first(self, series_service, create_series, owner, sample_user):
        _, older = create_series()
        _, newer = create_series(start=datetime(2024, 2, 5, 9))
        create_series(creator=sample_user())

        result = series_service.list_for_user(owner.id)

        assert [s.id for s in result] == [newer.id, older.id]

    def test_series_of_event(self, series_service, create_series, sample_event):
        event, series = create_series()
        single = sample_event()

        assert series_service.series_of_event(event.guid).id == series.id
        assert series_service.series_of_event(single.guid) is None
        assert series_service.series_of_event('evt_01hgw2bbg00000000000000000') is None
        assert series_service.series_of_event('garbage') is None

    def test_get_details(self, series_service, create_series, owner):
        _, series = create_series()
        series_service.create_next_instance(series.guid, owner.id)

        found, instances = series_service.get_details(series.guid, owner.id)

        assert found.id == series.id
        assert [e.recurring_instance_number for e in instances] == [1, 2]

    def test_request_summary_backfill(self, series_service, create_series, owner, recording_dispatcher):
        _, series = create_series()
        series_service.request_summary_backfill(series.guid, owner.id)
        assert recording_dispatcher.series_ids == [series.id]
