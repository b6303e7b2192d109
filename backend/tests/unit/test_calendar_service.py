"""
Unit tests for CalendarService.

Tests calendar assembly for the volunteer and organizer views (recurring
projection, status tagging, de-duplication, ordering), calendar bookmarks
and their mutual exclusion with registrations and organizer teams, and
calendar statistics.
"""

from datetime import datetime, timedelta

import pytest
from freezegun import freeze_time

from backend.src.models import CalendarBookmark
from backend.src.services.calendar_service import CalendarService, derive_entry_status
from backend.src.services.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)


JAN_10 = datetime(2024, 1, 10)
JAN_31 = datetime(2024, 1, 31, 23, 59, 59)


@pytest.fixture
def calendar_service(test_db_session):
    """Create a CalendarService instance for testing."""
    return CalendarService(test_db_session)


@pytest.fixture
def volunteer(sample_user):
    return sample_user(name='Vera Volunteer', username='vera')


# ============================================================================
# Status Derivation
# ============================================================================


class TestDeriveEntryStatus:
    """Tests for entry status rules."""

    NOW = datetime(2024, 1, 20, 12)

    def test_upcoming(self):
        assert derive_entry_status(self.NOW + timedelta(hours=1), self.NOW, 'volunteer', False, False, True) == 'upcoming'

    def test_attended_and_missed(self):
        past = self.NOW - timedelta(hours=1)
        assert derive_entry_status(past, self.NOW, 'volunteer', False, False, True) == 'attended'
        assert derive_entry_status(past, self.NOW, 'volunteer', False, False, False) == 'missed'

    def test_bookmark_never_attended(self):
        past = self.NOW - timedelta(hours=1)
        assert derive_entry_status(past, self.NOW, 'volunteer', False, True, True) == 'missed'

    def test_created_takes_precedence_for_organizer(self):
        past = self.NOW - timedelta(hours=1)
        assert derive_entry_status(past, self.NOW, 'organizer', True, False, True) == 'created'
        assert derive_entry_status(past, self.NOW, 'volunteer', True, False, True) == 'attended'


# ============================================================================
# Volunteer View
# ============================================================================


class TestVolunteerCalendar:
    """Tests for the volunteer calendar."""

    @freeze_time('2024-01-20 12:00:00')
    def test_recurring_registration_projected(self, calendar_service, sample_event, volunteer, register):
        """A weekly Monday event from Jan 1 shows Jan 15, 22, 29 in Jan 10..31.

        Attendance of the Jan 1 event does not carry over to Jan 15.
        """
        event = sample_event(start=datetime(2024, 1, 1, 9), recurring_type='weekly', recurring_value='Monday')
        register(event, volunteer, has_attended=True)

        entries = calendar_service.get_calendar_events(volunteer.id, JAN_10, JAN_31, 'volunteer')

        assert [e['start'] for e in entries] == [
            datetime(2024, 1, 15, 9),
            datetime(2024, 1, 22, 9),
            datetime(2024, 1, 29, 9),
        ]
        assert [e['id'] for e in entries] == [f'{event.guid}_recurring_{i}' for i in range(3)]
        assert all(e['original_event_id'] == event.guid for e in entries)
        assert all(e['is_recurring'] and e['is_recurring_instance'] for e in entries)
        assert all(e['recurring_pattern'] == 'weekly - Monday' for e in entries)
        assert [e['status'] for e in entries] == ['missed', 'upcoming', 'upcoming']

    @freeze_time('2024-02-01 12:00:00')
    def test_attendance_applies_to_its_own_occurrence(self, calendar_service, sample_event, volunteer, register):
        event = sample_event(start=datetime(2024, 1, 1, 9), recurring_type='weekly', recurring_value='Monday')
        register(event, volunteer, has_attended=True)

        entries = calendar_service.get_calendar_events(volunteer.id, datetime(2024, 1, 1), JAN_31, 'volunteer')

        assert [e['start'].day for e in entries] == [1, 8, 15, 22, 29]
        assert [e['status'] for e in entries] == ['attended', 'missed', 'missed', 'missed', 'missed']
        assert [e['has_attended'] for e in entries] == [True, False, False, False, False]

    @freeze_time('2024-02-01 12:00:00')
    def test_attendance_taken_from_matching_series_instance(
        self, calendar_service, test_db_session, sample_event, volunteer, register
    ):
        """Only the stored instance starting at an occurrence decides its attendance."""
        from backend.src.services.recurring_series_service import RecurringSeriesService

        first = sample_event(start=datetime(2024, 1, 1, 9), recurring_type='weekly', recurring_value='Monday')
        series_service = RecurringSeriesService(test_db_session)
        series_service.create_series_for_event(first)
        test_db_session.commit()
        second = series_service.materialize_next_instance(first.series, first)
        register(first, volunteer, has_attended=False)
        register(second, volunteer, has_attended=True)

        entries = calendar_service.get_calendar_events(volunteer.id, datetime(2024, 1, 1), JAN_31, 'volunteer')

        assert [e['start'].day for e in entries] == [1, 8, 15, 22, 29]
        assert [e['status'] for e in entries] == ['missed', 'attended', 'missed', 'missed', 'missed']

    @freeze_time('2024-01-20 12:00:00')
    def test_single_events_filtered_to_range(self, calendar_service, sample_event, volunteer, register):
        inside = sample_event(title='Inside', start=datetime(2024, 1, 12, 9))
        before = sample_event(title='Before', start=datetime(2024, 1, 5, 9))
        after = sample_event(title='After', start=datetime(2024, 2, 5, 9))
        for event in (inside, before, after):
            register(event, volunteer)

        entries = calendar_service.get_calendar_events(volunteer.id, JAN_10, JAN_31, 'volunteer')

        assert [e['id'] for e in entries] == [inside.guid]
        assert entries[0]['status'] == 'missed'
        assert entries[0]['is_manually_added'] is False
        assert entries[0]['is_recurring'] is False

    @freeze_time('2024-01-20 12:00:00')
    def test_bookmarks_included(self, calendar_service, sample_event, volunteer, bookmark):
        past = sample_event(title='Past', start=datetime(2024, 1, 11, 9))
        future = sample_event(title='Future', start=datetime(2024, 1, 25, 9))
        bookmark(past, volunteer)
        bookmark(future, volunteer)

        entries = calendar_service.get_calendar_events(volunteer.id, JAN_10, JAN_31, 'volunteer')

        assert [(e['id'], e['status'], e['is_manually_added']) for e in entries] == [
            (past.guid, 'missed', True),
            (future.guid, 'upcoming', True),
        ]

    @freeze_time('2024-01-20 12:00:00')
    def test_registration_wins_over_bookmark(self, calendar_service, sample_event, volunteer, register, bookmark):
        event = sample_event(start=datetime(2024, 1, 12, 9))
        register(event, volunteer, has_attended=True)
        bookmark(event, volunteer)

        entries = calendar_service.get_calendar_events(volunteer.id, JAN_10, JAN_31, 'volunteer')

        assert len(entries) == 1
        assert entries[0]['is_manually_added'] is False
        assert entries[0]['status'] == 'attended'

    @freeze_time('2024-01-20 12:00:00')
    def test_other_users_events_excluded(self, calendar_service, sample_event, sample_user, volunteer, register):
        register(sample_event(start=datetime(2024, 1, 12, 9)), sample_user())

        assert calendar_service.get_calendar_events(volunteer.id, JAN_10, JAN_31, 'volunteer') == []

    @freeze_time('2024-01-20 12:00:00')
    def test_sorted_by_start_then_id(self, calendar_service, sample_event, volunteer, register):
        late = sample_event(title='Late', start=datetime(2024, 1, 18, 9))
        a = sample_event(title='A', start=datetime(2024, 1, 12, 9))
        b = sample_event(title='B', start=datetime(2024, 1, 12, 9))
        for event in (late, a, b):
            register(event, volunteer)

        entries = calendar_service.get_calendar_events(volunteer.id, JAN_10, JAN_31, 'volunteer')

        assert [e['id'] for e in entries] == sorted([a.guid, b.guid]) + [late.guid]

    @freeze_time('2024-01-20 12:00:00')
    def test_series_instances_not_duplicated(
        self, calendar_service, test_db_session, sample_event, volunteer, register
    ):
        """Registering for two stored instances of a series yields one entry per slot."""
        from backend.src.services.recurring_series_service import RecurringSeriesService

        first = sample_event(start=datetime(2024, 1, 1, 9), recurring_type='weekly', recurring_value='Monday')
        series_service = RecurringSeriesService(test_db_session)
        series_service.create_series_for_event(first)
        test_db_session.commit()
        second = series_service.materialize_next_instance(first.series, first)
        register(first, volunteer)
        register(second, volunteer)

        entries = calendar_service.get_calendar_events(volunteer.id, JAN_10, JAN_31, 'volunteer')

        starts = [e['start'] for e in entries]
        assert starts == [datetime(2024, 1, 15, 9), datetime(2024, 1, 22, 9), datetime(2024, 1, 29, 9)]
        assert all(e['recurring_series_id'] == first.series.guid for e in entries)

    def test_invalid_role(self, calendar_service, volunteer):
        with pytest.raises(ValidationError):
            calendar_service.get_calendar_events(volunteer.id, JAN_10, JAN_31, 'admin')

    def test_start_after_end(self, calendar_service, volunteer):
        with pytest.raises(ValidationError):
            calendar_service.get_calendar_events(volunteer.id, JAN_31, JAN_10, 'volunteer')


# ============================================================================
# Organizer View
# ============================================================================


class TestOrganizerCalendar:
    """Tests for the organizer calendar."""

    @freeze_time('2024-01-20 12:00:00')
    def test_created_and_team_events(self, calendar_service, sample_event, sample_user, test_db_session):
        organizer = sample_user(name='Omar Organizer')
        other = sample_user()

        created_past = sample_event(title='Created past', start=datetime(2024, 1, 12, 9), creator=organizer)
        created_future = sample_event(title='Created future', start=datetime(2024, 1, 25, 9), creator=organizer)
        team_past = sample_event(title='Team past', start=datetime(2024, 1, 14, 9), creator=other, organizers=[organizer])
        sample_event(title='Unrelated', start=datetime(2024, 1, 15, 9), creator=other)

        membership = [m for m in team_past.organizer_team if m.user_id == organizer.id][0]
        membership.has_attended = True
        test_db_session.commit()

        entries = calendar_service.get_calendar_events(organizer.id, JAN_10, JAN_31, 'organizer')

        assert [(e['id'], e['status'], e['is_creator'], e['is_organizer_event']) for e in entries] == [
            (created_past.guid, 'created', True, True),
            (team_past.guid, 'attended', False, True),
            (created_future.guid, 'upcoming', True, True),
        ]

    @freeze_time('2024-02-01 12:00:00')
    def test_organizer_attendance_per_occurrence(self, calendar_service, test_db_session, sample_event, sample_user):
        organizer = sample_user()
        event = sample_event(
            start=datetime(2024, 1, 1, 9), recurring_type='weekly', recurring_value='Monday',
            organizers=[organizer],
        )
        membership = [m for m in event.organizer_team if m.user_id == organizer.id][0]
        membership.has_attended = True
        test_db_session.commit()

        entries = calendar_service.get_calendar_events(organizer.id, datetime(2024, 1, 1), JAN_31, 'organizer')

        assert [e['status'] for e in entries] == ['attended', 'missed', 'missed', 'missed', 'missed']

    @freeze_time('2024-01-20 12:00:00')
    def test_bookmark_in_organizer_view(self, calendar_service, sample_event, sample_user, bookmark):
        organizer = sample_user()
        own = sample_event(start=datetime(2024, 1, 12, 9), creator=organizer)
        foreign = sample_event(start=datetime(2024, 1, 13, 9))
        bookmark(foreign, organizer)

        entries = calendar_service.get_calendar_events(organizer.id, JAN_10, JAN_31, 'organizer')

        assert [(e['id'], e['is_manually_added'], e['is_organizer_event']) for e in entries] == [
            (own.guid, False, True),
            (foreign.guid, True, False),
        ]


# ============================================================================
# Bookmarks
# ============================================================================


class TestBookmarks:
    """Tests for calendar bookmarks."""

    def test_add_bookmark(self, calendar_service, sample_event, volunteer, test_db_session):
        event = sample_event()

        flags = calendar_service.add_bookmark(event.guid, volunteer.id)

        assert flags == {
            'is_registered': False,
            'is_organizer_event': False,
            'is_in_calendar': True,
            'can_add_to_calendar': False,
            'can_remove_from_calendar': True,
        }
        assert test_db_session.query(CalendarBookmark).count() == 1

    def test_add_twice_rejected(self, calendar_service, sample_event, volunteer):
        event = sample_event()
        calendar_service.add_bookmark(event.guid, volunteer.id)

        with pytest.raises(PreconditionFailedError, match='already in your calendar'):
            calendar_service.add_bookmark(event.guid, volunteer.id)

    def test_add_registered_rejected(self, calendar_service, sample_event, volunteer, register, test_db_session):
        event = sample_event()
        register(event, volunteer)

        with pytest.raises(PreconditionFailedError, match='registered events'):
            calendar_service.add_bookmark(event.guid, volunteer.id)
        assert test_db_session.query(CalendarBookmark).count() == 0

    def test_add_creator_rejected(self, calendar_service, sample_event, volunteer):
        event = sample_event(creator=volunteer)

        with pytest.raises(PreconditionFailedError, match='organizer events'):
            calendar_service.add_bookmark(event.guid, volunteer.id)

    def test_add_team_member_rejected(self, calendar_service, sample_event, volunteer):
        event = sample_event(organizers=[volunteer])

        with pytest.raises(PreconditionFailedError, match='organizer events'):
            calendar_service.add_bookmark(event.guid, volunteer.id)

    def test_add_unknown_event(self, calendar_service, volunteer):
        with pytest.raises(NotFoundError):
            calendar_service.add_bookmark('evt_01hgw2bbg00000000000000000', volunteer.id)

    def test_remove_bookmark(self, calendar_service, sample_event, volunteer, bookmark, test_db_session):
        event = sample_event()
        bookmark(event, volunteer)

        flags = calendar_service.remove_bookmark(event.guid, volunteer.id)

        assert flags['is_in_calendar'] is False
        assert flags['can_add_to_calendar'] is True
        assert test_db_session.query(CalendarBookmark).count() == 0

    def test_remove_missing_bookmark(self, calendar_service, sample_event, volunteer):
        event = sample_event()

        with pytest.raises(NotFoundError) as exc_info:
            calendar_service.remove_bookmark(event.guid, volunteer.id)
        assert exc_info.value.message == 'Event not found in your calendar'

    def test_remove_registered_rejected(self, calendar_service, sample_event, volunteer, register):
        event = sample_event()
        register(event, volunteer)

        with pytest.raises(PreconditionFailedError):
            calendar_service.remove_bookmark(event.guid, volunteer.id)

    def test_status_for_registered_event(self, calendar_service, sample_event, volunteer, register, bookmark):
        """A leftover bookmark row does not make a registered event removable."""
        event = sample_event()
        bookmark(event, volunteer)
        register(event, volunteer)

        flags = calendar_service.get_bookmark_status(event.guid, volunteer.id)

        assert flags == {
            'is_registered': True,
            'is_organizer_event': False,
            'is_in_calendar': True,
            'can_add_to_calendar': False,
            'can_remove_from_calendar': False,
        }

    def test_status_for_organizer_event(self, calendar_service, sample_event, volunteer, bookmark):
        event = sample_event(organizers=[volunteer])
        bookmark(event, volunteer)

        flags = calendar_service.get_bookmark_status(event.guid, volunteer.id)

        assert flags['is_organizer_event'] is True
        assert flags['is_in_calendar'] is True
        assert flags['can_add_to_calendar'] is False
        assert flags['can_remove_from_calendar'] is False

    def test_status_for_plain_event(self, calendar_service, sample_event, volunteer):
        flags = calendar_service.get_bookmark_status(sample_event().guid, volunteer.id)

        assert flags['is_in_calendar'] is False
        assert flags['can_add_to_calendar'] is True


# ============================================================================
# Statistics and Details
# ============================================================================


class TestCalendarStatsAndDetails:
    """Tests for calendar statistics and event details."""

    @freeze_time('2024-01-20 12:00:00')
    def test_stats_count_statuses(self, calendar_service, sample_event, volunteer, register, bookmark):
        recurring = sample_event(start=datetime(2024, 1, 1, 9), recurring_type='weekly', recurring_value='Monday')
        register(recurring, volunteer, has_attended=True)
        attended = sample_event(start=datetime(2024, 1, 11, 9))
        register(attended, volunteer, has_attended=True)
        bookmark(sample_event(start=datetime(2024, 1, 26, 9)), volunteer)

        stats = calendar_service.get_calendar_stats(volunteer.id, JAN_10, JAN_31, 'volunteer')

        assert stats == {
            'total': 5,
            'upcoming': 3,
            'attended': 1,
            'missed': 1,
            'created': 0,
        }

    def test_event_details(self, calendar_service, sample_event, volunteer, register):
        event = sample_event()
        register(event, volunteer, has_attended=False)

        found, is_registered, is_organizer, registration = calendar_service.get_event_details(
            event.guid, volunteer.id
        )

        assert found.id == event.id
        assert is_registered is True
        assert is_organizer is False
        assert registration.has_attended is False

    def test_event_details_unknown(self, calendar_service, volunteer):
        with pytest.raises(NotFoundError):
            calendar_service.get_event_details('evt_01hgw2bbg00000000000000000', volunteer.id)
