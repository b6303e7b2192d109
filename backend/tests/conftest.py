"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database sessions
- Sample data factories (users, organizations, events, series)
- Recording summary dispatcher
- FastAPI test client with dependency overrides
"""

import os
import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ['VHUB_DB_URL'] = 'sqlite:///:memory:'
os.environ['VHUB_JWT_SECRET_KEY'] = 'test-secret-key-for-volunteer-hub-tests-0123456789'
os.environ['VHUB_AI_SUMMARY_API_KEY'] = ''

from backend.src.models import (  # noqa: E402
    Base,
    CalendarBookmark,
    Event,
    EventOrganizer,
    Organization,
    Registration,
    User,
)
from backend.src.services.summary_service import SummaryDispatcher  # noqa: E402


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    from sqlalchemy import event

    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )

    # Enable foreign key constraints for SQLite
    def _fk_pragma_on_connect(dbapi_con, con_record):
        dbapi_con.execute('pragma foreign_keys=ON')

    event.listen(engine, 'connect', _fk_pragma_on_connect)

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_session_factory(test_db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )


@pytest.fixture(scope='function')
def test_db_session(test_session_factory):
    """Create a test database session."""
    session = test_session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Dispatcher Fixtures
# ============================================================================

class RecordingSummaryDispatcher(SummaryDispatcher):
    """Summary dispatcher that records requests instead of running them."""

    def __init__(self):
        self.event_ids = []
        self.series_ids = []

    def dispatch(self, event_id: int) -> None:
        self.event_ids.append(event_id)

    def dispatch_backfill(self, series_id: int) -> None:
        self.series_ids.append(series_id)


@pytest.fixture
def recording_dispatcher():
    """Create a dispatcher that records summary requests."""
    return RecordingSummaryDispatcher()


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def sample_user(test_db_session):
    """Factory for creating sample User models in the database."""
    counter = {'n': 0}

    def _create(name=None, username=None, email=None, is_active=True):
        counter['n'] += 1
        n = counter['n']
        user = User(
            name=name or f'Test User {n}',
            username=username or f'user{n}',
            email=email or f'user{n}@example.com',
            is_active=is_active,
        )
        test_db_session.add(user)
        test_db_session.commit()
        test_db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def sample_organization(test_db_session):
    """Factory for creating sample Organization models in the database."""
    def _create(name='Green Shores'):
        organization = Organization(name=name, description='Coastal cleanup collective')
        test_db_session.add(organization)
        test_db_session.commit()
        test_db_session.refresh(organization)
        return organization

    return _create


@pytest.fixture
def sample_event(test_db_session, sample_user, sample_organization):
    """
    Factory for creating stored events directly (no series).

    Use event_service.create() for recurring events with a series.
    """
    def _create(
        title='Beach Cleanup',
        start=None,
        duration=timedelta(hours=2),
        creator=None,
        organization=None,
        organizers=(),
        recurring_type=None,
        recurring_value=None,
        max_volunteers=None,
    ):
        creator = creator or sample_user()
        organization = organization or sample_organization()
        start = start or datetime.utcnow() + timedelta(days=7)
        event = Event(
            title=title,
            description='Pick up litter along the shore',
            location='North Beach',
            event_type='cleanup',
            start_datetime=start,
            end_datetime=start + duration,
            created_by_user_id=creator.id,
            organization_id=organization.id,
            max_volunteers=max_volunteers,
            unlimited_volunteers=max_volunteers is None,
            equipment_needed=['gloves', 'bags'],
            recurring_event=recurring_type is not None,
            recurring_type=recurring_type,
            recurring_value=recurring_value,
        )
        event.organizer_team = [EventOrganizer(user_id=creator.id, role='creator')] + [
            EventOrganizer(user_id=member.id, role='organizer') for member in organizers
        ]
        test_db_session.add(event)
        test_db_session.commit()
        test_db_session.refresh(event)
        return event

    return _create


@pytest.fixture
def register(test_db_session):
    """Register a volunteer for an event directly in the database."""
    def _register(event, user, has_attended=False):
        registration = Registration(
            event_id=event.id,
            volunteer_id=user.id,
            has_attended=has_attended,
        )
        test_db_session.add(registration)
        test_db_session.commit()
        return registration

    return _register


@pytest.fixture
def bookmark(test_db_session):
    """Bookmark an event directly in the database."""
    def _bookmark(event, user):
        row = CalendarBookmark(event_id=event.id, user_id=user.id)
        test_db_session.add(row)
        test_db_session.commit()
        return row

    return _bookmark


@pytest.fixture
def event_create_data(sample_organization):
    """Factory for EventCreate payload dicts."""
    def _create(organization=None, **overrides):
        organization = organization or sample_organization()
        start = datetime.utcnow() + timedelta(days=7)
        data = {
            'title': 'Beach Cleanup',
            'description': 'Pick up litter along the shore',
            'location': 'North Beach',
            'event_type': 'cleanup',
            'organization_guid': organization.guid,
            'start_datetime': start,
            'end_datetime': start + timedelta(hours=2),
            'equipment_needed': ['gloves'],
        }
        data.update(overrides)
        return data

    return _create


# ============================================================================
# FastAPI Test Client Fixture
# ============================================================================

@pytest.fixture
def current_user(sample_user):
    """The user every test client request is authenticated as."""
    return sample_user(name='Alice Volunteer', username='alice')


@pytest.fixture
def test_client(test_db_session, current_user, recording_dispatcher):
    """Create a test client for FastAPI application."""
    from fastapi.testclient import TestClient
    from backend.src.main import app
    from backend.src.api.dependencies import get_summary_dispatcher
    from backend.src.db.database import get_db
    from backend.src.middleware.auth import UserContext, require_auth

    # Override dependencies
    def get_test_db():
        try:
            yield test_db_session
        finally:
            pass

    def get_test_user():
        return UserContext(
            user_id=current_user.id,
            user_guid=current_user.guid,
            name=current_user.name,
            email=current_user.email,
        )

    def get_test_dispatcher():
        return recording_dispatcher

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[require_auth] = get_test_user
    app.dependency_overrides[get_summary_dispatcher] = get_test_dispatcher

    with TestClient(app) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()
