"""Initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2024-01-01

Creates the Volunteer Hub tables:
- users, organizations
- recurring_series and its organizer team template (series_organizers)
- events with recurrence metadata and organizer teams (event_organizers)
- registrations (volunteer sign-ups with attendance)
- calendar_bookmarks (manually pinned calendar events)

Instance numbering is guarded by a unique (recurring_series_id,
recurring_instance_number) constraint on events.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _uuid_column() -> sa.Column:
    return sa.Column(
        'uuid',
        postgresql.UUID(as_uuid=True).with_variant(sa.LargeBinary(16), 'sqlite'),
        nullable=False
    )


def _template_columns() -> list:
    """Event template columns shared by events and recurring_series."""
    return [
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=500), nullable=True),
        sa.Column('map_address', sa.String(length=500), nullable=True),
        sa.Column('map_lat', sa.Float(), nullable=True),
        sa.Column('map_lng', sa.Float(), nullable=True),
        sa.Column('event_type', sa.String(length=100), nullable=True),
        sa.Column('max_volunteers', sa.Integer(), nullable=True),
        sa.Column('unlimited_volunteers', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('group_registration', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            'equipment_needed',
            postgresql.JSONB().with_variant(sa.JSON(), 'sqlite'),
            nullable=True
        ),
        sa.Column('water_provided', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('medical_support', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('age_group', sa.String(length=100), nullable=True),
        sa.Column('precautions', sa.Text(), nullable=True),
        sa.Column('public_transport', sa.Text(), nullable=True),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
    ]


def upgrade() -> None:
    """Create all tables in dependency order."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_uuid', 'users', ['uuid'], unique=True)

    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_organizations_uuid', 'organizations', ['uuid'], unique=True)

    op.create_table(
        'recurring_series',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(),
        *_template_columns(),
        sa.Column('recurring_type', sa.String(length=20), nullable=False),
        sa.Column('recurring_value', sa.String(length=20), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('max_instances', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('current_instance_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_instances_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_registrations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_attendances', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_attendance', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['created_by_user_id'], ['users.id'],
            name='fk_recurring_series_created_by_user_id', ondelete='RESTRICT'
        ),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_recurring_series_organization_id', ondelete='RESTRICT'
        ),
    )
    op.create_index('ix_recurring_series_uuid', 'recurring_series', ['uuid'], unique=True)
    op.create_index('idx_series_creator_status', 'recurring_series', ['created_by_user_id', 'status'])
    op.create_index('idx_series_org_status', 'recurring_series', ['organization_id', 'status'])
    op.create_index('idx_series_status_start', 'recurring_series', ['status', 'start_date'])

    op.create_table(
        'series_organizers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('series_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='organizer'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['series_id'], ['recurring_series.id'],
            name='fk_series_organizers_series_id', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_series_organizers_user_id', ondelete='CASCADE'
        ),
        sa.UniqueConstraint('series_id', 'user_id', name='uq_series_organizer'),
    )
    op.create_index('ix_series_organizers_series_id', 'series_organizers', ['series_id'])
    op.create_index('ix_series_organizers_user_id', 'series_organizers', ['user_id'])

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(),
        *_template_columns(),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('start_datetime', sa.DateTime(), nullable=False),
        sa.Column('end_datetime', sa.DateTime(), nullable=False),
        sa.Column('recurring_event', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurring_type', sa.String(length=20), nullable=True),
        sa.Column('recurring_value', sa.String(length=20), nullable=True),
        sa.Column('recurring_series_id', sa.Integer(), nullable=True),
        sa.Column('recurring_instance_number', sa.Integer(), nullable=True),
        sa.Column('is_recurring_instance', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurring_status', sa.String(length=20), nullable=True),
        sa.Column('next_recurring_date', sa.DateTime(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['created_by_user_id'], ['users.id'],
            name='fk_events_created_by_user_id', ondelete='RESTRICT'
        ),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_events_organization_id', ondelete='RESTRICT'
        ),
        sa.ForeignKeyConstraint(
            ['recurring_series_id'], ['recurring_series.id'],
            name='fk_events_recurring_series_id', ondelete='SET NULL'
        ),
        sa.UniqueConstraint(
            'recurring_series_id', 'recurring_instance_number',
            name='uq_event_series_instance_number'
        ),
    )
    op.create_index('ix_events_uuid', 'events', ['uuid'], unique=True)
    op.create_index('ix_events_created_by_user_id', 'events', ['created_by_user_id'])
    op.create_index('ix_events_organization_id', 'events', ['organization_id'])
    op.create_index('ix_events_start_datetime', 'events', ['start_datetime'])
    op.create_index('ix_events_recurring_series_id', 'events', ['recurring_series_id'])
    op.create_index('idx_events_creator_start', 'events', ['created_by_user_id', 'start_datetime'])

    op.create_table(
        'event_organizers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='organizer'),
        sa.Column('has_attended', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['event_id'], ['events.id'],
            name='fk_event_organizers_event_id', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_event_organizers_user_id', ondelete='CASCADE'
        ),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_organizer'),
    )
    op.create_index('ix_event_organizers_event_id', 'event_organizers', ['event_id'])
    op.create_index('ix_event_organizers_user_id', 'event_organizers', ['user_id'])

    op.create_table(
        'registrations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('volunteer_id', sa.Integer(), nullable=False),
        sa.Column('has_attended', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('registered_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['event_id'], ['events.id'],
            name='fk_registrations_event_id', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['volunteer_id'], ['users.id'],
            name='fk_registrations_volunteer_id', ondelete='CASCADE'
        ),
        sa.UniqueConstraint('event_id', 'volunteer_id', name='uq_registration_event_volunteer'),
    )
    op.create_index('ix_registrations_event_id', 'registrations', ['event_id'])
    op.create_index('ix_registrations_volunteer_id', 'registrations', ['volunteer_id'])

    op.create_table(
        'calendar_bookmarks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('added_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_calendar_bookmarks_user_id', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['event_id'], ['events.id'],
            name='fk_calendar_bookmarks_event_id', ondelete='CASCADE'
        ),
        sa.UniqueConstraint('user_id', 'event_id', name='uq_calendar_bookmark_user_event'),
    )
    op.create_index('ix_calendar_bookmarks_user_id', 'calendar_bookmarks', ['user_id'])
    op.create_index('ix_calendar_bookmarks_event_id', 'calendar_bookmarks', ['event_id'])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table('calendar_bookmarks')
    op.drop_table('registrations')
    op.drop_table('event_organizers')
    op.drop_table('events')
    op.drop_table('series_organizers')
    op.drop_table('recurring_series')
    op.drop_table('organizations')
    op.drop_table('users')
