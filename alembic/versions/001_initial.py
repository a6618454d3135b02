"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum('MASTER_ADMIN', 'BRANCH_ADMIN', 'STAFF', name='userrole')
table_type = sa.Enum('REGULAR', 'BOOTH', 'BAR', 'OUTDOOR', 'PRIVATE', name='tabletype')
booking_status = sa.Enum(
    'PENDING', 'CONFIRMED', 'CHECKED_IN', 'COMPLETED', 'CANCELLED', 'NO_SHOW', name='bookingstatus'
)
# Reuses the type created with the bookings table
booking_status_ref = postgresql.ENUM(
    'PENDING', 'CONFIRMED', 'CHECKED_IN', 'COMPLETED', 'CANCELLED', 'NO_SHOW',
    name='bookingstatus', create_type=False,
)
booking_source = sa.Enum('ADMIN', 'ONLINE', 'PHONE', 'WALK_IN', name='bookingsource')
waitlist_status = sa.Enum('PENDING', 'NOTIFIED', 'CONVERTED', 'EXPIRED', name='waitliststatus')
customer_tier = sa.Enum('REGULAR', 'VIP', name='customertier')
timeline_event_type = sa.Enum(
    'PROFILE_CREATED', 'BOOKING_CREATED', 'BOOKING_UPDATED', 'BOOKING_CONFIRMED',
    'BOOKING_CANCELLED', 'NO_SHOW', 'CHECKED_IN', 'COMPLETED', 'WAITLIST_JOINED',
    'WAITLIST_PROMOTED', 'BLACKLISTED', 'BLACKLIST_REMOVED', 'LOYALTY_UPDATED', 'MERGED',
    name='timelineeventtype',
)
loyalty_tier = sa.Enum('REGULAR', 'GOLD', 'VIP', name='loyaltytier')
loyalty_transaction_type = sa.Enum('EARN', 'ADJUST', 'REDEEM', 'BONUS', name='loyaltytransactiontype')
notification_channel = sa.Enum('EMAIL', 'SMS', name='notificationchannel')
notification_status = sa.Enum('PENDING', 'SENT', 'FAILED', name='notificationstatus')


def upgrade() -> None:
    # Create branches table
    op.create_table(
        'branches',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.Text()),
        sa.Column('phone', sa.String(20)),
        sa.Column('email', sa.String(255)),
        sa.Column('timezone', sa.String(50), default='UTC'),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id')),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('phone', sa.String(20)),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('last_login', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create operating_hours table
    op.create_table(
        'operating_hours',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('open_time', sa.Time()),
        sa.Column('close_time', sa.Time()),
        sa.Column('break_start', sa.Time()),
        sa.Column('break_end', sa.Time()),
        sa.Column('is_closed', sa.Boolean(), default=False),
        sa.UniqueConstraint('branch_id', 'day_of_week', name='uq_operating_hours_branch_day'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_operating_hours_day'),
    )

    # Create tables table
    op.create_table(
        'tables',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('table_number', sa.String(20), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('min_capacity', sa.Integer(), default=1),
        sa.Column('table_type', table_type),
        sa.Column('position_x', sa.Integer()),
        sa.Column('position_y', sa.Integer()),
        sa.Column('floor', sa.Integer(), default=1),
        sa.Column('is_combinable', sa.Boolean(), default=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('min_capacity <= capacity', name='ck_tables_min_capacity'),
        sa.UniqueConstraint('branch_id', 'table_number', name='uq_tables_branch_number'),
    )

    # Create blocked_slots table
    op.create_table(
        'blocked_slots',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('reason', sa.Text()),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.CheckConstraint('start_time < end_time', name='ck_blocked_slots_window'),
    )
    op.create_index('ix_blocked_slots_branch_id', 'blocked_slots', ['branch_id'])

    # Create customers table
    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(20)),
        sa.Column('notes', sa.Text()),
        sa.Column('preferences', sa.JSON()),
        sa.Column('tier', customer_tier, nullable=False),
        sa.Column('is_blacklisted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('blacklist_reason', sa.Text()),
        sa.Column('total_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('successful_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cancellations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('no_shows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('referred_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id')),
        sa.Column('merged_into_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_customers_email', 'customers', ['email'])
    op.create_index('ix_customers_phone', 'customers', ['phone'])

    # Create customer_timeline table
    op.create_table(
        'customer_timeline',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('event_type', timeline_event_type, nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata_json', sa.JSON()),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_customer_timeline_customer_id', 'customer_timeline', ['customer_id'])

    # Create loyalty tables
    op.create_table(
        'loyalty_accounts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), unique=True, nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tier', loyalty_tier, nullable=False),
        sa.Column('total_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('points >= 0', name='ck_loyalty_accounts_points'),
    )
    op.create_table(
        'loyalty_transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('account_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('loyalty_accounts.id'), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('type', loyalty_transaction_type, nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('metadata_json', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_loyalty_transactions_account_id', 'loyalty_transactions', ['account_id'])

    # Create bookings table
    op.create_table(
        'bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('booking_code', sa.String(6), unique=True, nullable=False),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('table_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tables.id')),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id')),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('time_slot', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), default=120),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('status', booking_status, nullable=False),
        sa.Column('source', booking_source),
        sa.Column('special_requests', sa.Text()),
        sa.Column('internal_notes', sa.Text()),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('confirmed_at', sa.DateTime()),
        sa.Column('checked_in_at', sa.DateTime()),
        sa.Column('cancelled_at', sa.DateTime()),
        sa.Column('cancelled_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('cancellation_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('party_size > 0', name='ck_bookings_party_size'),
        sa.CheckConstraint('duration_minutes > 0', name='ck_bookings_duration'),
    )
    op.create_index('ix_bookings_branch_date_status', 'bookings', ['branch_id', 'booking_date', 'status'])
    op.create_index('ix_bookings_customer_id', 'bookings', ['customer_id'])

    # Create booking_history table
    op.create_table(
        'booking_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('booking_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('old_status', booking_status_ref),
        sa.Column('new_status', booking_status_ref),
        sa.Column('changed_by_id', postgresql.UUID(as_uuid=True)),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_booking_history_booking_id', 'booking_history', ['booking_id'])

    # Create waitlist_entries table
    op.create_table(
        'waitlist_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id')),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('time_slot', sa.Time(), nullable=False),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('status', waitlist_status, nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('notified_at', sa.DateTime()),
    )
    op.create_index(
        'ix_waitlist_slot', 'waitlist_entries', ['branch_id', 'booking_date', 'time_slot', 'status']
    )

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('channel', notification_channel, nullable=False),
        sa.Column('recipient', sa.String(255), nullable=False),
        sa.Column('subject', sa.String(255)),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('status', notification_status, nullable=False),
        sa.Column('error_message', sa.Text()),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('waitlist_entries')
    op.drop_table('booking_history')
    op.drop_table('bookings')
    op.drop_table('loyalty_transactions')
    op.drop_table('loyalty_accounts')
    op.drop_table('customer_timeline')
    op.drop_table('customers')
    op.drop_table('blocked_slots')
    op.drop_table('tables')
    op.drop_table('operating_hours')
    op.drop_table('users')
    op.drop_table('branches')

    bind = op.get_bind()
    for enum_type in (
        notification_status,
        notification_channel,
        loyalty_transaction_type,
        loyalty_tier,
        timeline_event_type,
        customer_tier,
        waitlist_status,
        booking_source,
        booking_status,
        table_type,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
