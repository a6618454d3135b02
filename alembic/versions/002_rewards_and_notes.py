"""Rewards catalog, reward redemptions and customer notes

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


redemption_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='redemptionstatus')


def upgrade() -> None:
    # New timeline event kinds
    op.execute("ALTER TYPE timelineeventtype ADD VALUE IF NOT EXISTS 'PROFILE_UPDATED'")
    op.execute("ALTER TYPE timelineeventtype ADD VALUE IF NOT EXISTS 'NOTE_ADDED'")

    # Create rewards table
    op.create_table(
        'rewards',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('points_required', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create reward_redemptions table
    op.create_table(
        'reward_redemptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('reward_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('rewards.id'), nullable=False),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column(
            'account_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('loyalty_accounts.id'), nullable=False
        ),
        sa.Column('points_spent', sa.Integer(), nullable=False),
        sa.Column('status', redemption_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_reward_redemptions_customer_id', 'reward_redemptions', ['customer_id'])

    # Create customer_notes table
    op.create_table(
        'customer_notes',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_customer_notes_customer_id', 'customer_notes', ['customer_id'])


def downgrade() -> None:
    # PostgreSQL cannot drop enum values; the timeline kinds stay
    op.drop_index('ix_customer_notes_customer_id', table_name='customer_notes')
    op.drop_table('customer_notes')
    op.drop_index('ix_reward_redemptions_customer_id', table_name='reward_redemptions')
    op.drop_table('reward_redemptions')
    op.drop_table('rewards')
    redemption_status.drop(op.get_bind(), checkfirst=True)
