"""scheduling_engine

Revision ID: 3c9e1f2a7b40
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c9e1f2a7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'administrators',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('telegram_id', sa.BigInteger(), nullable=True),
        sa.Column('full_name', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('telegram_id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'interviewers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('full_name', sa.String(length=150), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('telegram_id', sa.BigInteger(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active'),
        sa.Column('domains', sa.JSON(), nullable=False),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('telegram_id'),
    )

    op.create_table(
        'booking_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False, server_default='created'),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('domain', sa.String(length=100), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _created_at(),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['administrators.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'booking_request_interviewers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_request_id', sa.Integer(), nullable=False),
        sa.Column('interviewer_id', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['booking_request_id'], ['booking_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['interviewer_id'], ['interviewers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_request_id', 'interviewer_id', name='uq_booking_request_interviewer'),
    )

    op.create_table(
        'availability_windows',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_request_id', sa.Integer(), nullable=False),
        sa.Column('interviewer_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        _created_at(),
        sa.Column('superseded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['booking_request_id'], ['booking_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['interviewer_id'], ['interviewers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_availability_current', 'availability_windows',
        ['booking_request_id', 'interviewer_id', 'superseded_at'],
    )

    op.create_table(
        'slots',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('booking_request_id', sa.Integer(), nullable=False),
        sa.Column('interviewer_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False, server_default='available'),
        sa.Column('release_reason', sa.String(length=32), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['booking_request_id'], ['booking_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['interviewer_id'], ['interviewers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'public_links',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('public_id', sa.String(length=64), nullable=False),
        sa.Column('booking_request_id', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['booking_request_id'], ['booking_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['administrators.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('public_id'),
    )

    op.create_table(
        'public_link_slots',
        sa.Column('public_link_id', sa.Integer(), nullable=False),
        sa.Column('slot_id', sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(['public_link_id'], ['public_links.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['slot_id'], ['slots.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('public_link_id', 'slot_id'),
    )

    op.create_table(
        'allow_list_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('public_link_id', sa.Integer(), nullable=False),
        sa.Column('identity', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=150), nullable=True),
        sa.Column('hiring_name', sa.String(length=150), nullable=True),
        sa.Column('domain', sa.String(length=100), nullable=True),
        sa.Column('user_id', sa.String(length=100), nullable=True),
        sa.Column('mobile_number', sa.String(length=30), nullable=True),
        sa.Column('resume_link', sa.String(length=512), nullable=True),
        sa.Column('added_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['public_link_id'], ['public_links.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('public_link_id', 'identity', name='uq_allow_list_link_identity'),
    )

    op.create_table(
        'student_bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('public_link_id', sa.Integer(), nullable=False),
        sa.Column('slot_id', sa.String(length=32), nullable=False),
        sa.Column('student_identity', sa.String(length=255), nullable=False),
        sa.Column('student_name', sa.String(length=150), nullable=True),
        sa.Column('state', sa.String(length=32), nullable=False, server_default='pending_claim'),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('host_email', sa.String(length=255), nullable=True),
        sa.Column('event_title', sa.String(length=255), nullable=True),
        sa.Column('meet_link', sa.String(length=512), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['public_link_id'], ['public_links.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['slot_id'], ['slots.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    # Не больше одной подтверждённой записи на слот и на студента в ссылке
    op.create_index(
        'uq_student_bookings_confirmed_slot', 'student_bookings', ['slot_id'],
        unique=True, postgresql_where=sa.text("state = 'confirmed'"),
    )
    op.create_index(
        'uq_student_bookings_confirmed_identity', 'student_bookings', ['public_link_id', 'student_identity'],
        unique=True, postgresql_where=sa.text("state = 'confirmed'"),
    )

    op.create_table(
        'outbox_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event', sa.String(length=32), nullable=False),
        sa.Column('student_booking_id', sa.Integer(), nullable=True),
        sa.Column('slot_id', sa.String(length=32), nullable=True),
        sa.Column('student_identity', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('next_retry_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['student_booking_id'], ['student_bookings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_outbox_status_retry', 'outbox_events', ['status', 'next_retry_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_outbox_status_retry', table_name='outbox_events')
    op.drop_table('outbox_events')
    op.drop_index('uq_student_bookings_confirmed_identity', table_name='student_bookings')
    op.drop_index('uq_student_bookings_confirmed_slot', table_name='student_bookings')
    op.drop_table('student_bookings')
    op.drop_table('allow_list_entries')
    op.drop_table('public_link_slots')
    op.drop_table('public_links')
    op.drop_table('slots')
    op.drop_index('ix_availability_current', table_name='availability_windows')
    op.drop_table('availability_windows')
    op.drop_table('booking_request_interviewers')
    op.drop_table('booking_requests')
    op.drop_table('interviewers')
    op.drop_table('administrators')
