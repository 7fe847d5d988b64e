"""Initial migration

Revision ID: 001
Revises: 
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_RESERVATION = "status IN ('approved', 'arrived', 'confirmed', 'counter_offered', 'pending', 'seated')"
LIVE_PAYMENT = "status != 'cancelled'"


def upgrade() -> None:
    # Create restaurant_settings table (single row)
    op.create_table(
        'restaurant_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('config_json', sa.JSON(), nullable=False),
        sa.Column('updated_by', sa.String(255)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create restaurant_tables table
    op.create_table(
        'restaurant_tables',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('min_capacity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_capacity', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('section', sa.String(50)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create day_overrides table
    op.create_table(
        'day_overrides',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('date', sa.Date(), unique=True, nullable=False),
        sa.Column('is_closed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('open_time', sa.String(5)),
        sa.Column('close_time', sa.String(5)),
        sa.Column('max_covers', sa.Integer()),
        sa.Column('reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create guests table
    op.create_table(
        'guests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('phone', sa.String(20), unique=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('notes', sa.Text()),
        sa.Column('total_visits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_no_shows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_covers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('first_visit_date', sa.Date()),
        sa.Column('last_visit_date', sa.Date()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create reservations table
    op.create_table(
        'reservations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(12), unique=True, nullable=False),
        sa.Column('guest_id', sa.Uuid(), sa.ForeignKey('guests.id')),
        sa.Column('guest_name', sa.String(255), nullable=False),
        sa.Column('guest_phone', sa.String(20)),
        sa.Column('guest_email', sa.String(255)),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('duration_min', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('source', sa.String(20), nullable=False, server_default='widget'),
        sa.Column('table_id', sa.Uuid(), sa.ForeignKey('restaurant_tables.id')),
        sa.Column('requires_deposit', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deposit_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('special_requests', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('original_time', sa.String(5)),
        sa.Column('counter_expires_at', sa.DateTime()),
        sa.Column('approved_at', sa.DateTime()),
        sa.Column('confirmed_at', sa.DateTime()),
        sa.Column('arrived_at', sa.DateTime()),
        sa.Column('seated_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('cancelled_at', sa.DateTime()),
        sa.Column('reminder_sent_at', sa.DateTime()),
        sa.Column('created_by', sa.String(255)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create reservation_payments table
    op.create_table(
        'reservation_payments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reservation_id', sa.Uuid(), sa.ForeignKey('reservations.id'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('amount_captured', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_refunded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('processor_intent_id', sa.String(255), unique=True),
        sa.Column('processor_status', sa.String(50)),
        sa.Column('failure_reason', sa.Text()),
        sa.Column('captured_at', sa.DateTime()),
        sa.Column('released_at', sa.DateTime()),
        sa.Column('refunded_at', sa.DateTime()),
        sa.Column('cancelled_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create waitlist_entries table
    op.create_table(
        'waitlist_entries',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('guest_id', sa.Uuid(), sa.ForeignKey('guests.id')),
        sa.Column('guest_name', sa.String(255), nullable=False),
        sa.Column('guest_phone', sa.String(20), nullable=False),
        sa.Column('guest_email', sa.String(255)),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('status', sa.String(20), nullable=False, server_default='waiting'),
        sa.Column('position', sa.Integer()),
        sa.Column('estimated_wait', sa.Integer()),
        sa.Column('reservation_id', sa.Uuid(), sa.ForeignKey('reservations.id')),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.Column('notified_at', sa.DateTime()),
        sa.Column('seated_at', sa.DateTime()),
        sa.Column('left_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('actor_type', sa.String(50)),
        sa.Column('actor_name', sa.String(255)),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource_type', sa.String(50)),
        sa.Column('resource_id', sa.Uuid()),
        sa.Column('data_json', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create notification_logs table
    op.create_table(
        'notification_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('template', sa.String(50), nullable=False),
        sa.Column('channel', sa.String(20), nullable=False, server_default='sms'),
        sa.Column('recipient', sa.String(50), nullable=False),
        sa.Column('body', sa.Text()),
        sa.Column('variables_json', sa.JSON()),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('provider_message_id', sa.String(64)),
        sa.Column('error', sa.Text()),
        sa.Column('reservation_id', sa.Uuid()),
        sa.Column('waitlist_entry_id', sa.Uuid()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_reservations_date', 'reservations', ['date'])
    op.create_index('ix_reservations_status', 'reservations', ['status'])
    op.create_index(
        'uq_reservations_active_phone_slot',
        'reservations',
        ['guest_phone', 'date', 'time'],
        unique=True,
        postgresql_where=sa.text(ACTIVE_RESERVATION),
    )
    op.create_index('ix_reservation_payments_reservation_id', 'reservation_payments', ['reservation_id'])
    op.create_index(
        'uq_reservation_payments_live',
        'reservation_payments',
        ['reservation_id'],
        unique=True,
        postgresql_where=sa.text(LIVE_PAYMENT),
    )
    op.create_index('ix_waitlist_entries_status', 'waitlist_entries', ['status'])
    op.create_index('ix_waitlist_entries_guest_phone', 'waitlist_entries', ['guest_phone'])


def downgrade() -> None:
    op.drop_index('ix_waitlist_entries_guest_phone')
    op.drop_index('ix_waitlist_entries_status')
    op.drop_index('uq_reservation_payments_live')
    op.drop_index('ix_reservation_payments_reservation_id')
    op.drop_index('uq_reservations_active_phone_slot')
    op.drop_index('ix_reservations_status')
    op.drop_index('ix_reservations_date')

    op.drop_table('notification_logs')
    op.drop_table('audit_logs')
    op.drop_table('waitlist_entries')
    op.drop_table('reservation_payments')
    op.drop_table('reservations')
    op.drop_table('guests')
    op.drop_table('day_overrides')
    op.drop_table('restaurant_tables')
    op.drop_table('restaurant_settings')
