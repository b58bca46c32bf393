"""Initial booking core schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Tables:
- Core: users, room_types, rate_plans, inventory, bookings
- Loyalty: loyalty_ledger
- Channel: channel_mappings, provider_payloads
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all database tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='GUEST'),
        sa.Column('points', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tier', sa.String(20), nullable=False, server_default='BRONZE'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'room_types',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('capacity', sa.Integer, nullable=False, server_default='2'),
        sa.Column('amenities', sa.JSON, nullable=True),
        sa.Column('images', sa.JSON, nullable=True),
        sa.Column('base_rate', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        'rate_plans',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('is_refundable', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('discount_percent', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        'inventory',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('room_type_id', sa.String(36), sa.ForeignKey('room_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('allotment', sa.Integer, nullable=False, server_default='0'),
        sa.Column('booked', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('room_type_id', 'date', name='uq_inventory_room_type_date'),
    )
    op.create_index('ix_inventory_room_type_date', 'inventory', ['room_type_id', 'date'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('room_type_id', sa.String(36), sa.ForeignKey('room_types.id'), nullable=False),
        sa.Column('check_in', sa.Date, nullable=False),
        sa.Column('check_out', sa.Date, nullable=False),
        sa.Column('guests', sa.Integer, nullable=False, server_default='1'),
        # Pricing snapshot (minor units)
        sa.Column('nights', sa.Integer, nullable=False, server_default='1'),
        sa.Column('room_total', sa.Integer, nullable=False, server_default='0'),
        sa.Column('service_charge', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tax_on_room', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tax_on_service', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Integer, nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('guest_name', sa.String(100), nullable=False),
        sa.Column('guest_email', sa.String(255), nullable=False),
        sa.Column('guest_phone', sa.String(20), nullable=True),
        sa.Column('payment_order_id', sa.String(100), nullable=True, unique=True),
        sa.Column('payment_id', sa.String(100), nullable=True),
        sa.Column('paid_at', sa.DateTime, nullable=True),
        sa.Column('cancelled_at', sa.DateTime, nullable=True),
        sa.Column('refund_amount', sa.Integer, nullable=True),
        # Provenance
        sa.Column('source', sa.String(20), nullable=False, server_default='direct'),
        sa.Column('provider', sa.String(50), nullable=True),
        sa.Column('external_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('provider', 'external_id', name='uq_booking_provider_external_id'),
    )
    op.create_index('ix_booking_status', 'bookings', ['status'])
    op.create_index('ix_booking_room_type_dates', 'bookings', ['room_type_id', 'check_in', 'check_out'])

    op.create_table(
        'loyalty_ledger',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('points', sa.Integer, nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('booking_id', sa.String(36), sa.ForeignKey('bookings.id', ondelete='SET NULL'), nullable=True),
        sa.Column('note', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_loyalty_ledger_user_created', 'loyalty_ledger', ['user_id', 'created_at'])

    op.create_table(
        'channel_mappings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('room_type_id', sa.String(36), sa.ForeignKey('room_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('external_room_code', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('room_type_id', 'provider', name='uq_channel_mapping_room_type_provider'),
    )
    op.create_index('ix_channel_mapping_provider_code', 'channel_mappings', ['provider', 'external_room_code'])

    op.create_table(
        'provider_payloads',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('operation', sa.String(30), nullable=False),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('request_payload', sa.JSON, nullable=True),
        sa.Column('response_payload', sa.JSON, nullable=True),
        sa.Column('success', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('attempt', sa.Integer, nullable=False, server_default='1'),
        sa.Column('duration_ms', sa.Integer, nullable=True),
        sa.Column('started_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_provider_payload_provider_created', 'provider_payloads', ['provider', 'created_at'])
    op.create_index('ix_provider_payload_operation', 'provider_payloads', ['provider', 'operation', 'success'])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table('provider_payloads')
    op.drop_table('channel_mappings')
    op.drop_table('loyalty_ledger')
    op.drop_table('bookings')
    op.drop_table('inventory')
    op.drop_table('rate_plans')
    op.drop_table('room_types')
    op.drop_table('users')
