"""create scheduling tables

Revision ID: 5c1d7a2e9f40
Revises:
Create Date: 2026-10-17 10:12:41.503118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5c1d7a2e9f40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

service_type = postgresql.ENUM('individual', 'class', 'recurring', name='service_type', create_type=False)
appointment_status = postgresql.ENUM(
    'scheduled', 'confirmed', 'completed', 'canceled', name='appointment_status', create_type=False
)
payment_status = postgresql.ENUM('unpaid', 'pending', 'paid', 'refunded', name='payment_status', create_type=False)


def upgrade() -> None:
    """Upgrade schema."""

    bind = op.get_bind()
    service_type.create(bind, checkfirst=True)
    appointment_status.create(bind, checkfirst=True)
    payment_status.create(bind, checkfirst=True)

    # 1. Tenants
    op.create_table(
        'businesses',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='America/Santiago'),
        sa.Column('slot_granularity_minutes', sa.Integer, nullable=True),
        sa.Column('require_upfront_payment', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('auto_confirm_on_payment', sa.Boolean, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('is_active', sa.Boolean, server_default=sa.text('true'))
    )

    op.create_table(
        'staff',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_staff_business_id', 'staff', ['business_id'])

    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_customers_business_id', 'customers', ['business_id'])

    op.create_table(
        'customer_access_tokens',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('token', sa.String(255), nullable=False),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_customer_access_tokens_token', 'customer_access_tokens', ['token'], unique=True)

    # 2. Services
    op.create_table(
        'services',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('duration_minutes', sa.Integer, nullable=False),
        sa.Column('capacity', sa.Integer, nullable=False, server_default='1'),
        sa.Column('service_type', service_type, nullable=False, server_default='individual'),
        sa.Column('recurring_days', sa.JSON, nullable=True),
        sa.Column('recurring_times', sa.JSON, nullable=True),
        sa.Column('sessions_per_month', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'))
    )
    op.create_index('ix_services_business_id', 'services', ['business_id'])
    op.create_index('ix_services_is_active', 'services', ['is_active'])

    # 3. Availability Store
    op.create_table(
        'staff_availability',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('staff_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('staff.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer, nullable=False),
        sa.Column('start_time', sa.Time, nullable=False),
        sa.Column('end_time', sa.Time, nullable=False),
        sa.Column('is_available', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.UniqueConstraint('staff_id', 'day_of_week', name='uq_staff_availability_staff_day'),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_staff_availability_day_range')
    )
    op.create_index('ix_staff_availability_staff_id', 'staff_availability', ['staff_id'])

    # 4. Appointments and the Booking Ledger
    op.create_table(
        'appointments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id'), nullable=False),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('staff_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('staff.id'), nullable=False),
        sa.Column('service_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('date', sa.DateTime(timezone=False), nullable=False),
        sa.Column('duration_minutes', sa.Integer, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('status', appointment_status, nullable=False, server_default='scheduled'),
        sa.Column('payment_status', payment_status, nullable=False, server_default='unpaid'),
        sa.Column('reminder_sent', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text, nullable=True)
    )
    op.create_index('ix_appointments_customer_id', 'appointments', ['customer_id'])
    op.create_index('ix_appointments_staff_date', 'appointments', ['staff_id', 'date'])
    op.create_index('ix_appointments_business_date', 'appointments', ['business_id', 'date'])

    op.create_table(
        'appointment_slot_claims',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('appointment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('staff_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('staff.id'), nullable=False),
        sa.Column('bucket_start', sa.DateTime(timezone=False), nullable=False),
        sa.Column('slot_index', sa.Integer, nullable=False),
        sa.UniqueConstraint('staff_id', 'bucket_start', 'slot_index', name='uq_slot_claim_unit')
    )
    op.create_index('ix_appointment_slot_claims_appointment_id', 'appointment_slot_claims', ['appointment_id'])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table('appointment_slot_claims')
    op.drop_table('appointments')
    op.drop_table('staff_availability')
    op.drop_table('services')
    op.drop_table('customer_access_tokens')
    op.drop_table('customers')
    op.drop_table('staff')
    op.drop_table('businesses')

    bind = op.get_bind()
    payment_status.drop(bind, checkfirst=True)
    appointment_status.drop(bind, checkfirst=True)
    service_type.drop(bind, checkfirst=True)
