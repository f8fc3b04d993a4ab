"""Reservation core schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create tour_packages table
    op.create_table('tour_packages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('trip_type', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tour_packages_slug'), 'tour_packages', ['slug'], unique=True)

    # Create departures table
    op.create_table('departures',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('package_id', sa.Uuid(), nullable=False),
        sa.Column('departure_date', sa.DateTime(), nullable=False),
        sa.Column('price_per_person', sa.Integer(), nullable=True),
        sa.Column('max_participants', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('price_per_person IS NULL OR price_per_person >= 0', name='ck_departure_price_non_negative'),
        sa.CheckConstraint('max_participants IS NULL OR max_participants > 0', name='ck_departure_max_participants_positive'),
        sa.ForeignKeyConstraint(['package_id'], ['tour_packages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_departures_departure_date'), 'departures', ['departure_date'], unique=False)
    op.create_index(op.f('ix_departures_package_id'), 'departures', ['package_id'], unique=False)

    # Create departure_groups table
    op.create_table('departure_groups',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('departure_id', sa.Uuid(), nullable=False),
        sa.Column('group_number', sa.Integer(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('is_booked', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('price >= 0', name='ck_departure_group_price_non_negative'),
        sa.CheckConstraint('max_participants > 0', name='ck_departure_group_max_participants_positive'),
        sa.ForeignKeyConstraint(['departure_id'], ['departures.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('departure_id', 'group_number', name='uq_departure_group_number')
    )
    op.create_index(op.f('ix_departure_groups_departure_id'), 'departure_groups', ['departure_id'], unique=False)

    # Create participants table
    op.create_table('participants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('gender', sa.String(length=10), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('id_number', sa.String(length=32), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('domicile', sa.String(length=100), nullable=True),
        sa.Column('health_history', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(full_name) > 0', name='ck_participant_full_name_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_participants_id_number'), 'participants', ['id_number'], unique=False)
    op.create_index(op.f('ix_participants_user_id'), 'participants', ['user_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('departure_id', sa.Uuid(), nullable=False),
        sa.Column('departure_group_id', sa.Uuid(), nullable=True),
        sa.Column('trip_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('participant_count', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('payment_deadline', sa.DateTime(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('payment_token', sa.String(length=255), nullable=True),
        sa.Column('payment_url', sa.Text(), nullable=True),
        sa.Column('payment_order_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('participant_count > 0', name='ck_booking_participant_count_positive'),
        sa.CheckConstraint('total_amount >= 0', name='ck_booking_total_amount_non_negative'),
        sa.CheckConstraint('length(code) > 0', name='ck_booking_code_not_empty'),
        sa.CheckConstraint('length(user_id) > 0', name='ck_booking_user_id_not_empty'),
        sa.ForeignKeyConstraint(['departure_id'], ['departures.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['departure_group_id'], ['departure_groups.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_order_id')
    )
    op.create_index(op.f('ix_bookings_code'), 'bookings', ['code'], unique=True)
    op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
    op.create_index(op.f('ix_bookings_departure_id'), 'bookings', ['departure_id'], unique=False)
    op.create_index(op.f('ix_bookings_departure_group_id'), 'bookings', ['departure_group_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_payment_deadline'), 'bookings', ['payment_deadline'], unique=False)

    # Create booking_participants table
    op.create_table('booking_participants',
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('participant_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['participant_id'], ['participants.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('booking_id', 'participant_id')
    )
    op.create_index(op.f('ix_booking_participants_participant_id'), 'booking_participants', ['participant_id'], unique=False)

    # Create custom_tour_requests table
    op.create_table('custom_tour_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('request_code', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('destination', sa.String(length=255), nullable=False),
        sa.Column('duration', sa.String(length=100), nullable=False),
        sa.Column('departure_date', sa.DateTime(), nullable=False),
        sa.Column('meeting_point', sa.String(length=255), nullable=False),
        sa.Column('participant_count', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('estimated_price', sa.Integer(), nullable=True),
        sa.Column('final_price', sa.Integer(), nullable=True),
        sa.Column('tour_guide_id', sa.String(length=128), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('participant_count > 0', name='ck_custom_request_participant_count_positive'),
        sa.CheckConstraint('estimated_price IS NULL OR estimated_price >= 0', name='ck_custom_request_estimate_non_negative'),
        sa.CheckConstraint('final_price IS NULL OR final_price >= 0', name='ck_custom_request_final_price_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_custom_tour_requests_request_code'), 'custom_tour_requests', ['request_code'], unique=True)
    op.create_index(op.f('ix_custom_tour_requests_user_id'), 'custom_tour_requests', ['user_id'], unique=False)
    op.create_index(op.f('ix_custom_tour_requests_status'), 'custom_tour_requests', ['status'], unique=False)
    op.create_index(op.f('ix_custom_tour_requests_tour_guide_id'), 'custom_tour_requests', ['tour_guide_id'], unique=False)

    # Create price_estimate_history table
    op.create_table('price_estimate_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('request_id', sa.Uuid(), nullable=False),
        sa.Column('estimated_price', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('estimated_price >= 0', name='ck_price_estimate_non_negative'),
        sa.ForeignKeyConstraint(['request_id'], ['custom_tour_requests.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_price_estimate_history_request_id'), 'price_estimate_history', ['request_id'], unique=False)
    op.create_index(op.f('ix_price_estimate_history_created_at'), 'price_estimate_history', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('price_estimate_history')
    op.drop_table('custom_tour_requests')
    op.drop_table('booking_participants')
    op.drop_table('bookings')
    op.drop_table('participants')
    op.drop_table('departure_groups')
    op.drop_table('departures')
    op.drop_table('tour_packages')
