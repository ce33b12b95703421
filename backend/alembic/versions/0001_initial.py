"""initial schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('image', sa.String(length=1024), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_table('tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vendor_email', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('from_location', sa.String(length=128), nullable=False),
        sa.Column('to_location', sa.String(length=128), nullable=False),
        sa.Column('transport_type', sa.String(length=32), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=False),
        sa.Column('departure_time', sa.String(length=8), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('perks', sa.JSON(), nullable=False),
        sa.Column('image', sa.String(length=1024), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('is_advertised', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity >= 0', name='ck_tickets_quantity_non_negative'),
    )
    op.create_index('ix_tickets_vendor_email', 'tickets', ['vendor_email'])
    op.create_index('ix_tickets_from_location', 'tickets', ['from_location'])
    op.create_index('ix_tickets_to_location', 'tickets', ['to_location'])
    op.create_index('ix_tickets_transport_type', 'tickets', ['transport_type'])
    op.create_index('ix_tickets_departure_date', 'tickets', ['departure_date'])
    op.create_index('ix_tickets_status', 'tickets', ['status'])
    op.create_table('bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id', ondelete='SET NULL'), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=False),
        sa.Column('vendor_email', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('transaction_id', sa.String(length=255), nullable=True),
        sa.Column('booked_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_bookings_ticket_id', 'bookings', ['ticket_id'])
    op.create_index('ix_bookings_user_email', 'bookings', ['user_email'])
    op.create_index('ix_bookings_vendor_email', 'bookings', ['vendor_email'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    op.create_table('payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='SET NULL'), nullable=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id', ondelete='SET NULL'), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=False),
        sa.Column('vendor_email', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=255), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('transaction_id'),
    )
    op.create_index('ix_payments_booking_id', 'payments', ['booking_id'])
    op.create_index('ix_payments_ticket_id', 'payments', ['ticket_id'])
    op.create_index('ix_payments_user_email', 'payments', ['user_email'])
    op.create_index('ix_payments_vendor_email', 'payments', ['vendor_email'])
    op.create_table('advertisement_slots',
        sa.Column('slot', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id', ondelete='SET NULL'), nullable=True),
        sa.UniqueConstraint('ticket_id'),
    )
    # Slots themselves are created on startup from ADVERTISE_LIMIT

def downgrade():
    op.drop_table('advertisement_slots')
    op.drop_table('payments')
    op.drop_table('bookings')
    op.drop_table('tickets')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
