"""users, cars and inquiries

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 10:00:00

"""
from alembic import op
import sqlalchemy as sa

revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


user_role = sa.Enum('admin', 'customer', name='user_role')
fuel_type = sa.Enum('gasoline', 'diesel', 'electric', 'hybrid', name='fuel_type')
transmission = sa.Enum('manual', 'automatic', name='transmission')
inquiry_status = sa.Enum('pending', 'responded', 'closed', name='inquiry_status')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='customer'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'cars',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('make', sa.String(50), nullable=False),
        sa.Column('model', sa.String(50), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('mileage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('color', sa.String(30)),
        sa.Column('fuel_type', fuel_type, nullable=False, server_default='gasoline'),
        sa.Column('transmission', transmission, nullable=False, server_default='manual'),
        sa.Column('description', sa.Text()),
        sa.Column('image_url', sa.String(500)),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_cars_make', 'cars', ['make'])
    op.create_index('ix_cars_is_available', 'cars', ['is_available'])
    op.create_index('ix_cars_created_at', 'cars', ['created_at'])

    op.create_table(
        'inquiries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('car_id', sa.Integer(), sa.ForeignKey('cars.id', ondelete='CASCADE'), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', inquiry_status, nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_inquiries_user_id', 'inquiries', ['user_id'])
    op.create_index('ix_inquiries_car_id', 'inquiries', ['car_id'])
    op.create_index('ix_inquiries_created_at', 'inquiries', ['created_at'])


def downgrade() -> None:
    op.drop_table('inquiries')
    op.drop_table('cars')
    op.drop_table('users')
    inquiry_status.drop(op.get_bind(), checkfirst=True)
    transmission.drop(op.get_bind(), checkfirst=True)
    fuel_type.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
