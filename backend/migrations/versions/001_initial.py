"""Initial schema: users, invitations, QR codes, scans, templates.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def design_columns() -> list[sa.Column]:
    return [
        sa.Column('design_frame', sa.Integer(), nullable=True),
        sa.Column('design_shape', sa.Integer(), nullable=True),
        sa.Column('design_logo', sa.Integer(), nullable=True),
        sa.Column('design_level', sa.Integer(), nullable=True),
        sa.Column('design_dot_style', sa.Integer(), nullable=True),
        sa.Column('design_bg_color', sa.String(20), nullable=True),
        sa.Column('design_outer_border', sa.Integer(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='admin'),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('invited_by_id', sa.String(32), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'invitations',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, index=True),
        sa.Column('token', sa.String(64), nullable=False, unique=True, index=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('invited_by_id', sa.String(32), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('email', 'invited_by_id', name='uq_invitations_email_invited_by'),
    )

    op.create_table(
        'qr_codes',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('slug', sa.String(32), nullable=False, unique=True, index=True),
        sa.Column('original_url', sa.Text(), nullable=False),
        sa.Column('dynamic', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('bulk', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('error_correction', sa.String(1), nullable=False, server_default='M'),
        sa.Column('format', sa.String(10), nullable=False, server_default='PNG'),
        *design_columns(),
        sa.Column('owner_id', sa.String(32), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'scans',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('qr_id', sa.String(32), sa.ForeignKey('qr_codes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('ip', sa.String(64), nullable=True),
        sa.Column('ua', sa.Text(), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('region', sa.String(100), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True),
    )

    op.create_table(
        'templates',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *design_columns(),
        sa.Column('owner_id', sa.String(32), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('templates')
    op.drop_table('scans')
    op.drop_table('qr_codes')
    op.drop_table('invitations')
    op.drop_table('users')
