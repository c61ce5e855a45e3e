"""Add email verification, password reset and email change tokens to users

Revision ID: 002_add_account_tokens
Revises: 001_initial
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002_add_account_tokens'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TOKEN_COLUMNS = ('email_verification_token', 'password_reset_token', 'new_email_token')


def upgrade() -> None:
    op.add_column('users', sa.Column('email_verification_token', sa.String(64), nullable=True))
    op.add_column('users', sa.Column('email_verification_expires', sa.DateTime(), nullable=True))
    op.add_column('users', sa.Column('password_reset_token', sa.String(64), nullable=True))
    op.add_column('users', sa.Column('password_reset_expires', sa.DateTime(), nullable=True))
    op.add_column('users', sa.Column('new_email', sa.String(255), nullable=True))
    op.add_column('users', sa.Column('new_email_token', sa.String(64), nullable=True))
    op.add_column('users', sa.Column('new_email_token_expires', sa.DateTime(), nullable=True))

    for column in TOKEN_COLUMNS:
        op.create_unique_constraint(f'uq_users_{column}', 'users', [column])


def downgrade() -> None:
    for column in TOKEN_COLUMNS:
        op.drop_constraint(f'uq_users_{column}', 'users', type_='unique')

    op.drop_column('users', 'new_email_token_expires')
    op.drop_column('users', 'new_email_token')
    op.drop_column('users', 'new_email')
    op.drop_column('users', 'password_reset_expires')
    op.drop_column('users', 'password_reset_token')
    op.drop_column('users', 'email_verification_expires')
    op.drop_column('users', 'email_verification_token')
