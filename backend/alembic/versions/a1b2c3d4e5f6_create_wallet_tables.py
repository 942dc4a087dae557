"""create users, wallets and transactions

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

from vencura.models.types import Amount

revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'wallets',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label', sa.String(100), nullable=False),
        sa.Column('address', sa.String(42), nullable=False, unique=True),
        sa.Column('public_key', sa.String(132), nullable=False),
        sa.Column('private_key_encrypted', sa.Text(), nullable=False),
        sa.Column('balance', Amount(), nullable=True),
        sa.Column('chain', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('balance IS NULL OR balance >= 0', name='ck_wallets_balance_non_negative'),
    )
    op.create_index('ix_wallets_user_id', 'wallets', ['user_id'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('hash', sa.String(66), nullable=False),
        sa.Column('from_wallet_id', sa.String(36), nullable=True),
        sa.Column('to_text', sa.Text(), nullable=False),
        sa.Column('amount', Amount(), nullable=False),
        sa.Column('memo', sa.Text(), nullable=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_transactions_from_wallet', 'transactions', ['from_wallet_id'])
    op.create_index('ix_transactions_to_text', 'transactions', ['to_text'])


def downgrade() -> None:
    op.drop_table('transactions')
    op.drop_table('wallets')
    op.drop_table('users')
