"""Initial schema: signer idempotency table.

Revision ID: 001_initial
Revises:
Create Date: 2024-12-04

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One row per (endpoint, idempotency key); never updated or deleted
    op.create_table(
        'signer_idempotency',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('endpoint', sa.String(32), nullable=False),
        sa.Column('idempotency_key', sa.String(255), nullable=False),
        sa.Column('tx_id', sa.String(128), nullable=False),
        sa.Column('from_address', sa.String(64), nullable=True),
        sa.Column('request_fingerprint', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('endpoint', 'idempotency_key', name='uq_signer_idempotency_endpoint_key')
    )


def downgrade() -> None:
    op.drop_table('signer_idempotency')
