"""Create exchange_rates table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the append-only exchange rate log."""
    op.create_table(
        'exchange_rates',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('from_currency', sa.String(length=3), nullable=False, server_default='AUD'),
        sa.Column('to_currency', sa.String(length=3), nullable=False, server_default='LKR'),
        sa.Column('rate', sa.Numeric(18, 6), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    )

    # Latest-rate lookups filter by pair and sort by timestamp
    op.create_index(
        'idx_exchange_rates_pair_timestamp',
        'exchange_rates',
        ['from_currency', 'to_currency', 'timestamp'],
    )


def downgrade() -> None:
    """Drop the exchange rate log."""
    op.drop_index('idx_exchange_rates_pair_timestamp', table_name='exchange_rates')
    op.drop_table('exchange_rates')
