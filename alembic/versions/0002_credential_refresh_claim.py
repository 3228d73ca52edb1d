"""Add refresh claim columns to credentials

Revision ID: 0002_credential_refresh_claim
Revises: 0001_credentials
Create Date: 2026-10-18 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0002_credential_refresh_claim'
down_revision: Union[str, None] = '0001_credentials'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add the lease columns API and worker processes use to serialize refreshes."""
    op.add_column('credentials', sa.Column('refresh_locked_by', sa.String(length=64), nullable=True))
    op.add_column('credentials', sa.Column('refresh_locked_until', sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    """Drop refresh claim columns."""
    op.drop_column('credentials', 'refresh_locked_until')
    op.drop_column('credentials', 'refresh_locked_by')
