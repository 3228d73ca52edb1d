"""Create credentials table

Revision ID: 0001_credentials
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_credentials'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create credentials table holding app secrets and Oceanengine token sets."""
    op.create_table(
        'credentials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.String(length=128), nullable=False),
        sa.Column('app_id', sa.String(length=64), nullable=False),
        sa.Column('app_secret_encrypted', sa.Text(), nullable=False),
        sa.Column('authorization_code', sa.Text(), nullable=True),
        sa.Column('access_token_encrypted', sa.Text(), nullable=True),
        sa.Column('refresh_token_encrypted', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_index('ix_credentials_id', 'credentials', ['id'])
    op.create_index('ix_credentials_owner_id', 'credentials', ['owner_id'])
    op.create_index('ix_credentials_expires', 'credentials', ['expires_at'])

    # One credential per owner per app
    op.create_index(
        'ix_credentials_owner_app',
        'credentials',
        ['owner_id', 'app_id'],
        unique=True
    )


def downgrade() -> None:
    """Drop credentials table."""
    op.drop_index('ix_credentials_owner_app', table_name='credentials')
    op.drop_index('ix_credentials_expires', table_name='credentials')
    op.drop_index('ix_credentials_owner_id', table_name='credentials')
    op.drop_index('ix_credentials_id', table_name='credentials')
    op.drop_table('credentials')
