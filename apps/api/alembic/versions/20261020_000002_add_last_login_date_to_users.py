"""add last_login_date to users

Revision ID: 20261020_000002
Revises: 20261019_000001
Create Date: 2026-10-20 00:00:02.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261020_000002"
down_revision: Union[str, None] = "20261019_000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("users", sa.Column("last_login_date", sa.Date(), nullable=True))


def downgrade() -> None:
    op.drop_column("users", "last_login_date")
