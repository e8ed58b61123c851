"""Add bio, location and website to users

Revision ID: 5c7e9a1b3d2f
Revises: 0a1c3e5f7b9d
Create Date: 2026-10-19 14:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c7e9a1b3d2f"
down_revision: str | Sequence[str] | None = "0a1c3e5f7b9d"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    with op.batch_alter_table("users") as batch:
        batch.add_column(sa.Column("bio", sa.String(500)))
        batch.add_column(sa.Column("location", sa.String(200)))
        batch.add_column(sa.Column("website", sa.String(500)))


def downgrade() -> None:
    with op.batch_alter_table("users") as batch:
        batch.drop_column("website")
        batch.drop_column("location")
        batch.drop_column("bio")
