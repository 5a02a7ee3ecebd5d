"""Remember the board item a failed operation had already produced

Revision ID: 0002_failure_item_id
Revises: 0001_initial_schema
Create Date: 2026-10-19 09:41:07.512880

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002_failure_item_id"
down_revision: str | None = "0001_initial_schema"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    with op.batch_alter_table("sync_failure") as batch_op:
        batch_op.add_column(sa.Column("item_id", sa.String(length=32), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("sync_failure") as batch_op:
        batch_op.drop_column("item_id")
