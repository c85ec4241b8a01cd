"""create_storage_slots

Revision ID: 3f1a9c2e7b04
Revises:
Create Date: 2026-10-19 09:14:02.118402

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3f1a9c2e7b04"
down_revision: str | None = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "storage_slots",
        sa.Column("key", sa.String(length=200), primary_key=True),
        sa.Column(
            "records",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("storage_slots")
