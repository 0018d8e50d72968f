"""Session snapshots table

Revision ID: 001_session_snapshots
Revises:
Create Date: 2026-02-05

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_session_snapshots"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One row per saved version of the check-in session document
    op.create_table(
        "session_snapshots",
        sa.Column("version", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("state", sa.JSON, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_session_snapshots_session_id", "session_snapshots", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_session_snapshots_session_id", table_name="session_snapshots")
    op.drop_table("session_snapshots")
