"""
Add read flag and notes to items.

Revision ID: c41d7e2a9f05
Revises: 9f2c4e1a7b3d
Create Date: 2026-10-20 09:12:37.504811
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "c41d7e2a9f05"
down_revision: str | Sequence[str] | None = "9f2c4e1a7b3d"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    # batch mode so SQLite can add the NOT NULL column with its server default
    with op.batch_alter_table("items") as batch_op:
        batch_op.add_column(
            sa.Column("read", sa.Boolean(), server_default=sa.false(), nullable=False),
        )
        batch_op.add_column(sa.Column("notes", sa.Text(), nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table("items") as batch_op:
        batch_op.drop_column("notes")
        batch_op.drop_column("read")
