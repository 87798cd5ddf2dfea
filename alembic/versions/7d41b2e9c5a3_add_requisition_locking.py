"""add requisition lock version and reference sequences

Revision ID: 7d41b2e9c5a3
Revises: 3a9c1e4b7d20
Create Date: 2026-10-19 14:10:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "7d41b2e9c5a3"
down_revision: Union[str, Sequence[str], None] = "3a9c1e4b7d20"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column(
        "requisitions",
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "reference_sequences",
        sa.Column("year", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("year"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("reference_sequences")
    with op.batch_alter_table("requisitions") as batch_op:
        batch_op.drop_column("lock_version")
