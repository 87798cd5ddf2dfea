"""create requisition tables

Revision ID: 3a9c1e4b7d20
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3a9c1e4b7d20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "requisitions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("reference_number", sa.String(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subject", sa.String(), nullable=False, server_default=""),
        sa.Column("summary", sa.Text(), nullable=False, server_default=""),
        sa.Column("tin_number", sa.String(), nullable=False, server_default=""),
        sa.Column("bin_nid", sa.String(), nullable=False, server_default=""),
        sa.Column("budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("accounts_person_id", sa.String(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="Draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_requisitions_id", "requisitions", ["id"], unique=False)
    op.create_index("ix_requisitions_reference_number", "requisitions", ["reference_number"], unique=False)
    op.create_index("ix_requisitions_created_by", "requisitions", ["created_by"], unique=False)
    op.create_index("ix_requisitions_status", "requisitions", ["status"], unique=False)
    op.create_index("ix_requisitions_created_at", "requisitions", ["created_at"], unique=False)

    op.create_table(
        "requisition_approvers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("requisition_id", sa.String(), sa.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("approver_id", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("requisition_id", "approver_id", name="uq_requisition_approver"),
    )
    op.create_index("ix_requisition_approvers_requisition_id", "requisition_approvers", ["requisition_id"], unique=False)
    op.create_index("ix_requisition_approvers_approver_id", "requisition_approvers", ["approver_id"], unique=False)

    op.create_table(
        "approval_actions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("requisition_id", sa.String(), sa.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("approver_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("action_date", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("requisition_id", "approver_id", name="uq_approval_action_approver"),
    )
    op.create_index("ix_approval_actions_requisition_id", "approval_actions", ["requisition_id"], unique=False)
    op.create_index("ix_approval_actions_approver_id", "approval_actions", ["approver_id"], unique=False)

    op.create_table(
        "file_attachments",
        sa.Column("pk", sa.Integer(), nullable=False),
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("requisition_id", sa.String(), sa.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("upload_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("file_type", sa.String(), nullable=True),
        sa.Column("file_url", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("pk"),
    )
    op.create_index("ix_file_attachments_id", "file_attachments", ["id"], unique=False)
    op.create_index("ix_file_attachments_requisition_id", "file_attachments", ["requisition_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_file_attachments_requisition_id", table_name="file_attachments")
    op.drop_index("ix_file_attachments_id", table_name="file_attachments")
    op.drop_table("file_attachments")
    op.drop_index("ix_approval_actions_approver_id", table_name="approval_actions")
    op.drop_index("ix_approval_actions_requisition_id", table_name="approval_actions")
    op.drop_table("approval_actions")
    op.drop_index("ix_requisition_approvers_approver_id", table_name="requisition_approvers")
    op.drop_index("ix_requisition_approvers_requisition_id", table_name="requisition_approvers")
    op.drop_table("requisition_approvers")
    op.drop_index("ix_requisitions_created_at", table_name="requisitions")
    op.drop_index("ix_requisitions_status", table_name="requisitions")
    op.drop_index("ix_requisitions_created_by", table_name="requisitions")
    op.drop_index("ix_requisitions_reference_number", table_name="requisitions")
    op.drop_index("ix_requisitions_id", table_name="requisitions")
    op.drop_table("requisitions")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
