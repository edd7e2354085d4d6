"""comment attachments

Revision ID: 0002_comment_attachments
Revises: 0001_init
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_comment_attachments"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "comment_attachments",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("comment_id", sa.String(36), sa.ForeignKey("task_comments.id"), nullable=False),
    sa.Column("storage_path", sa.String(), nullable=False),
    sa.Column("file_name", sa.String(), nullable=False),
    sa.Column("mime_type", sa.String(), nullable=False),
    sa.Column("file_size", sa.Integer(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_comment_attachments_comment_id", "comment_attachments", ["comment_id"], unique=False)


def downgrade() -> None:
  op.drop_index("ix_comment_attachments_comment_id", table_name="comment_attachments")
  op.drop_table("comment_attachments")
