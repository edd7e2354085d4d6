"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

ID = sa.String(36)
TS = sa.DateTime(timezone=True)
JSONDOC = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", ID, primary_key=True),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("display_name", sa.String(), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=False),
    sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("created_at", TS, nullable=False),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "sessions",
    sa.Column("id", ID, primary_key=True),
    sa.Column("user_id", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    sa.Column("created_at", TS, nullable=False),
    sa.Column("expires_at", TS, nullable=False),
  )
  op.create_index("ix_sessions_user_id", "sessions", ["user_id"], unique=False)

  op.create_table(
    "teams",
    sa.Column("id", ID, primary_key=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("created_by", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", TS, nullable=False),
  )

  op.create_table(
    "team_members",
    sa.Column("id", ID, primary_key=True),
    sa.Column("team_id", ID, sa.ForeignKey("teams.id"), nullable=False),
    sa.Column("user_id", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("created_at", TS, nullable=False),
    sa.UniqueConstraint("team_id", "user_id", name="ux_team_members_team_user"),
  )
  op.create_index("ix_team_members_team_id", "team_members", ["team_id"], unique=False)
  op.create_index("ix_team_members_user_id", "team_members", ["user_id"], unique=False)

  op.create_table(
    "invitations",
    sa.Column("id", ID, primary_key=True),
    sa.Column("team_id", ID, sa.ForeignKey("teams.id"), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("token_hash", sa.String(), nullable=False),
    sa.Column("invited_by", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("expires_at", TS, nullable=False),
    sa.Column("accepted_at", TS, nullable=True),
    sa.Column("accepted_by", ID, sa.ForeignKey("users.id"), nullable=True),
    sa.Column("created_at", TS, nullable=False),
  )
  op.create_index("ix_invitations_team_id", "invitations", ["team_id"], unique=False)
  op.create_index("ix_invitations_token_hash", "invitations", ["token_hash"], unique=True)

  op.create_table(
    "projects",
    sa.Column("id", ID, primary_key=True),
    sa.Column("team_id", ID, sa.ForeignKey("teams.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("created_by", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", TS, nullable=False),
    sa.Column("updated_at", TS, nullable=False),
  )
  op.create_index("ix_projects_team_id", "projects", ["team_id"], unique=False)

  op.create_table(
    "project_members",
    sa.Column("id", ID, primary_key=True),
    sa.Column("project_id", ID, sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("user_id", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("created_at", TS, nullable=False),
    sa.UniqueConstraint("project_id", "user_id", name="ux_project_members_project_user"),
  )
  op.create_index("ix_project_members_project_id", "project_members", ["project_id"], unique=False)
  op.create_index("ix_project_members_user_id", "project_members", ["user_id"], unique=False)

  op.create_table(
    "columns",
    sa.Column("id", ID, primary_key=True),
    sa.Column("project_id", ID, sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("sort_order", sa.Integer(), nullable=False),
    sa.Column("created_at", TS, nullable=False),
  )
  op.create_index("ix_columns_project_id", "columns", ["project_id"], unique=False)

  op.create_table(
    "milestones",
    sa.Column("id", ID, primary_key=True),
    sa.Column("project_id", ID, sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("due_date", sa.Date(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("sort_order", sa.Integer(), nullable=False),
    sa.Column("created_by", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", TS, nullable=False),
  )
  op.create_index("ix_milestones_project_id", "milestones", ["project_id"], unique=False)

  op.create_table(
    "tasks",
    sa.Column("id", ID, primary_key=True),
    sa.Column("project_id", ID, sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("column_id", ID, sa.ForeignKey("columns.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("priority", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("assignee_id", ID, sa.ForeignKey("users.id"), nullable=True),
    sa.Column("milestone_id", ID, sa.ForeignKey("milestones.id"), nullable=True),
    sa.Column("sort_order", sa.Integer(), nullable=False),
    sa.Column("created_by", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", TS, nullable=False),
    sa.Column("updated_at", TS, nullable=False),
  )
  op.create_index("ix_tasks_project_id", "tasks", ["project_id"], unique=False)
  op.create_index("ix_tasks_column_id", "tasks", ["column_id"], unique=False)

  op.create_table(
    "task_subtasks",
    sa.Column("id", ID, primary_key=True),
    sa.Column("task_id", ID, sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("is_done", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("sort_order", sa.Integer(), nullable=False),
    sa.Column("created_at", TS, nullable=False),
  )
  op.create_index("ix_task_subtasks_task_id", "task_subtasks", ["task_id"], unique=False)

  op.create_table(
    "task_comments",
    sa.Column("id", ID, primary_key=True),
    sa.Column("task_id", ID, sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("author_id", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("parent_comment_id", ID, sa.ForeignKey("task_comments.id"), nullable=True),
    sa.Column("body", sa.Text(), nullable=False),
    sa.Column("created_at", TS, nullable=False),
    sa.Column("updated_at", TS, nullable=False),
  )
  op.create_index("ix_task_comments_task_id", "task_comments", ["task_id"], unique=False)

  op.create_table(
    "comment_reactions",
    sa.Column("id", ID, primary_key=True),
    sa.Column("comment_id", ID, sa.ForeignKey("task_comments.id"), nullable=False),
    sa.Column("user_id", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("emoji", sa.String(), nullable=False),
    sa.Column("created_at", TS, nullable=False),
    sa.UniqueConstraint("comment_id", "user_id", "emoji", name="ux_comment_reactions_comment_user_emoji"),
  )
  op.create_index("ix_comment_reactions_comment_id", "comment_reactions", ["comment_id"], unique=False)

  op.create_table(
    "wiki_pages",
    sa.Column("id", ID, primary_key=True),
    sa.Column("project_id", ID, sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("body", sa.Text(), nullable=False),
    sa.Column("created_by", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("updated_by", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", TS, nullable=False),
    sa.Column("updated_at", TS, nullable=False),
    sa.Column("deleted_at", TS, nullable=True),
  )
  op.create_index("ix_wiki_pages_project_id", "wiki_pages", ["project_id"], unique=False)

  op.create_table(
    "wiki_revisions",
    sa.Column("id", ID, primary_key=True),
    sa.Column("page_id", ID, sa.ForeignKey("wiki_pages.id"), nullable=False),
    sa.Column("body", sa.Text(), nullable=False),
    sa.Column("edited_by", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_at", TS, nullable=False),
  )
  op.create_index("ix_wiki_revisions_page_id", "wiki_revisions", ["page_id"], unique=False)

  op.create_table(
    "notifications",
    sa.Column("id", ID, primary_key=True),
    sa.Column("user_id", ID, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("type", sa.String(), nullable=False),
    sa.Column("body", sa.Text(), nullable=True),
    sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("read_at", TS, nullable=True),
    sa.Column("project_id", ID, sa.ForeignKey("projects.id"), nullable=True),
    sa.Column("task_id", ID, sa.ForeignKey("tasks.id"), nullable=True),
    sa.Column("comment_id", ID, sa.ForeignKey("task_comments.id"), nullable=True),
    sa.Column("metadata", JSONDOC, nullable=False),
    sa.Column("created_at", TS, nullable=False),
  )
  op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)

  op.create_table(
    "audit_logs",
    sa.Column("id", ID, primary_key=True),
    sa.Column("team_id", ID, sa.ForeignKey("teams.id"), nullable=False),
    sa.Column("project_id", ID, nullable=True),
    sa.Column("actor_user_id", ID, sa.ForeignKey("users.id"), nullable=True),
    sa.Column("action", sa.String(), nullable=False),
    sa.Column("target_type", sa.String(), nullable=False),
    sa.Column("target_id", sa.String(), nullable=True),
    sa.Column("metadata", JSONDOC, nullable=False),
    sa.Column("created_at", TS, nullable=False),
  )
  op.create_index("ix_audit_logs_team_id", "audit_logs", ["team_id"], unique=False)
  op.create_index("ix_audit_logs_project_id", "audit_logs", ["project_id"], unique=False)


def downgrade() -> None:
  for table in (
    "audit_logs",
    "notifications",
    "wiki_revisions",
    "wiki_pages",
    "comment_reactions",
    "task_comments",
    "task_subtasks",
    "tasks",
    "milestones",
    "columns",
    "project_members",
    "projects",
    "invitations",
    "team_members",
    "teams",
    "sessions",
    "users",
  ):
    op.drop_table(table)
