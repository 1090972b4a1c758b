"""initial sync engine schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

JSON_COL = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    sync_job_status = postgresql.ENUM("PENDING", "ACTIVE", "PAUSED", "ERROR", name="sync_job_status")
    sync_state_status = postgresql.ENUM("IDLE", "RUNNING", "SUCCESS", "FAILED", name="sync_state_status")
    sync_log_level = postgresql.ENUM("DEBUG", "INFO", "WARN", "ERROR", name="sync_log_level")
    sync_entity = postgresql.ENUM("issue", "comment", "worklog", name="sync_entity")

    sync_job_status_col = postgresql.ENUM("PENDING", "ACTIVE", "PAUSED", "ERROR", name="sync_job_status", create_type=False)
    sync_state_status_col = postgresql.ENUM("IDLE", "RUNNING", "SUCCESS", "FAILED", name="sync_state_status", create_type=False)
    sync_log_level_col = postgresql.ENUM("DEBUG", "INFO", "WARN", "ERROR", name="sync_log_level", create_type=False)
    sync_entity_col = postgresql.ENUM("issue", "comment", "worklog", name="sync_entity", create_type=False)

    bind = op.get_bind()
    sync_job_status.create(bind, checkfirst=True)
    sync_state_status.create(bind, checkfirst=True)
    sync_log_level.create(bind, checkfirst=True)
    sync_entity.create(bind, checkfirst=True)

    op.create_table(
        "jira_sites",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("alias", sa.String(length=120), nullable=False),
        sa.Column("base_url", sa.String(length=255), nullable=False),
        sa.Column("admin_email", sa.String(length=255), nullable=False),
        sa.Column("token_cipher", sa.Text(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "jira_projects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("site_id", sa.String(length=36), sa.ForeignKey("jira_sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=True),
        sa.Column("key", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("site_id", "key", name="uq_jira_projects_site_key"),
    )
    op.create_index("ix_jira_projects_site_id", "jira_projects", ["site_id"])

    op.create_table(
        "jira_tracked_users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("jira_projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("jira_account_id", sa.String(length=128), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("is_tracked", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("project_id", "jira_account_id", name="uq_tracked_users_project_account"),
    )
    op.create_index("ix_jira_tracked_users_project_id", "jira_tracked_users", ["project_id"])

    op.create_table(
        "sync_jobs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("jira_projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("workflow_id", sa.String(length=128), nullable=False),
        sa.Column("schedule_id", sa.String(length=128), nullable=False),
        sa.Column("cron_schedule", sa.String(length=64), nullable=False),
        sa.Column("status", sync_job_status_col, nullable=False, server_default="PENDING"),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("backoff_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("backoff_original_cron", sa.String(length=64), nullable=True),
        sa.Column("backoff_last_notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checkpoint", JSON_COL, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_sync_jobs_project_id", "sync_jobs", ["project_id"], unique=True)

    op.create_table(
        "sync_states",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("jira_projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("entity", sync_entity_col, nullable=False),
        sa.Column("status", sync_state_status_col, nullable=False, server_default="IDLE"),
        sa.Column("last_sync_time", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "entity", name="uq_sync_states_project_entity"),
    )
    op.create_index("ix_sync_states_project_id", "sync_states", ["project_id"])

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("jira_projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("level", sync_log_level_col, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", JSON_COL, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sync_logs_project_id", "sync_logs", ["project_id"])
    op.create_index("ix_sync_logs_created_at", "sync_logs", ["created_at"])

    op.create_table(
        "jira_users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("account_id", sa.String(length=128), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_jira_users_account_id", "jira_users", ["account_id"], unique=True)

    op.create_table(
        "sprints",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("state", sa.String(length=32), nullable=False, server_default="UNKNOWN"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_sprints_jira_id", "sprints", ["jira_id"], unique=True)

    op.create_table(
        "issues",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("jira_projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("summary", sa.String(length=512), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False, server_default="Unknown"),
        sa.Column("status_category", sa.String(length=32), nullable=True),
        sa.Column("priority", sa.String(length=64), nullable=True),
        sa.Column("issue_type", sa.String(length=64), nullable=True),
        sa.Column("labels", JSON_COL, nullable=True),
        sa.Column("assignee_id", sa.String(length=36), sa.ForeignKey("jira_users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sprint_id", sa.String(length=36), sa.ForeignKey("sprints.id", ondelete="SET NULL"), nullable=True),
        sa.Column("jira_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("jira_updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("remote_data", JSON_COL, nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_issues_jira_id", "issues", ["jira_id"], unique=True)
    op.create_index("ix_issues_key", "issues", ["key"])
    op.create_index("ix_issues_project_id", "issues", ["project_id"])
    op.create_index("ix_issues_assignee_id", "issues", ["assignee_id"])
    op.create_index("ix_issues_jira_updated_at", "issues", ["jira_updated_at"])

    op.create_table(
        "issue_comments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=False),
        sa.Column("issue_id", sa.String(length=36), sa.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.String(length=36), sa.ForeignKey("jira_users.id"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("jira_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("jira_updated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_issue_comments_jira_id", "issue_comments", ["jira_id"], unique=True)
    op.create_index("ix_issue_comments_issue_id", "issue_comments", ["issue_id"])
    op.create_index("ix_issue_comments_author_id", "issue_comments", ["author_id"])

    op.create_table(
        "issue_worklogs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("jira_id", sa.String(length=64), nullable=False),
        sa.Column("issue_id", sa.String(length=36), sa.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.String(length=36), sa.ForeignKey("jira_users.id"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("jira_started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("jira_updated_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_issue_worklogs_jira_id", "issue_worklogs", ["jira_id"], unique=True)
    op.create_index("ix_issue_worklogs_issue_id", "issue_worklogs", ["issue_id"])
    op.create_index("ix_issue_worklogs_author_id", "issue_worklogs", ["author_id"])


def downgrade() -> None:
    op.drop_table("issue_worklogs")
    op.drop_table("issue_comments")
    op.drop_table("issues")
    op.drop_table("sprints")
    op.drop_table("jira_users")
    op.drop_table("sync_logs")
    op.drop_table("sync_states")
    op.drop_table("sync_jobs")
    op.drop_table("jira_tracked_users")
    op.drop_table("jira_projects")
    op.drop_table("jira_sites")

    bind = op.get_bind()
    postgresql.ENUM(name="sync_entity").drop(bind, checkfirst=True)
    postgresql.ENUM(name="sync_log_level").drop(bind, checkfirst=True)
    postgresql.ENUM(name="sync_state_status").drop(bind, checkfirst=True)
    postgresql.ENUM(name="sync_job_status").drop(bind, checkfirst=True)
