"""Create members, commit_events, daily_activity and profile_stats

Revision ID: 3c9e1f0a7b2d
Revises:
Create Date: 2026-10-19 10:12:31.504118

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3c9e1f0a7b2d'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the commit journal and the two derived cache tables."""

    # --- members ---
    op.create_table(
        "members",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("github_name", sa.String(39), nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_members_email", "members", ["email"])

    # --- commit_events ---
    op.create_table(
        "commit_events",
        sa.Column("sha", sa.String(64), primary_key=True),
        sa.Column("repository", sa.String(200), nullable=False),
        sa.Column("author_email", sa.String(255), nullable=False),
        sa.Column(
            "member_id", sa.String(64),
            sa.ForeignKey("members.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("additions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("deletions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("files_changed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("message", sa.Text, nullable=False, server_default=""),
        sa.Column("ingested_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_commit_events_author_ts", "commit_events", ["author_email", "committed_at"])
    op.create_index("ix_commit_events_member_ts", "commit_events", ["member_id", "committed_at"])

    # --- daily_activity ---
    op.create_table(
        "daily_activity",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "member_id", sa.String(64),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("day", sa.Date, nullable=False),
        sa.Column("commit_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("additions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("deletions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("files_changed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("hourly_distribution", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("type_distribution", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("repo_breakdown", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("first_commit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_commit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("member_id", "day", name="uq_daily_activity_member_day"),
    )
    op.create_index("ix_daily_activity_day", "daily_activity", ["day"])

    # --- profile_stats ---
    op.create_table(
        "profile_stats",
        sa.Column(
            "member_id", sa.String(64),
            sa.ForeignKey("members.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("total_commits", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_additions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_deletions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("first_commit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_commit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("peak_hour", sa.Integer, nullable=True),
        sa.Column("active_days", sa.Integer, nullable=False, server_default="0"),
        sa.Column("badges", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("hourly_totals", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("type_totals", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("last_active_day", sa.Date, nullable=True),
        sa.Column("first_active_day", sa.Date, nullable=True),
        sa.Column("tail_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("as_of", sa.Date, nullable=True),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("profile_stats")
    op.drop_index("ix_daily_activity_day", table_name="daily_activity")
    op.drop_table("daily_activity")
    op.drop_index("ix_commit_events_member_ts", table_name="commit_events")
    op.drop_index("ix_commit_events_author_ts", table_name="commit_events")
    op.drop_table("commit_events")
    op.drop_index("ix_members_email", table_name="members")
    op.drop_table("members")
