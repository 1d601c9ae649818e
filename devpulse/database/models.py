"""
devpulse.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- members          — Team members (external; identity resolved upstream)
- commit_events    — Append-only commit journal, the source of truth
- daily_activity   — Derived per-member, per-civil-day cache rows
- profile_stats    — Derived per-member all-time snapshot

The two derived tables are only ever written as full replaces keyed by
their unique key — see :mod:`devpulse.database.upsert`.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from devpulse.engine.calendar import as_utc
from devpulse.engine.daily import DailyActivity as DailyActivityData
from devpulse.engine.rollup import StatsSnapshot

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all DevPulse ORM models."""


# ---------------------------------------------------------------------------
# Members — one row per team member
# ---------------------------------------------------------------------------
class Member(Base):
    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    github_name: Mapped[str | None] = mapped_column(String(39), default=None)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    daily_activity: Mapped[list[DailyActivity]] = relationship(
        back_populates="member", cascade="all, delete-orphan"
    )
    profile_stats: Mapped[ProfileStats | None] = relationship(
        back_populates="member", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_members_email", "email"),
    )

    def __repr__(self) -> str:
        return f"<Member id={self.id} name={self.name!r} active={self.active}>"


# ---------------------------------------------------------------------------
# CommitEvent — immutable commit journal
# ---------------------------------------------------------------------------
class CommitEvent(Base):
    """One version-control commit.

    The body never changes after insert; only ``member_id`` (the identity
    association) may be filled in later by the identity collaborator.
    """
    __tablename__ = "commit_events"

    sha: Mapped[str] = mapped_column(String(64), primary_key=True)
    repository: Mapped[str] = mapped_column(String(200), nullable=False)
    author_email: Mapped[str] = mapped_column(String(255), nullable=False)
    member_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("members.id", ondelete="SET NULL"), default=None
    )
    committed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    additions: Mapped[int] = mapped_column(Integer, default=0)
    deletions: Mapped[int] = mapped_column(Integer, default=0)
    files_changed: Mapped[int] = mapped_column(Integer, default=0)
    message: Mapped[str] = mapped_column(Text, default="")
    ingested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_commit_events_author_ts", "author_email", "committed_at"),
        Index("ix_commit_events_member_ts", "member_id", "committed_at"),
    )

    @validates("committed_at")
    def _store_as_utc(self, key: str, value: datetime | None) -> datetime | None:
        # SQLite drops tzinfo on write, so everything is stored as UTC.
        return as_utc(value) if value is not None else None

    def __repr__(self) -> str:
        return f"<CommitEvent sha={self.sha[:8]} repo={self.repository!r}>"


# ---------------------------------------------------------------------------
# DailyActivity — derived (member, civil day) cache row
# ---------------------------------------------------------------------------
class DailyActivity(Base):
    __tablename__ = "daily_activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[date] = mapped_column(Date, nullable=False)
    commit_count: Mapped[int] = mapped_column(Integer, default=0)
    additions: Mapped[int] = mapped_column(Integer, default=0)
    deletions: Mapped[int] = mapped_column(Integer, default=0)
    files_changed: Mapped[int] = mapped_column(Integer, default=0)
    hourly_distribution: Mapped[list] = mapped_column(JSONType, default=list)
    type_distribution: Mapped[dict] = mapped_column(JSONType, default=dict)
    repo_breakdown: Mapped[dict] = mapped_column(JSONType, default=dict)
    first_commit_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    last_commit_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    member: Mapped[Member] = relationship(back_populates="daily_activity")

    __table_args__ = (
        UniqueConstraint("member_id", "day", name="uq_daily_activity_member_day"),
        Index("ix_daily_activity_day", "day"),
    )

    def to_data(self) -> DailyActivityData:
        """Detach into the engine's pure dataclass."""
        return DailyActivityData(
            member_id=self.member_id,
            day=self.day,
            commit_count=self.commit_count,
            additions=self.additions,
            deletions=self.deletions,
            files_changed=self.files_changed,
            hourly_distribution=list(self.hourly_distribution or []),
            type_distribution=dict(self.type_distribution or {}),
            repo_breakdown=dict(self.repo_breakdown or {}),
            first_commit_at=as_utc(self.first_commit_at) if self.first_commit_at else None,
            last_commit_at=as_utc(self.last_commit_at) if self.last_commit_at else None,
        )

    def __repr__(self) -> str:
        return f"<DailyActivity member={self.member_id} day={self.day} commits={self.commit_count}>"


# ---------------------------------------------------------------------------
# ProfileStats — derived all-time snapshot
# ---------------------------------------------------------------------------
class ProfileStats(Base):
    __tablename__ = "profile_stats"

    member_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("members.id", ondelete="CASCADE"), primary_key=True
    )
    total_commits: Mapped[int] = mapped_column(Integer, default=0)
    total_additions: Mapped[int] = mapped_column(Integer, default=0)
    total_deletions: Mapped[int] = mapped_column(Integer, default=0)
    first_commit_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    last_commit_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    peak_hour: Mapped[int | None] = mapped_column(Integer, default=None)
    active_days: Mapped[int] = mapped_column(Integer, default=0)
    badges: Mapped[list] = mapped_column(JSONType, default=list)

    # Bookkeeping that lets the incremental path match a full rebuild
    hourly_totals: Mapped[list] = mapped_column(JSONType, default=list)
    type_totals: Mapped[dict] = mapped_column(JSONType, default=dict)
    last_active_day: Mapped[date | None] = mapped_column(Date, default=None)
    first_active_day: Mapped[date | None] = mapped_column(Date, default=None)
    tail_streak: Mapped[int] = mapped_column(Integer, default=0)
    as_of: Mapped[date | None] = mapped_column(Date, default=None)

    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    member: Mapped[Member] = relationship(back_populates="profile_stats")

    def to_snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(
            member_id=self.member_id,
            total_commits=self.total_commits,
            total_additions=self.total_additions,
            total_deletions=self.total_deletions,
            first_commit_at=as_utc(self.first_commit_at) if self.first_commit_at else None,
            last_commit_at=as_utc(self.last_commit_at) if self.last_commit_at else None,
            current_streak=self.current_streak,
            longest_streak=self.longest_streak,
            peak_hour=self.peak_hour,
            active_days=self.active_days,
            hourly_totals=list(self.hourly_totals or []),
            type_totals=dict(self.type_totals or {}),
            last_active_day=self.last_active_day,
            first_active_day=self.first_active_day,
            tail_streak=self.tail_streak,
            as_of=self.as_of,
            badges=tuple(self.badges or ()),
        )

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "total_commits": self.total_commits,
            "total_additions": self.total_additions,
            "total_deletions": self.total_deletions,
            "first_commit_at": self.first_commit_at.isoformat() if self.first_commit_at else None,
            "last_commit_at": self.last_commit_at.isoformat() if self.last_commit_at else None,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "peak_hour": self.peak_hour,
            "active_days": self.active_days,
            "badges": list(self.badges or []),
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
        }

    def __repr__(self) -> str:
        return f"<ProfileStats member={self.member_id} commits={self.total_commits}>"
