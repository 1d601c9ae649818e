"""
tests/test_activity_service.py — Daily Recompute + Full-Replace Write Tests
============================================================================
"""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from conftest import add_commit, add_member, fixed_clock, kst
from devpulse.database.engine import get_session
from devpulse.database.models import CommitEvent, DailyActivity
from devpulse.engine.calendar import CivilCalendar
from devpulse.services.activity_service import aggregate_day, load_days, stored_days
from devpulse.services.identity import (
    DatabaseIdentityResolver,
    IdentityResolutionError,
)
from devpulse.services.sources import SqlCommitSource

DAY = date(2024, 3, 14)


@pytest.fixture
def cal():
    return CivilCalendar("Asia/Seoul")


@pytest.fixture
def member(db_engine):
    add_member(db_engine, "m1")
    return DatabaseIdentityResolver(db_engine).resolve("m1")


def _rows(engine) -> list[dict]:
    with get_session(engine) as session:
        rows = session.scalars(select(DailyActivity).order_by(DailyActivity.day)).all()
        return [
            {c.name: getattr(r, c.name) for c in DailyActivity.__table__.columns}
            for r in rows
        ]


class TestAggregateDay:
    def test_writes_record(self, db_engine, member, cal):
        add_commit(db_engine, kst(2024, 3, 14, 9), message="fix: a", additions=4)
        add_commit(db_engine, kst(2024, 3, 14, 21), message="feat: b", additions=6)

        result = aggregate_day(db_engine, member, DAY, cal, SqlCommitSource(db_engine), fixed_clock)

        assert result.previous is None
        assert result.current.commit_count == 2
        stored = load_days(db_engine, "m1")[DAY]
        assert stored.commit_count == 2
        assert stored.additions == 10
        assert stored.hourly_distribution[9] == 1
        assert stored.hourly_distribution[21] == 1
        assert stored.type_distribution["fix"] == 1

    def test_idempotent_rerun_is_identical(self, db_engine, member, cal):
        add_commit(db_engine, kst(2024, 3, 14, 9))
        source = SqlCommitSource(db_engine)

        aggregate_day(db_engine, member, DAY, cal, source, fixed_clock)
        first = _rows(db_engine)
        second_result = aggregate_day(db_engine, member, DAY, cal, source, fixed_clock)
        second = _rows(db_engine)

        assert first == second
        assert len(second) == 1
        assert second_result.previous == second_result.current

    def test_zero_day_written_explicitly(self, db_engine, member, cal):
        aggregate_day(db_engine, member, DAY, cal, SqlCommitSource(db_engine), fixed_clock)
        rows = _rows(db_engine)
        assert len(rows) == 1
        assert rows[0]["commit_count"] == 0
        assert rows[0]["hourly_distribution"] == [0] * 24
        assert stored_days(db_engine, "m1") == {DAY}

    def test_rerun_replaces_not_increments(self, db_engine, member, cal):
        source = SqlCommitSource(db_engine)
        add_commit(db_engine, kst(2024, 3, 14, 9))
        aggregate_day(db_engine, member, DAY, cal, source, fixed_clock)
        add_commit(db_engine, kst(2024, 3, 14, 10))
        result = aggregate_day(db_engine, member, DAY, cal, source, fixed_clock)

        assert result.previous.commit_count == 1
        assert load_days(db_engine, "m1")[DAY].commit_count == 2

    def test_day_boundary(self, db_engine, member, cal):
        source = SqlCommitSource(db_engine)
        add_commit(db_engine, kst(2024, 3, 13, 23, 59, 59))
        add_commit(db_engine, kst(2024, 3, 14, 0, 0, 1))

        aggregate_day(db_engine, member, date(2024, 3, 13), cal, source, fixed_clock)
        aggregate_day(db_engine, member, DAY, cal, source, fixed_clock)

        days = load_days(db_engine, "m1")
        assert days[date(2024, 3, 13)].commit_count == 1
        assert days[date(2024, 3, 13)].hourly_distribution[23] == 1
        assert days[DAY].commit_count == 1
        assert days[DAY].hourly_distribution[0] == 1

    def test_other_members_commits_excluded(self, db_engine, member, cal):
        add_member(db_engine, "m2")
        add_commit(db_engine, kst(2024, 3, 14, 9), member_id="m2")
        add_commit(db_engine, kst(2024, 3, 14, 9), member_id="m1")
        result = aggregate_day(db_engine, member, DAY, cal, SqlCommitSource(db_engine), fixed_clock)
        assert result.current.commit_count == 1

    def test_explicit_member_link_counts(self, db_engine, member, cal):
        sha = add_commit(db_engine, kst(2024, 3, 14, 9), email="laptop@home.local")
        with get_session(db_engine) as session:
            session.get(CommitEvent, sha).member_id = "m1"
        result = aggregate_day(db_engine, member, DAY, cal, SqlCommitSource(db_engine), fixed_clock)
        assert result.current.commit_count == 1


class TestIdentity:
    def test_unknown_member(self, db_engine):
        with pytest.raises(IdentityResolutionError):
            DatabaseIdentityResolver(db_engine).resolve("ghost")

    def test_active_member_ids(self, db_engine):
        add_member(db_engine, "b")
        add_member(db_engine, "a")
        add_member(db_engine, "z", active=False)
        assert DatabaseIdentityResolver(db_engine).active_member_ids() == ["a", "b"]

    def test_email_match_is_case_insensitive(self, db_engine, cal):
        add_member(db_engine, "m1", email="Dev@Example.com")
        add_commit(db_engine, kst(2024, 3, 14, 9), email="dev@EXAMPLE.com")
        identity = DatabaseIdentityResolver(db_engine).resolve("m1")
        assert SqlCommitSource(db_engine).active_days(identity, cal) == {DAY}
