"""
tests/test_daily_activity.py — Pure Daily Aggregation Tests
============================================================
"""

from __future__ import annotations

from datetime import date

import pytest

from conftest import kst
from devpulse.engine.calendar import CivilCalendar
from devpulse.engine.daily import compute_daily_activity
from devpulse.engine.events import CommitFact

DAY = date(2024, 3, 14)


@pytest.fixture
def cal():
    return CivilCalendar("Asia/Seoul")


def _fact(sha: str, committed_at, **kwargs) -> CommitFact:
    kwargs.setdefault("repository", "team/api")
    kwargs.setdefault("author_email", "m1@example.com")
    return CommitFact(sha=sha, committed_at=committed_at, **kwargs)


def _run(cal, facts, day=DAY):
    return compute_daily_activity(member_id="m1", day=day, facts=facts, calendar=cal)


class TestDailyTotals:
    def test_counts_and_sums(self, cal):
        result = _run(cal, [
            _fact("a", kst(2024, 3, 14, 9), additions=10, deletions=3, files_changed=2, message="feat: x"),
            _fact("b", kst(2024, 3, 14, 9, 30), additions=5, deletions=1, files_changed=1, message="fix: y"),
            _fact("c", kst(2024, 3, 14, 22), repository="team/web", message="wip"),
        ])
        act = result.activity
        assert act.commit_count == 3
        assert (act.additions, act.deletions, act.files_changed) == (15, 4, 3)
        assert act.hourly_distribution[9] == 2
        assert act.hourly_distribution[22] == 1
        assert sum(act.hourly_distribution) == 3
        assert act.type_distribution["feature"] == 1
        assert act.type_distribution["fix"] == 1
        assert act.type_distribution["other"] == 1
        assert act.repo_breakdown == {"team/api": 2, "team/web": 1}
        assert act.first_commit_at == kst(2024, 3, 14, 9)
        assert act.last_commit_at == kst(2024, 3, 14, 22)

    def test_no_events_gives_zero_record(self, cal):
        act = _run(cal, []).activity
        assert act.commit_count == 0
        assert not act.has_activity
        assert act.hourly_distribution == [0] * 24
        assert act.first_commit_at is None
        assert act.repo_breakdown == {}

    def test_duplicate_sha_counted_once(self, cal):
        ts = kst(2024, 3, 14, 10)
        act = _run(cal, [_fact("a", ts), _fact("a", ts)]).activity
        assert act.commit_count == 1

    def test_negative_line_counts_clamped(self, cal):
        act = _run(cal, [_fact("a", kst(2024, 3, 14, 10), additions=-5, deletions=-1)]).activity
        assert (act.additions, act.deletions) == (0, 0)


class TestDataErrors:
    def test_bad_timestamps_skipped_rest_counted(self, cal):
        result = _run(cal, [
            _fact("a", None),
            _fact("b", "not-a-date"),
            _fact("c", kst(2024, 3, 14, 10)),
        ])
        assert result.skipped_events == 2
        assert result.activity.commit_count == 1

    def test_iso_string_timestamps_accepted(self, cal):
        # 2024-03-14 01:00 UTC == 10:00 KST
        act = _run(cal, [_fact("a", "2024-03-14T01:00:00Z")]).activity
        assert act.commit_count == 1
        assert act.hourly_distribution[10] == 1

    def test_events_of_other_days_ignored(self, cal):
        result = _run(cal, [
            _fact("a", kst(2024, 3, 13, 23, 59, 59)),
            _fact("b", kst(2024, 3, 14, 0, 0, 1)),
            _fact("c", kst(2024, 3, 15, 0, 0, 0)),
        ])
        assert result.activity.commit_count == 1
        assert result.out_of_window == 2
        assert result.activity.hourly_distribution[0] == 1
