"""
tests/test_trophies.py — Trophy Tier Calculator Tests
======================================================
"""

from __future__ import annotations

import pytest

from devpulse.engine.rollup import StatsSnapshot
from devpulse.engine.trophies import (
    TrophyTable,
    average_rank,
    calculate_trophies,
    format_value,
    tier_for,
    total_score,
)

BREAKS = (1, 10, 50, 100, 250, 500, 1000, 2000)


class TestTierFor:
    @pytest.mark.parametrize(
        "value, tier",
        [(0, "UNKNOWN"), (1, "C"), (9, "C"), (10, "B"), (99, "A"), (100, "AA"), (1999, "SS"), (2000, "SSS"), (10**6, "SSS")],
    )
    def test_highest_breakpoint_not_exceeding(self, value, tier):
        assert tier_for(value, BREAKS) == tier


class TestTables:
    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError, match="breakpoints"):
            TrophyTable(metric="total_commits", label="C", breakpoints=(1, 2, 3))

    def test_descending_rejected(self):
        with pytest.raises(ValueError, match="ascend"):
            TrophyTable(metric="total_commits", label="C", breakpoints=tuple(reversed(BREAKS)))

    def test_unknown_metric_rejected(self):
        with pytest.raises(ValueError, match="Unknown trophy metric"):
            TrophyTable(metric="stars", label="S", breakpoints=BREAKS)


class TestCalculate:
    def test_one_trophy_per_metric_ranked(self):
        snap = StatsSnapshot(member_id="m1", total_commits=120, longest_streak=2, active_days=40,
                             total_additions=5000, total_deletions=0)
        trophies = calculate_trophies(snap, repository_count=3)
        assert len(trophies) == 6
        levels = [t.level for t in trophies]
        assert levels == sorted(levels, reverse=True)
        by_metric = {t.metric: t for t in trophies}
        assert by_metric["total_commits"].tier == "AA"
        assert by_metric["deletions"].tier == "UNKNOWN"
        assert by_metric["repository_count"].tier == "A"

    def test_progress_and_next_threshold(self):
        snap = StatsSnapshot(member_id="m1", total_commits=75)
        commits = next(t for t in calculate_trophies(snap, 0) if t.metric == "total_commits")
        assert commits.tier == "A"
        assert commits.next_threshold == 100
        assert commits.progress == 50

    def test_top_tier_has_no_next(self):
        snap = StatsSnapshot(member_id="m1", total_commits=5000)
        commits = next(t for t in calculate_trophies(snap, 0) if t.metric == "total_commits")
        assert commits.next_threshold is None
        assert commits.progress == 100

    def test_score_and_average(self):
        snap = StatsSnapshot(member_id="m1", total_commits=10, longest_streak=1)
        trophies = calculate_trophies(snap, 0)
        # commits B (1) + streak C (0); everything else UNKNOWN
        assert total_score(trophies) == 1
        assert average_rank(trophies) in ("C", "B")

    def test_average_rank_unknown_when_nothing_ranked(self):
        assert average_rank(calculate_trophies(StatsSnapshot(member_id="m1"), 0)) == "UNKNOWN"


class TestFormatValue:
    @pytest.mark.parametrize("value, text", [(999, "999"), (1000, "1K"), (1500, "1.5K"), (1_500_000, "1.5M")])
    def test_format(self, value, text):
        assert format_value(value) == text
