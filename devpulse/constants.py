"""
devpulse.constants — Shared Constants
======================================

Single source of truth for commit categories, default badge definitions
and default trophy tier tables.  ``config.yaml`` may override the badge
and trophy sets; these are the fallbacks.
"""

from __future__ import annotations

import enum


class CommitType(enum.StrEnum):
    """Closed set of commit categories inferred from message prefixes."""
    FEATURE = "feature"
    FIX = "fix"
    DOCS = "docs"
    REFACTOR = "refactor"
    CHORE = "chore"
    OTHER = "other"


COMMIT_TYPES: tuple[str, ...] = tuple(t.value for t in CommitType)

HOURS_PER_DAY = 24

DEFAULT_TIMEZONE = "Asia/Seoul"


# ---------------------------------------------------------------------------
# Badges — {id, label, description, icon, category, trigger_type, trigger_config}
# ---------------------------------------------------------------------------
DEFAULT_BADGES: list[dict] = [
    {
        "id": "first_commit",
        "label": "First Commit",
        "description": "Recorded a first commit",
        "icon": "\U0001f389",  # 🎉
        "category": "commits",
        "trigger_type": "stat_threshold",
        "trigger_config": {"field": "total_commits", "value": 1},
    },
    {
        "id": "commits_100",
        "label": "100 Commits",
        "description": "Reached 100 commits",
        "icon": "\U0001f4af",  # 💯
        "category": "commits",
        "trigger_type": "stat_threshold",
        "trigger_config": {"field": "total_commits", "value": 100},
    },
    {
        "id": "commits_500",
        "label": "500 Commits",
        "description": "Reached 500 commits",
        "icon": "\U0001f525",  # 🔥
        "category": "commits",
        "trigger_type": "stat_threshold",
        "trigger_config": {"field": "total_commits", "value": 500},
    },
    {
        "id": "commits_1000",
        "label": "1000 Commits",
        "description": "Reached 1000 commits",
        "icon": "\U0001f680",  # 🚀
        "category": "commits",
        "trigger_type": "stat_threshold",
        "trigger_config": {"field": "total_commits", "value": 1000},
    },
    {
        "id": "streak_7",
        "label": "7-Day Streak",
        "description": "Committed 7 days in a row",
        "icon": "\U0001f4c6",  # 📆
        "category": "streak",
        "trigger_type": "stat_threshold",
        "trigger_config": {"field": "longest_streak", "value": 7},
    },
    {
        "id": "streak_30",
        "label": "30-Day Streak",
        "description": "Committed 30 days in a row",
        "icon": "\U0001f5d3",  # 🗓
        "category": "streak",
        "trigger_type": "stat_threshold",
        "trigger_config": {"field": "longest_streak", "value": 30},
    },
    {
        "id": "night_owl",
        "label": "Night Owl",
        "description": "Codes mostly between 22:00 and 04:59",
        "icon": "\U0001f989",  # 🦉
        "category": "activity",
        "trigger_type": "peak_hour_window",
        "trigger_config": {"start": 22, "end": 4},
    },
    {
        "id": "early_bird",
        "label": "Early Bird",
        "description": "Codes mostly between 05:00 and 08:59",
        "icon": "\U0001f426",  # 🐦
        "category": "activity",
        "trigger_type": "peak_hour_window",
        "trigger_config": {"start": 5, "end": 8},
    },
    {
        "id": "lines_10k",
        "label": "10K Lines",
        "description": "Added 10,000 lines of code",
        "icon": "\U0001f4dd",  # 📝
        "category": "volume",
        "trigger_type": "stat_threshold",
        "trigger_config": {"field": "total_additions", "value": 10_000},
    },
]


# ---------------------------------------------------------------------------
# Trophies — rank ladder (lowest first) and per-metric breakpoints
# ---------------------------------------------------------------------------
TROPHY_RANKS: tuple[str, ...] = ("C", "B", "A", "AA", "AAA", "S", "SS", "SSS")
UNKNOWN_RANK = "UNKNOWN"

DEFAULT_TROPHIES: dict[str, dict] = {
    "total_commits": {
        "label": "Commits",
        "breakpoints": [1, 10, 50, 100, 250, 500, 1000, 2000],
    },
    "longest_streak": {
        "label": "Streak",
        "breakpoints": [1, 3, 7, 14, 30, 60, 100, 180],
    },
    "active_days": {
        "label": "Active Days",
        "breakpoints": [1, 7, 30, 60, 120, 200, 300, 500],
    },
    "additions": {
        "label": "Lines Added",
        "breakpoints": [100, 1000, 5000, 10_000, 30_000, 50_000, 100_000, 200_000],
    },
    "deletions": {
        "label": "Lines Removed",
        "breakpoints": [100, 500, 2500, 5000, 15_000, 25_000, 50_000, 100_000],
    },
    "repository_count": {
        "label": "Repositories",
        "breakpoints": [1, 2, 3, 5, 8, 12, 20, 30],
    },
}
