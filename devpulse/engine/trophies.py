"""
devpulse.engine.trophies — Trophy Tier Calculator
==================================================

Ranks a member on each tracked metric by locating the highest breakpoint
in that metric's tier table that does not exceed the member's value.

Ladder (lowest first): C → B → A → AA → AAA → S → SS → SSS.
Values below the first breakpoint rank ``UNKNOWN``.

Display ranking only — trophies never gate anything.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from devpulse.constants import DEFAULT_TROPHIES, TROPHY_RANKS, UNKNOWN_RANK
from devpulse.engine.rollup import StatsSnapshot

TRACKED_METRICS: tuple[str, ...] = (
    "total_commits",
    "longest_streak",
    "active_days",
    "additions",
    "deletions",
    "repository_count",
)


@dataclass(frozen=True, slots=True)
class TrophyTable:
    """Ascending breakpoints for one metric, one per rank in ``TROPHY_RANKS``."""

    metric: str
    label: str
    breakpoints: tuple[int, ...]

    def __post_init__(self) -> None:
        if self.metric not in TRACKED_METRICS:
            raise ValueError(f"Unknown trophy metric: {self.metric!r}")
        if len(self.breakpoints) != len(TROPHY_RANKS):
            raise ValueError(
                f"Trophy table {self.metric!r} needs {len(TROPHY_RANKS)} breakpoints, "
                f"got {len(self.breakpoints)}"
            )
        if list(self.breakpoints) != sorted(self.breakpoints):
            raise ValueError(f"Trophy table {self.metric!r} breakpoints must ascend")

    @classmethod
    def from_dict(cls, metric: str, raw: dict) -> TrophyTable:
        return cls(
            metric=metric,
            label=str(raw.get("label", metric)),
            breakpoints=tuple(int(v) for v in raw["breakpoints"]),
        )


DEFAULT_TROPHY_TABLES: tuple[TrophyTable, ...] = tuple(
    TrophyTable.from_dict(metric, raw) for metric, raw in DEFAULT_TROPHIES.items()
)


@dataclass(frozen=True, slots=True)
class Trophy:
    metric: str
    label: str
    tier: str
    value: int
    next_threshold: int | None
    progress: int  # 0–100 towards the next tier

    @property
    def level(self) -> int:
        return rank_level(self.tier)

    def to_dict(self) -> dict:
        return {
            "metric": self.metric,
            "label": self.label,
            "tier": self.tier,
            "value": self.value,
            "formatted_value": format_value(self.value),
            "next_threshold": self.next_threshold,
            "progress": self.progress,
        }


def rank_level(tier: str) -> int:
    """0 for C … 7 for SSS; -1 for UNKNOWN."""
    if tier == UNKNOWN_RANK:
        return -1
    return TROPHY_RANKS.index(tier)


def tier_for(value: int, breakpoints: Sequence[int]) -> str:
    """Highest rank whose breakpoint does not exceed *value*."""
    tier = UNKNOWN_RANK
    for rank, threshold in zip(TROPHY_RANKS, breakpoints):
        if value >= threshold:
            tier = rank
        else:
            break
    return tier


def format_value(value: int) -> str:
    """1000 → 1K, 1500000 → 1.5M."""
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}".removesuffix(".0") + "M"
    if value >= 1000:
        return f"{value / 1000:.1f}".removesuffix(".0") + "K"
    return f"{value:,}"


def metric_values(snapshot: StatsSnapshot, repository_count: int) -> dict[str, int]:
    return {
        "total_commits": snapshot.total_commits,
        "longest_streak": snapshot.longest_streak,
        "active_days": snapshot.active_days,
        "additions": snapshot.total_additions,
        "deletions": snapshot.total_deletions,
        "repository_count": repository_count,
    }


def calculate_trophies(
    snapshot: StatsSnapshot,
    repository_count: int,
    tables: Sequence[TrophyTable] = DEFAULT_TROPHY_TABLES,
) -> list[Trophy]:
    """One trophy per table, ranked by tier (highest first, stable)."""
    values = metric_values(snapshot, repository_count)
    trophies: list[Trophy] = []
    for table in tables:
        value = values[table.metric]
        tier = tier_for(value, table.breakpoints)
        level = rank_level(tier)

        if level == len(TROPHY_RANKS) - 1:
            next_threshold = None
            progress = 100
        else:
            next_threshold = table.breakpoints[level + 1]
            floor = table.breakpoints[level] if level >= 0 else 0
            span = next_threshold - floor
            progress = min(round((value - floor) / span * 100), 100) if span > 0 else 100

        trophies.append(Trophy(
            metric=table.metric,
            label=table.label,
            tier=tier,
            value=value,
            next_threshold=next_threshold,
            progress=max(progress, 0),
        ))

    return sorted(trophies, key=lambda t: -t.level)


def total_score(trophies: Sequence[Trophy]) -> int:
    """Sum of rank levels, UNKNOWN counting as zero."""
    return sum(max(t.level, 0) for t in trophies)


def average_rank(trophies: Sequence[Trophy]) -> str:
    ranked = [t.level for t in trophies if t.level >= 0]
    if not ranked:
        return UNKNOWN_RANK
    avg = round(sum(ranked) / len(ranked))
    return TROPHY_RANKS[min(avg, len(TROPHY_RANKS) - 1)]
