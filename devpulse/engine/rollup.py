"""
devpulse.engine.rollup — Profile Stats Rollup (Full Rebuild + Incremental Extend)
==================================================================================

Derives a member's all-time :class:`StatsSnapshot` from their daily
activity records.

Two entry points, one algorithm:

* :func:`rollup_full` folds every daily record.
* :func:`extend_snapshot` applies one (re)computed day to an existing
  snapshot without rescanning history.  It only accepts the cases where
  the result is provably what ``rollup_full`` would return; everything
  else raises :class:`IncrementalNotApplicable` and the caller rebuilds.

Badges are NOT evaluated here — the service layer runs the badge
evaluator on the finished snapshot before persisting it.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta

from devpulse.constants import HOURS_PER_DAY
from devpulse.engine.commit_types import empty_type_distribution
from devpulse.engine.daily import DailyActivity
from devpulse.engine.streaks import calculate_streaks, current_from_tail

_ONE_DAY = timedelta(days=1)


class IncrementalNotApplicable(Exception):
    """The incremental path cannot guarantee full-rebuild equivalence."""


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    """All-time profile statistics for one member."""

    member_id: str
    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    first_commit_at: datetime | None = None
    last_commit_at: datetime | None = None
    current_streak: int = 0
    longest_streak: int = 0
    peak_hour: int | None = None
    active_days: int = 0
    hourly_totals: list[int] = field(default_factory=lambda: [0] * HOURS_PER_DAY)
    type_totals: dict[str, int] = field(default_factory=empty_type_distribution)
    last_active_day: date | None = None
    first_active_day: date | None = None
    tail_streak: int = 0
    as_of: date | None = None
    badges: tuple[str, ...] = ()

    def values(self) -> dict:
        """Column values for the ``profile_stats`` row (minus ``computed_at``)."""
        return {
            "member_id": self.member_id,
            "total_commits": self.total_commits,
            "total_additions": self.total_additions,
            "total_deletions": self.total_deletions,
            "first_commit_at": self.first_commit_at,
            "last_commit_at": self.last_commit_at,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "peak_hour": self.peak_hour,
            "active_days": self.active_days,
            "hourly_totals": list(self.hourly_totals),
            "type_totals": dict(self.type_totals),
            "last_active_day": self.last_active_day,
            "first_active_day": self.first_active_day,
            "tail_streak": self.tail_streak,
            "as_of": self.as_of,
            "badges": list(self.badges),
        }


def peak_hour_of(hourly_totals: list[int]) -> int | None:
    """Hour with the most commits; lowest hour wins ties, ``None`` if empty."""
    peak: int | None = None
    best = 0
    for hour, count in enumerate(hourly_totals):
        if count > best:
            best = count
            peak = hour
    return peak


def _add_lists(a: list[int], b: list[int], sign: int = 1) -> list[int]:
    return [x + sign * (b[i] if i < len(b) else 0) for i, x in enumerate(a)]


def _add_dicts(a: dict[str, int], b: dict[str, int], sign: int = 1) -> dict[str, int]:
    out = dict(a)
    for key, value in b.items():
        out[key] = out.get(key, 0) + sign * value
    return out


# ---------------------------------------------------------------------------
# Full rebuild
# ---------------------------------------------------------------------------
def rollup_full(
    member_id: str,
    records: Iterable[DailyActivity],
    today: date,
) -> StatsSnapshot:
    """Fold every daily record of a member into a snapshot."""
    total_commits = total_additions = total_deletions = 0
    hourly = [0] * HOURS_PER_DAY
    types = empty_type_distribution()
    active: list[date] = []
    first_at: datetime | None = None
    last_at: datetime | None = None

    for rec in records:
        total_commits += rec.commit_count
        total_additions += rec.additions
        total_deletions += rec.deletions
        hourly = _add_lists(hourly, rec.hourly_distribution)
        types = _add_dicts(types, rec.type_distribution)
        if rec.commit_count > 0:
            active.append(rec.day)
            if rec.first_commit_at is not None and (first_at is None or rec.first_commit_at < first_at):
                first_at = rec.first_commit_at
            if rec.last_commit_at is not None and (last_at is None or rec.last_commit_at > last_at):
                last_at = rec.last_commit_at

    streaks = calculate_streaks(active, today)

    return StatsSnapshot(
        member_id=member_id,
        total_commits=total_commits,
        total_additions=total_additions,
        total_deletions=total_deletions,
        first_commit_at=first_at,
        last_commit_at=last_at,
        current_streak=streaks.current,
        longest_streak=streaks.longest,
        peak_hour=peak_hour_of(hourly),
        active_days=len(set(active)),
        hourly_totals=hourly,
        type_totals=types,
        last_active_day=streaks.last_active_day,
        first_active_day=min(active) if active else None,
        tail_streak=streaks.tail,
        as_of=today,
    )


# ---------------------------------------------------------------------------
# Incremental extend
# ---------------------------------------------------------------------------
def extend_snapshot(
    snapshot: StatsSnapshot,
    previous: DailyActivity | None,
    current: DailyActivity,
    today: date,
) -> StatsSnapshot:
    """Apply a recomputed day to *snapshot* without rescanning history.

    *previous* is the record that was stored for ``current.day`` before the
    recompute (``None`` if there was none).  Supported cases:

    * the day lies strictly after the snapshot's last active day, or
    * the day IS the last active day and it stays active.

    Anything else raises :class:`IncrementalNotApplicable`.
    """
    if previous is not None and previous.day != current.day:
        raise ValueError("previous and current records must describe the same day")

    day = current.day
    last = snapshot.last_active_day
    was_active = previous is not None and previous.commit_count > 0

    if last is not None and day < last:
        raise IncrementalNotApplicable(f"{day} lies before last active day {last}")
    if last is not None and day == last and not current.has_activity:
        raise IncrementalNotApplicable(f"last active day {day} was emptied")
    if last is not None and day > last and was_active:
        # Snapshot does not reflect the stored record; it is out of date.
        raise IncrementalNotApplicable(f"snapshot does not cover stored day {day}")
    if last is None and was_active:
        raise IncrementalNotApplicable(f"snapshot does not cover stored day {day}")

    prev_commits = previous.commit_count if previous else 0
    prev_add = previous.additions if previous else 0
    prev_del = previous.deletions if previous else 0
    prev_hourly = previous.hourly_distribution if previous else [0] * HOURS_PER_DAY
    prev_types = previous.type_distribution if previous else {}

    hourly = _add_lists(_add_lists(snapshot.hourly_totals, prev_hourly, -1), current.hourly_distribution)
    types = _add_dicts(_add_dicts(snapshot.type_totals, prev_types, -1), current.type_distribution)

    active_days = snapshot.active_days - (1 if was_active else 0) + (1 if current.has_activity else 0)

    last_active_day = last
    first_active_day = snapshot.first_active_day
    tail = snapshot.tail_streak
    longest = snapshot.longest_streak
    first_at = snapshot.first_commit_at
    last_at = snapshot.last_commit_at

    if current.has_activity:
        if last is None or day > last:
            tail = tail + 1 if last is not None and day - last == _ONE_DAY else 1
            last_active_day = day
        longest = max(longest, tail)
        if first_active_day is None or day <= first_active_day:
            # Only reachable when this is the member's sole active day.
            first_active_day = day
            first_at = current.first_commit_at
        last_at = current.last_commit_at

    if last_active_day is not None and last_active_day > today:
        raise IncrementalNotApplicable("activity dated after today")

    return replace(
        snapshot,
        total_commits=snapshot.total_commits - prev_commits + current.commit_count,
        total_additions=snapshot.total_additions - prev_add + current.additions,
        total_deletions=snapshot.total_deletions - prev_del + current.deletions,
        first_commit_at=first_at,
        last_commit_at=last_at,
        current_streak=current_from_tail(last_active_day, tail, today),
        longest_streak=longest,
        peak_hour=peak_hour_of(hourly),
        active_days=active_days,
        hourly_totals=hourly,
        type_totals=types,
        last_active_day=last_active_day,
        first_active_day=first_active_day,
        tail_streak=tail,
        as_of=today,
        badges=(),
    )
