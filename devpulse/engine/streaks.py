"""
devpulse.engine.streaks — Commit Streak Calculation
====================================================

A streak is a maximal run of calendar-consecutive active days
(``commit_count > 0``).  Any zero day breaks a run.

The *current* streak is the run ending today, or — if today has no
activity yet — the run ending yesterday.  That one-day grace window keeps
a streak alive until the day actually closes.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True, slots=True)
class StreakResult:
    current: int
    longest: int
    last_active_day: date | None
    tail: int  # run length ending at last_active_day


def current_from_tail(last_active_day: date | None, tail: int, today: date) -> int:
    """Current streak given the run that ends at *last_active_day*."""
    if last_active_day is None:
        return 0
    if last_active_day in (today, today - _ONE_DAY):
        return tail
    return 0


def calculate_streaks(active_days: Iterable[date], today: date) -> StreakResult:
    """Compute current and longest streaks from the set of active days.

    Days after *today* are ignored for the current streak but still count
    towards the longest run.
    """
    days = sorted(set(active_days), reverse=True)
    if not days:
        return StreakResult(current=0, longest=0, last_active_day=None, tail=0)

    longest = 0
    run = 0
    prev: date | None = None
    tail = 0
    for day in days:
        if prev is not None and prev - day == _ONE_DAY:
            run += 1
        else:
            if prev is not None and tail == 0:
                tail = run
            longest = max(longest, run)
            run = 1
        prev = day
    longest = max(longest, run)
    if tail == 0:
        tail = run

    last_active = days[0]

    # Current streak is anchored at today/yesterday, which may sit below
    # future-dated activity; walk from the anchor when that happens.
    if last_active > today:
        current = _run_ending_at(set(days), today) or _run_ending_at(set(days), today - _ONE_DAY)
    else:
        current = current_from_tail(last_active, tail, today)

    return StreakResult(current=current, longest=longest, last_active_day=last_active, tail=tail)


def _run_ending_at(days: set[date], end: date) -> int:
    run = 0
    cursor = end
    while cursor in days:
        run += 1
        cursor -= _ONE_DAY
    return run
