"""
devpulse.services.activity_service — Daily Activity Recompute
==============================================================

Recomputes one ``(member, civil day)`` record from the commit journal and
writes it as a full replace.  Running it twice over an unchanged journal
writes the same row twice; running it concurrently for the same key lets
the last writer win with an identical payload.

A day with no commits is written as an explicit zero row, so "computed,
nothing happened" and "never computed" stay distinguishable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import Engine, select

from devpulse.database.engine import get_session
from devpulse.database.models import DailyActivity
from devpulse.database.upsert import replace_row
from devpulse.engine.calendar import CivilCalendar, utc_now
from devpulse.engine.daily import DailyActivity as DailyActivityData
from devpulse.engine.daily import DailyAggregation, compute_daily_activity
from devpulse.services.identity import MemberIdentity
from devpulse.services.sources import CommitSource

logger = logging.getLogger(__name__)

DAILY_KEY = ("member_id", "day")


@dataclass(frozen=True, slots=True)
class DayRecompute:
    """What one recompute wrote, plus what was there before."""

    previous: DailyActivityData | None
    current: DailyActivityData
    skipped_events: int = 0


def compute_day(
    identity: MemberIdentity,
    day: date,
    calendar: CivilCalendar,
    source: CommitSource,
) -> DailyAggregation:
    """Read-only recompute of one day (no write)."""
    start, end = calendar.day_window(day)
    facts = source.fetch(identity, start, end)
    return compute_daily_activity(
        member_id=identity.member_id, day=day, facts=facts, calendar=calendar,
    )


def aggregate_day(
    engine: Engine,
    identity: MemberIdentity,
    day: date,
    calendar: CivilCalendar,
    source: CommitSource,
    clock: Callable[[], datetime] = utc_now,
) -> DayRecompute:
    """Recompute ``(identity.member_id, day)`` and replace the stored row."""
    aggregation = compute_day(identity, day, calendar, source)
    activity = aggregation.activity

    with get_session(engine) as session:
        existing = session.scalar(
            select(DailyActivity).where(
                DailyActivity.member_id == identity.member_id,
                DailyActivity.day == day,
            )
        )
        previous = existing.to_data() if existing is not None else None
        replace_row(
            session,
            DailyActivity,
            {**activity.values(), "computed_at": clock()},
            DAILY_KEY,
        )

    if aggregation.skipped_events:
        logger.warning(
            "Daily aggregate %s/%s: skipped %d events with bad timestamps",
            identity.member_id, day, aggregation.skipped_events,
        )
    logger.debug(
        "Daily aggregate %s/%s: %d commits", identity.member_id, day, activity.commit_count,
    )
    return DayRecompute(
        previous=previous, current=activity, skipped_events=aggregation.skipped_events,
    )


def load_days(
    engine: Engine,
    member_id: str,
    start: date | None = None,
    end: date | None = None,
) -> dict[date, DailyActivityData]:
    """Stored records for *member_id*, keyed by day (inclusive bounds)."""
    stmt = select(DailyActivity).where(DailyActivity.member_id == member_id)
    if start is not None:
        stmt = stmt.where(DailyActivity.day >= start)
    if end is not None:
        stmt = stmt.where(DailyActivity.day <= end)
    with get_session(engine) as session:
        rows = session.scalars(stmt.order_by(DailyActivity.day)).all()
        return {r.day: r.to_data() for r in rows}


def stored_days(engine: Engine, member_id: str) -> set[date]:
    with get_session(engine) as session:
        return set(session.scalars(
            select(DailyActivity.day).where(DailyActivity.member_id == member_id)
        ).all())
