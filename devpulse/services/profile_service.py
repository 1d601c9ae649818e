"""
devpulse.services.profile_service — Profile Stats Snapshot Writes
==================================================================

Persists :class:`~devpulse.engine.rollup.StatsSnapshot` rows.

* :func:`rebuild_profile_stats` — full rollup over every stored daily row.
* :func:`extend_profile_stats` — incremental extend for recomputed days,
  falling back to a full rebuild when the engine refuses or the snapshot
  no longer matches the stored rows.
* :func:`data_version` — fingerprint of the derived rows for cache keys.
* :func:`remove_member_stats` — the only path that deletes derived rows.

Badges are evaluated on the finished snapshot right before the write, so
a stored badge list always matches the stored totals.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import date, datetime

from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from devpulse.database.engine import get_session
from devpulse.database.models import DailyActivity, ProfileStats
from devpulse.database.upsert import replace_row
from devpulse.engine.badges import DEFAULT_BADGE_DEFINITIONS, BadgeDefinition, evaluate_badges
from devpulse.engine.calendar import utc_now
from devpulse.engine.daily import DailyActivity as DailyActivityData
from devpulse.engine.rollup import (
    IncrementalNotApplicable,
    StatsSnapshot,
    extend_snapshot,
    rollup_full,
)

logger = logging.getLogger(__name__)


def load_snapshot(engine: Engine, member_id: str) -> StatsSnapshot | None:
    with get_session(engine) as session:
        row = session.get(ProfileStats, member_id)
        return row.to_snapshot() if row is not None else None


def _write(
    session: Session,
    snapshot: StatsSnapshot,
    badges: Sequence[BadgeDefinition],
    clock: Callable[[], datetime],
) -> StatsSnapshot:
    snapshot = replace(snapshot, badges=tuple(evaluate_badges(snapshot, badges)))
    replace_row(
        session,
        ProfileStats,
        {**snapshot.values(), "computed_at": clock()},
        ("member_id",),
    )
    return snapshot


def rebuild_profile_stats(
    engine: Engine,
    member_id: str,
    today: date,
    badges: Sequence[BadgeDefinition] = DEFAULT_BADGE_DEFINITIONS,
    clock: Callable[[], datetime] = utc_now,
) -> StatsSnapshot:
    """Full rollup of every stored daily row of *member_id*."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(DailyActivity)
            .where(DailyActivity.member_id == member_id)
            .order_by(DailyActivity.day)
        ).all()
        records = [r.to_data() for r in rows]
        snapshot = _write(session, rollup_full(member_id, records, today), badges, clock)

        # Sum invariant, re-read inside the same transaction
        stored_sum = session.scalar(
            select(func.coalesce(func.sum(DailyActivity.commit_count), 0))
            .where(DailyActivity.member_id == member_id)
        )

    if stored_sum != snapshot.total_commits:
        logger.warning(
            "Consistency anomaly for %s: daily sum %d != total_commits %d",
            member_id, stored_sum, snapshot.total_commits,
        )
    logger.info(
        "Profile rebuilt for %s: %d commits over %d active days",
        member_id, snapshot.total_commits, snapshot.active_days,
    )
    return snapshot


def _check_coverage(session: Session, snapshot: StatsSnapshot) -> None:
    """Raise unless *snapshot* agrees with every stored active row.

    An extended snapshot is only trustworthy when the rows it was built
    from are all the rows there are; a rollup that never ran (e.g. left
    pending by a run budget) leaves day rows it has not seen.
    """
    total, additions, deletions, active, first, last = session.execute(
        select(
            func.coalesce(func.sum(DailyActivity.commit_count), 0),
            func.coalesce(func.sum(DailyActivity.additions), 0),
            func.coalesce(func.sum(DailyActivity.deletions), 0),
            func.count(),
            func.min(DailyActivity.day),
            func.max(DailyActivity.day),
        ).where(
            DailyActivity.member_id == snapshot.member_id,
            DailyActivity.commit_count > 0,
        )
    ).one()
    stored = (total, additions, deletions, active, first, last)
    expected = (
        snapshot.total_commits,
        snapshot.total_additions,
        snapshot.total_deletions,
        snapshot.active_days,
        snapshot.first_active_day,
        snapshot.last_active_day,
    )
    if stored != expected:
        raise IncrementalNotApplicable(
            f"snapshot {expected} does not match stored rows {stored}"
        )


def extend_profile_stats(
    engine: Engine,
    member_id: str,
    changes: Sequence[tuple[DailyActivityData | None, DailyActivityData]],
    today: date,
    badges: Sequence[BadgeDefinition] = DEFAULT_BADGE_DEFINITIONS,
    clock: Callable[[], datetime] = utc_now,
) -> tuple[StatsSnapshot, str]:
    """Apply ``(previous, current)`` day changes (ascending by day).

    The extended snapshot is checked against the stored rows in the
    same transaction that writes it.  Returns ``(snapshot, path)`` where
    *path* is ``"incremental"`` or ``"full"``.
    """
    snapshot = load_snapshot(engine, member_id)
    try:
        if snapshot is None:
            raise IncrementalNotApplicable(f"no snapshot for {member_id}")
        for previous, current in sorted(changes, key=lambda c: c[1].day):
            snapshot = extend_snapshot(snapshot, previous, current, today)
        with get_session(engine) as session:
            _check_coverage(session, snapshot)
            snapshot = _write(session, snapshot, badges, clock)
    except IncrementalNotApplicable as exc:
        logger.info("Incremental extend refused for %s (%s); rebuilding", member_id, exc)
        return rebuild_profile_stats(engine, member_id, today, badges, clock), "full"
    return snapshot, "incremental"


def data_version(engine: Engine, member_id: str) -> str:
    """Fingerprint of a member's derived rows, for cache keys.

    Changes whenever any process rewrites, adds or deletes a daily row or
    the snapshot, so a cached read built from older rows is never hit.
    """
    with get_session(engine) as session:
        rows, commits, additions, deletions, written = session.execute(
            select(
                func.count(),
                func.coalesce(func.sum(DailyActivity.commit_count), 0),
                func.coalesce(func.sum(DailyActivity.additions), 0),
                func.coalesce(func.sum(DailyActivity.deletions), 0),
                func.max(DailyActivity.computed_at),
            ).where(DailyActivity.member_id == member_id)
        ).one()
        profile = session.scalar(
            select(ProfileStats.computed_at).where(ProfileStats.member_id == member_id)
        )
    stamps = [ts.isoformat() if ts is not None else "-" for ts in (written, profile)]
    return f"{rows}.{commits}.{additions}.{deletions}@{stamps[0]}/{stamps[1]}"


def remove_member_stats(engine: Engine, member_id: str) -> dict[str, int]:
    """Delete every derived row of *member_id*."""
    with get_session(engine) as session:
        days = session.execute(
            delete(DailyActivity).where(DailyActivity.member_id == member_id)
        ).rowcount
        profile = session.execute(
            delete(ProfileStats).where(ProfileStats.member_id == member_id)
        ).rowcount
    logger.info("Removed derived stats for %s (%d daily rows)", member_id, days)
    return {"daily_rows_deleted": days, "profile_rows_deleted": profile}
