"""
devpulse.services.consistency_service — Derived-Cache Audit
============================================================

Read-only check of the derived tables against each other and against
the commit journal.  Anomalies are logged and returned; nothing is
corrected here.  The remedy is a ``member`` or ``full`` aggregation.

Checks:
    1. ``profile_stats.total_commits`` equals the sum of the member's
       ``daily_activity.commit_count`` (the sum invariant).
    2. The number of timestamped journal commits attributed to the member
       equals that same daily sum (``stale``: the journal has moved on
       since the last rebuild).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, func, select

from devpulse.database.engine import get_session
from devpulse.database.models import CommitEvent, DailyActivity, Member, ProfileStats

logger = logging.getLogger(__name__)


def check_consistency(engine: Engine) -> dict:
    """Audit every active member.

    Returns ``{"checked": N, "mismatches": [...], "stale": [...], "timestamp": ...}``.
    """
    mismatches: list[dict] = []
    stale: list[dict] = []

    with get_session(engine) as session:
        daily_sums = dict(session.execute(
            select(DailyActivity.member_id, func.sum(DailyActivity.commit_count))
            .group_by(DailyActivity.member_id)
        ).all())
        totals = dict(session.execute(
            select(ProfileStats.member_id, ProfileStats.total_commits)
        ).all())
        members = session.scalars(select(Member).where(Member.active.is_(True))).all()

        checked = 0
        for member in members:
            checked += 1
            daily_sum = int(daily_sums.get(member.id) or 0)

            total = totals.get(member.id)
            if total is not None and total != daily_sum:
                mismatches.append({
                    "member_id": member.id,
                    "daily_sum": daily_sum,
                    "total_commits": total,
                    "diff": daily_sum - total,
                })

            journal = session.scalar(
                select(func.count()).select_from(CommitEvent).where(
                    (CommitEvent.member_id == member.id)
                    | (func.lower(CommitEvent.author_email) == member.email.strip().lower()),
                    CommitEvent.committed_at.is_not(None),
                )
            ) or 0
            if journal != daily_sum:
                stale.append({"member_id": member.id, "journal": journal, "daily_sum": daily_sum})

    if mismatches:
        logger.warning(
            "Consistency anomaly: %d/%d snapshots disagree with their daily rows: %s",
            len(mismatches), checked, mismatches,
        )
    if stale:
        logger.warning("Consistency: %d members have unaggregated journal commits", len(stale))
    if not mismatches and not stale:
        logger.info("Consistency check: all %d members match", checked)

    return {
        "checked": checked,
        "mismatches": mismatches,
        "stale": stale,
        "timestamp": datetime.now(UTC).isoformat(),
    }
