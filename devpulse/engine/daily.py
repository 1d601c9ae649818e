"""
devpulse.engine.daily — One Member × One Day Aggregation
=========================================================

Pure calculation of a daily activity record from the commit facts of a
single member.  No database I/O: the service layer fetches the facts and
persists the result as a full replace.

Data errors (missing/unparseable timestamps) are skipped and logged here;
the rest of the day still aggregates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

from devpulse.constants import HOURS_PER_DAY
from devpulse.engine.calendar import CivilCalendar, parse_timestamp
from devpulse.engine.commit_types import classify_commit, empty_type_distribution
from devpulse.engine.events import CommitFact

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DailyActivity:
    """Derived activity for one (member, civil day).

    ``first_commit_at`` / ``last_commit_at`` are ``None`` on a zero day.
    """

    member_id: str
    day: date
    commit_count: int = 0
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0
    hourly_distribution: list[int] = field(default_factory=lambda: [0] * HOURS_PER_DAY)
    type_distribution: dict[str, int] = field(default_factory=empty_type_distribution)
    repo_breakdown: dict[str, int] = field(default_factory=dict)
    first_commit_at: datetime | None = None
    last_commit_at: datetime | None = None

    @property
    def has_activity(self) -> bool:
        return self.commit_count > 0

    def values(self) -> dict:
        """Column values for the ``daily_activity`` row (minus ``computed_at``)."""
        return {
            "member_id": self.member_id,
            "day": self.day,
            "commit_count": self.commit_count,
            "additions": self.additions,
            "deletions": self.deletions,
            "files_changed": self.files_changed,
            "hourly_distribution": list(self.hourly_distribution),
            "type_distribution": dict(self.type_distribution),
            "repo_breakdown": dict(self.repo_breakdown),
            "first_commit_at": self.first_commit_at,
            "last_commit_at": self.last_commit_at,
        }


@dataclass(frozen=True, slots=True)
class DailyAggregation:
    """Result of :func:`compute_daily_activity` — the record plus bookkeeping."""

    activity: DailyActivity
    skipped_events: int = 0
    out_of_window: int = 0


def compute_daily_activity(
    *,
    member_id: str,
    day: date,
    facts: Iterable[CommitFact],
    calendar: CivilCalendar,
) -> DailyAggregation:
    """Aggregate *facts* into the record for ``(member_id, day)``.

    Each fact is bucketed through *calendar*; facts landing on another civil
    day are ignored (a source is allowed to over-fetch).  Duplicate SHAs
    are counted once.  Zero matching facts yield an explicit zero record.
    """
    hourly = [0] * HOURS_PER_DAY
    types = empty_type_distribution()
    repos: dict[str, int] = {}
    seen: set[str] = set()

    commit_count = additions = deletions = files_changed = 0
    first_at: datetime | None = None
    last_at: datetime | None = None
    skipped = 0
    out_of_window = 0

    for fact in facts:
        committed_at = parse_timestamp(fact.committed_at)
        if committed_at is None:
            skipped += 1
            logger.warning(
                "Skipping commit %s for member %s: unusable timestamp %r",
                fact.sha, member_id, fact.committed_at,
            )
            continue

        key = calendar.bucket(committed_at)
        if key.day != day:
            out_of_window += 1
            continue
        if fact.sha in seen:
            continue
        seen.add(fact.sha)

        commit_count += 1
        additions += max(0, int(fact.additions or 0))
        deletions += max(0, int(fact.deletions or 0))
        files_changed += max(0, int(fact.files_changed or 0))
        hourly[key.hour] += 1
        types[classify_commit(fact.message).value] += 1
        repos[fact.repository] = repos.get(fact.repository, 0) + 1

        if first_at is None or committed_at < first_at:
            first_at = committed_at
        if last_at is None or committed_at > last_at:
            last_at = committed_at

    activity = DailyActivity(
        member_id=member_id,
        day=day,
        commit_count=commit_count,
        additions=additions,
        deletions=deletions,
        files_changed=files_changed,
        hourly_distribution=hourly,
        type_distribution=types,
        repo_breakdown=dict(sorted(repos.items())),
        first_commit_at=first_at,
        last_commit_at=last_at,
    )
    return DailyAggregation(activity=activity, skipped_events=skipped, out_of_window=out_of_window)
