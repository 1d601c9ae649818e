"""
devpulse.services.range_service — Week / Month / Year Range Queries
====================================================================

Serves per-day activity over a civil period.

* Closed days come from stored ``daily_activity`` rows, memoised in the
  :class:`~devpulse.engine.cache.StatsCache` when one is supplied under a
  key carrying the member's :func:`~devpulse.services.profile_service.data_version`,
  so a rewrite by any process (the sweep worker included) misses the
  cache.  A day with no stored row is returned as a zero entry with
  ``computed: False``.
* The still-open civil day (today) is always recomputed live from the
  commit journal and merged in.  It is never written and never cached, so
  a commit ingested after the last sweep shows up immediately.
* Days after today are not returned.

Range queries never wait on, or trigger, an aggregation run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta

from sqlalchemy import Engine

from devpulse.config import DevPulseConfig
from devpulse.engine.cache import StatsCache, days_key
from devpulse.engine.calendar import (
    GRANULARITIES,
    CivilCalendar,
    date_range,
    iso_week_key,
    utc_now,
)
from devpulse.engine.commit_types import empty_type_distribution
from devpulse.engine.daily import DailyActivity
from devpulse.services import activity_service, profile_service
from devpulse.services.identity import DatabaseIdentityResolver, IdentityResolver, MemberIdentity
from devpulse.services.sources import CommitSource, SqlCommitSource

logger = logging.getLogger(__name__)

CUSTOM = "custom"
MAX_CUSTOM_DAYS = 366


class RangeQuery:
    """Read models over a member's daily activity."""

    def __init__(
        self,
        engine: Engine,
        config: DevPulseConfig,
        *,
        cache: StatsCache | None = None,
        resolver: IdentityResolver | None = None,
        source: CommitSource | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.engine = engine
        self.config = config
        self.calendar: CivilCalendar = config.calendar()
        self.cache = cache
        self.resolver = resolver or DatabaseIdentityResolver(engine)
        self.source = source or SqlCommitSource(engine)
        self.clock = clock

    def today(self) -> date:
        return self.calendar.today(self.clock())

    # -------------------------------------------------------------------
    # Day collection
    # -------------------------------------------------------------------
    def _closed_days(self, member_id: str, start: date, end: date) -> dict[date, DailyActivity]:
        if end < start:
            return {}
        if self.cache is None:
            return activity_service.load_days(self.engine, member_id, start, end)
        version = profile_service.data_version(self.engine, member_id)
        return self.cache.get_or_set(
            days_key(member_id, start, end, version),
            lambda: activity_service.load_days(self.engine, member_id, start, end),
        )

    def collect_days(
        self,
        identity: MemberIdentity,
        start: date,
        end: date,
    ) -> list[tuple[date, DailyActivity | None, bool]]:
        """``(day, record, live)`` for every day in ``[start, min(end, today)]``."""
        today = self.today()
        last = min(end, today)
        stored = self._closed_days(identity.member_id, start, min(last, today - timedelta(days=1)))

        out: list[tuple[date, DailyActivity | None, bool]] = []
        for day in date_range(start, last):
            if day == today:
                live = activity_service.compute_day(identity, day, self.calendar, self.source)
                out.append((day, live.activity, True))
            else:
                out.append((day, stored.get(day), False))
        return out

    # -------------------------------------------------------------------
    # Public read models
    # -------------------------------------------------------------------
    def resolve_span(
        self,
        granularity: str,
        anchor: date | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> tuple[date, date]:
        if granularity == CUSTOM:
            if start is None or end is None:
                raise ValueError("custom granularity requires start and end")
            if end < start:
                raise ValueError(f"end {end} is before start {start}")
            if (end - start).days + 1 > MAX_CUSTOM_DAYS:
                raise ValueError(f"custom range longer than {MAX_CUSTOM_DAYS} days")
            return start, end
        if granularity not in GRANULARITIES:
            raise ValueError(
                f"Invalid granularity: {granularity!r}. Must be one of {GRANULARITIES + (CUSTOM,)}"
            )
        return self.calendar.period_bounds(granularity, anchor or self.today())

    def get_stats(
        self,
        member_id: str,
        granularity: str,
        anchor: date | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> dict:
        """Per-day activity and totals for one member over one period."""
        identity = self.resolver.resolve(member_id)
        span_start, span_end = self.resolve_span(granularity, anchor, start, end)

        days = []
        totals = {"commits": 0, "additions": 0, "deletions": 0, "files_changed": 0, "active_days": 0}
        for day, record, live in self.collect_days(identity, span_start, span_end):
            count = record.commit_count if record else 0
            days.append({
                "date": day.isoformat(),
                "commit_count": count,
                "additions": record.additions if record else 0,
                "deletions": record.deletions if record else 0,
                "has_activity": count > 0,
                "computed": record is not None,
                "live": live,
            })
            if record is not None:
                totals["commits"] += record.commit_count
                totals["additions"] += record.additions
                totals["deletions"] += record.deletions
                totals["files_changed"] += record.files_changed
                totals["active_days"] += 1 if record.has_activity else 0

        snapshot = profile_service.load_snapshot(self.engine, member_id)
        return {
            "member_id": member_id,
            "granularity": granularity,
            "start": span_start.isoformat(),
            "end": span_end.isoformat(),
            "days": days,
            "totals": totals,
            "snapshot": _snapshot_summary(snapshot),
        }

    def heatmap(self, member_id: str, year: int | None = None) -> dict:
        """Per-day commit counts for one calendar year (days with a record)."""
        identity = self.resolver.resolve(member_id)
        year = year or self.today().year
        start, end = self.calendar.period_bounds("year", date(year, 1, 1))
        cells = [
            {"date": day.isoformat(), "count": record.commit_count}
            for day, record, _ in self.collect_days(identity, start, end)
            if record is not None and record.has_activity
        ]
        return {"member_id": member_id, "year": year, "days": cells}

    def weekly_trend(self, member_id: str, year: int | None = None) -> dict:
        """ISO-week totals of commits, additions and deletions for one year."""
        identity = self.resolver.resolve(member_id)
        year = year or self.today().year
        start, end = self.calendar.period_bounds("year", date(year, 1, 1))

        weeks: dict[str, dict[str, int]] = {}
        for day, record, _ in self.collect_days(identity, start, end):
            if record is None or not record.has_activity:
                continue
            bucket = weeks.setdefault(iso_week_key(day), {"commits": 0, "additions": 0, "deletions": 0})
            bucket["commits"] += record.commit_count
            bucket["additions"] += record.additions
            bucket["deletions"] += record.deletions

        return {
            "member_id": member_id,
            "year": year,
            "weeks": [{"week": week, **data} for week, data in sorted(weeks.items())],
        }

    def commit_type_distribution(self, member_id: str) -> dict:
        """All-time commit counts per category, from stored rows."""
        self.resolver.resolve(member_id)
        totals = empty_type_distribution()
        for record in activity_service.load_days(self.engine, member_id).values():
            for kind, count in record.type_distribution.items():
                totals[kind] = totals.get(kind, 0) + count
        return {"member_id": member_id, **totals, "total": sum(totals.values())}

    def repo_distribution(self, member_id: str) -> list[dict]:
        """All-time commits per repository with share, largest first."""
        self.resolver.resolve(member_id)
        return repo_distribution(activity_service.load_days(self.engine, member_id).values())


def repo_distribution(records) -> list[dict]:
    repo_totals: dict[str, int] = {}
    for record in records:
        for repo, count in (record.repo_breakdown or {}).items():
            repo_totals[repo] = repo_totals.get(repo, 0) + count
    total = sum(repo_totals.values())
    rows = [
        {
            "repo": repo,
            "commits": commits,
            "percentage": round(commits / total * 100, 2) if total else 0.0,
        }
        for repo, commits in repo_totals.items()
    ]
    return sorted(rows, key=lambda r: (-r["commits"], r["repo"]))


def _snapshot_summary(snapshot) -> dict | None:
    if snapshot is None:
        return None
    return {
        "total_commits": snapshot.total_commits,
        "current_streak": snapshot.current_streak,
        "longest_streak": snapshot.longest_streak,
        "peak_hour": snapshot.peak_hour,
        "active_days": snapshot.active_days,
        "as_of": snapshot.as_of.isoformat() if snapshot.as_of else None,
    }
