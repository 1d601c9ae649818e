"""
devpulse.services.aggregation_service — Aggregation Orchestrator
=================================================================

Entry point for every recompute trigger: the scheduled sweep, the admin
endpoint, and the per-member ingest hook.

Modes:

* ``member``     — recompute every day the member has commits or a stored
                   row for, then full rollup.
* ``date-range`` — recompute each date in ``[start, end]`` for every
                   active member (or the given ``member_ids``), then roll
                   up each member with at least one written day.
* ``full``       — ``member`` mode for every active member.

Each unit runs on a bounded thread pool and is isolated: a failure is
classified, logged and recorded in the report while the other units
carry on.  Units still queued when the run budget expires are reported
as ``pending`` instead of running.

Every write is a full replace keyed by (member, day) or member, so runs
that overlap converge on the same rows.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from devpulse.config import DevPulseConfig
from devpulse.engine.cache import StatsCache, member_prefix
from devpulse.engine.calendar import date_range, parse_timestamp, trailing_window, utc_now
from devpulse.services import activity_service, profile_service
from devpulse.services.identity import (
    DatabaseIdentityResolver,
    IdentityResolutionError,
    IdentityResolver,
)
from devpulse.services.sources import CommitSource, SqlCommitSource

logger = logging.getLogger(__name__)

MODES: tuple[str, ...] = ("member", "date-range", "full")

# Longest span a single date-range run accepts
MAX_RANGE_DAYS = 366


def classify_failure(exc: BaseException) -> str:
    """Map an exception to a failure kind: dependency, storage or internal."""
    if isinstance(exc, IdentityResolutionError):
        return "dependency"
    if isinstance(exc, SQLAlchemyError):
        return "storage"
    return "internal"


@dataclass(slots=True)
class UnitFailure:
    unit: str
    kind: str
    reason: str

    def to_dict(self) -> dict:
        return {"unit": self.unit, "kind": self.kind, "reason": self.reason}


@dataclass(slots=True)
class AggregationReport:
    mode: str
    started_at: datetime
    finished_at: datetime | None = None
    succeeded: list[str] = field(default_factory=list)
    failures: list[UnitFailure] = field(default_factory=list)
    pending_units: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.pending_units

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "succeeded": len(self.succeeded),
            "failed": len(self.failures),
            "pending": len(self.pending_units),
            "failures": [f.to_dict() for f in self.failures],
            "pending_units": list(self.pending_units),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


_DONE = "done"
_PENDING = "pending"


class Aggregator:
    """Runs aggregation units against one engine and config.

    Collaborators default to the database-backed ones; tests swap in
    their own resolver, source, clock or monotonic timer.
    """

    def __init__(
        self,
        engine: Engine,
        config: DevPulseConfig,
        *,
        resolver: IdentityResolver | None = None,
        source: CommitSource | None = None,
        cache: StatsCache | None = None,
        clock: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.config = config
        self.calendar = config.calendar()
        self.resolver = resolver or DatabaseIdentityResolver(engine)
        self.source = source or SqlCommitSource(engine)
        self.cache = cache
        self.clock = clock
        self.monotonic = monotonic

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    def aggregate(
        self,
        mode: str,
        scope: dict | None = None,
        budget_seconds: float | None = None,
    ) -> AggregationReport:
        """Run one aggregation in *mode* over *scope*.

        Scope keys: ``member_id`` (member mode); ``start``, ``end`` and
        optional ``member_ids`` (date-range mode).  Full mode takes none.

        Raises
        ------
        ValueError
            On an unknown mode or a malformed scope.
        """
        scope = scope or {}
        budget = self.config.run_budget_seconds if budget_seconds is None else budget_seconds
        deadline = self.monotonic() + budget
        report = AggregationReport(mode=mode, started_at=self.clock())

        if mode == "member":
            member_id = scope.get("member_id")
            if not member_id:
                raise ValueError("member mode requires scope['member_id']")
            units = [(f"member:{member_id}", lambda: self.rebuild_member(member_id))]
            self._run(units, deadline, report)
        elif mode == "full":
            units = [
                (f"member:{m}", (lambda m=m: self.rebuild_member(m)))
                for m in self.resolver.active_member_ids()
            ]
            self._run(units, deadline, report)
        elif mode == "date-range":
            start, end = _parse_range(scope)
            member_ids = scope.get("member_ids") or self.resolver.active_member_ids()
            self._run_date_range(member_ids, date_range(start, end), deadline, report)
        else:
            raise ValueError(f"Invalid mode: {mode!r}. Must be one of {MODES}")

        report.finished_at = self.clock()
        logger.info(
            "Aggregation %s finished: %d ok, %d failed, %d pending",
            mode, len(report.succeeded), len(report.failures), len(report.pending_units),
        )
        return report

    def rebuild_member(self, member_id: str) -> None:
        """Recompute every known day of *member_id*, then full rollup."""
        identity = self.resolver.resolve(member_id)
        days = self.source.active_days(identity, self.calendar)
        days |= activity_service.stored_days(self.engine, member_id)
        for day in sorted(days):
            activity_service.aggregate_day(
                self.engine, identity, day, self.calendar, self.source, self.clock,
            )
        self._rollup(member_id)

    def on_commits_ingested(self, member_id: str, timestamps: Iterable[object]) -> dict:
        """Recompute only the days touched by freshly ingested commits.

        The profile is extended incrementally where that provably matches
        a full rebuild; otherwise it is rebuilt.
        """
        identity = self.resolver.resolve(member_id)
        days = sorted({
            self.calendar.day_of(ts)
            for ts in (parse_timestamp(t) for t in timestamps)
            if ts is not None
        })
        if not days:
            return {"member_id": member_id, "days": [], "path": None, "skipped_events": 0}

        changes = []
        skipped = 0
        for day in days:
            result = activity_service.aggregate_day(
                self.engine, identity, day, self.calendar, self.source, self.clock,
            )
            changes.append((result.previous, result.current))
            skipped += result.skipped_events

        _, path = profile_service.extend_profile_stats(
            self.engine, member_id, changes, self._today(),
            self.config.badges, self.clock,
        )
        self._invalidate(member_id)
        return {
            "member_id": member_id,
            "days": [d.isoformat() for d in days],
            "path": path,
            "skipped_events": skipped,
        }

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _today(self) -> date:
        return self.calendar.today(self.clock())

    def _rollup(self, member_id: str) -> None:
        profile_service.rebuild_profile_stats(
            self.engine, member_id, self._today(), self.config.badges, self.clock,
        )
        self._invalidate(member_id)

    def _invalidate(self, member_id: str) -> None:
        if self.cache is not None:
            self.cache.invalidate_prefix(member_prefix(member_id))

    def _aggregate_one_day(self, member_id: str, day: date) -> None:
        identity = self.resolver.resolve(member_id)
        activity_service.aggregate_day(
            self.engine, identity, day, self.calendar, self.source, self.clock,
        )
        self._invalidate(member_id)

    def _run_date_range(
        self,
        member_ids: Sequence[str],
        days: Sequence[date],
        deadline: float,
        report: AggregationReport,
    ) -> None:
        day_units = [
            (f"day:{m}:{d.isoformat()}", (lambda m=m, d=d: self._aggregate_one_day(m, d)))
            for d in days
            for m in member_ids
        ]
        outcomes = self._run(day_units, deadline, report)

        touched = []
        for member_id in member_ids:
            prefix = f"day:{member_id}:"
            if any(name.startswith(prefix) and out == _DONE for name, out in outcomes.items()):
                touched.append(member_id)

        rollup_units = [
            (f"rollup:{m}", (lambda m=m: self._rollup(m))) for m in touched
        ]
        self._run(rollup_units, deadline, report)

    def _guarded(self, name: str, fn: Callable[[], object], deadline: float) -> tuple[str, UnitFailure | None]:
        if self.monotonic() >= deadline:
            return _PENDING, None
        try:
            fn()
        except Exception as exc:
            kind = classify_failure(exc)
            if kind == "internal":
                logger.exception("Aggregation unit %s crashed", name)
            else:
                logger.error("Aggregation unit %s failed (%s): %s", name, kind, exc)
            return "failed", UnitFailure(unit=name, kind=kind, reason=str(exc) or type(exc).__name__)
        return _DONE, None

    def _run(
        self,
        units: list[tuple[str, Callable[[], object]]],
        deadline: float,
        report: AggregationReport,
    ) -> dict[str, str]:
        """Run *units* on the pool; record each outcome on *report*."""
        outcomes: dict[str, str] = {}
        if not units:
            return outcomes

        with ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="devpulse-agg",
        ) as pool:
            futures = [
                (name, pool.submit(self._guarded, name, fn, deadline)) for name, fn in units
            ]
            for name, future in futures:
                outcome, failure = future.result()
                outcomes[name] = outcome
                if outcome == _DONE:
                    report.succeeded.append(name)
                elif outcome == _PENDING:
                    report.pending_units.append(name)
                else:
                    report.failures.append(failure)
        return outcomes


def _parse_range(scope: dict) -> tuple[date, date]:
    start, end = scope.get("start"), scope.get("end")
    if start is None or end is None:
        raise ValueError("date-range mode requires scope['start'] and scope['end']")
    if isinstance(start, str):
        start = date.fromisoformat(start)
    if isinstance(end, str):
        end = date.fromisoformat(end)
    if end < start:
        raise ValueError(f"end {end} is before start {start}")
    if (end - start).days + 1 > MAX_RANGE_DAYS:
        raise ValueError(f"date range longer than {MAX_RANGE_DAYS} days")
    return start, end


def aggregate(
    engine: Engine,
    config: DevPulseConfig,
    mode: str,
    scope: dict | None = None,
    cache: StatsCache | None = None,
) -> dict:
    """Functional entry point: run one aggregation and return the report dict."""
    return Aggregator(engine, config, cache=cache).aggregate(mode, scope).to_dict()


def sweep_recent(
    engine: Engine,
    config: DevPulseConfig,
    cache: StatsCache | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> dict:
    """Scheduled sweep: recompute the trailing ``sweep_window_days`` window."""
    aggregator = Aggregator(engine, config, cache=cache, clock=clock)
    start, end = trailing_window(aggregator.calendar.today(clock()), config.sweep_window_days)
    return aggregator.aggregate("date-range", {"start": start, "end": end}).to_dict()
