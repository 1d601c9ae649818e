"""
devpulse.engine.calendar — Civil-Time Calendar Bucketing
=========================================================

THE single authority for turning instants into calendar days and hours.
Every module that needs a day key, an hour slot, a day window or a
week/month/year span goes through here — never through ad hoc
``timedelta`` arithmetic on raw UTC instants.

All members share one fixed civil timezone (``config.timezone``).
Conversion is done with :mod:`zoneinfo`, so DST transitions and
non-hour offsets are handled by the tz database, not by us.

Usage::

    cal = CivilCalendar("Asia/Seoul")
    key = cal.bucket(commit.committed_at)     # DayKey(day=date(...), hour=23)
    start, end = cal.day_window(key.day)      # [start, end) as UTC instants
"""

from __future__ import annotations

import calendar as _stdlib_calendar
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from devpulse.constants import DEFAULT_TIMEZONE

GRANULARITIES: tuple[str, ...] = ("week", "month", "year")


@dataclass(frozen=True, slots=True)
class DayKey:
    """Calendar day plus hour-of-day (0–23) in the civil timezone."""

    day: date
    hour: int


def as_utc(value: datetime) -> datetime:
    """Normalise *value* to an aware UTC datetime.

    Naive datetimes are treated as UTC (that is how SQLite hands back
    ``DateTime(timezone=True)`` columns).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: object) -> datetime | None:
    """Coerce a raw event timestamp into an aware UTC datetime.

    Accepts datetimes and ISO-8601 strings (a trailing ``Z`` is allowed).
    Returns ``None`` for anything missing or unparseable — callers treat
    that as a data error and skip the event.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            return as_utc(datetime.fromisoformat(raw))
        except ValueError:
            return None
    return None


class CivilCalendar:
    """Day/hour bucketing in one fixed civil timezone."""

    def __init__(self, tz_name: str = DEFAULT_TIMEZONE) -> None:
        try:
            self._tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {tz_name!r}") from exc
        self.tz_name = tz_name

    def __repr__(self) -> str:
        return f"<CivilCalendar tz={self.tz_name}>"

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    # -------------------------------------------------------------------
    # Instant → civil
    # -------------------------------------------------------------------
    def to_civil(self, instant: datetime) -> datetime:
        return as_utc(instant).astimezone(self._tz)

    def bucket(self, instant: datetime) -> DayKey:
        """Map an absolute instant to its civil ``DayKey``."""
        local = self.to_civil(instant)
        return DayKey(day=local.date(), hour=local.hour)

    def day_of(self, instant: datetime) -> date:
        return self.bucket(instant).day

    def today(self, now: datetime | None = None) -> date:
        """Civil 'today' for *now* (defaults to the current instant)."""
        return self.day_of(now if now is not None else datetime.now(UTC))

    # -------------------------------------------------------------------
    # Civil → instants
    # -------------------------------------------------------------------
    def day_start(self, day: date) -> datetime:
        """UTC instant of civil midnight opening *day*."""
        return datetime.combine(day, time.min, tzinfo=self._tz).astimezone(UTC)

    def day_window(self, day: date) -> tuple[datetime, datetime]:
        """Half-open ``[start, end)`` window of *day* as UTC instants.

        The end is the start of the following civil day, so 23- and
        25-hour DST days come out right.
        """
        return self.day_start(day), self.day_start(day + timedelta(days=1))

    # -------------------------------------------------------------------
    # Spans
    # -------------------------------------------------------------------
    def period_bounds(self, granularity: str, anchor: date) -> tuple[date, date]:
        """Inclusive ``(first_day, last_day)`` of the period holding *anchor*.

        ``week`` is the ISO week (Monday–Sunday).
        """
        if granularity == "week":
            start = anchor - timedelta(days=anchor.weekday())
            return start, start + timedelta(days=6)
        if granularity == "month":
            last = _stdlib_calendar.monthrange(anchor.year, anchor.month)[1]
            return anchor.replace(day=1), anchor.replace(day=last)
        if granularity == "year":
            return date(anchor.year, 1, 1), date(anchor.year, 12, 31)
        raise ValueError(
            f"Invalid granularity: {granularity!r}. Must be one of {GRANULARITIES}"
        )


def date_range(start: date, end: date) -> list[date]:
    """Every calendar date from *start* to *end*, inclusive."""
    if end < start:
        return []
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def trailing_window(end: date, days: int) -> tuple[date, date]:
    """Inclusive ``(start, end)`` of the *days*-long window closing on *end*."""
    if days < 1:
        raise ValueError(f"window must span at least one day, got {days}")
    return end - timedelta(days=days - 1), end


def iso_week_key(day: date) -> str:
    """``YYYY-Www`` label of the ISO week containing *day*."""
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def utc_now() -> datetime:
    """Default clock for services; tests inject a fixed one."""
    return datetime.now(UTC)
