"""
devpulse.services.sources — Commit Event Sources
=================================================

A :class:`CommitSource` returns the raw commits for one member inside a
half-open UTC window.  The default reads ``commit_events``; tests and
alternative ingest paths can pass anything with the same ``fetch``.

Sources may over-fetch: the daily aggregator re-buckets every fact and
drops whatever lands on another civil day.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

from sqlalchemy import Engine, func, or_, select

from devpulse.database.engine import get_session
from devpulse.database.models import CommitEvent
from devpulse.engine.calendar import CivilCalendar
from devpulse.engine.events import CommitFact
from devpulse.services.identity import MemberIdentity


class CommitSource(Protocol):
    def fetch(self, identity: MemberIdentity, start: datetime, end: datetime) -> list[CommitFact]: ...
    def active_days(self, identity: MemberIdentity, calendar: CivilCalendar) -> set[date]: ...


def _belongs_to(identity: MemberIdentity):
    return or_(
        CommitEvent.member_id == identity.member_id,
        func.lower(CommitEvent.author_email).in_(sorted(identity.emails)),
    )


class SqlCommitSource:
    """Commits from the ``commit_events`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def fetch(self, identity: MemberIdentity, start: datetime, end: datetime) -> list[CommitFact]:
        with get_session(self._engine) as session:
            rows = session.scalars(
                select(CommitEvent)
                .where(
                    _belongs_to(identity),
                    CommitEvent.committed_at >= start,
                    CommitEvent.committed_at < end,
                )
                .order_by(CommitEvent.committed_at)
            ).all()
            return [CommitFact.from_row(r) for r in rows]

    def active_days(self, identity: MemberIdentity, calendar: CivilCalendar) -> set[date]:
        """Every civil day holding at least one of the member's commits."""
        with get_session(self._engine) as session:
            stamps = session.scalars(
                select(CommitEvent.committed_at).where(
                    _belongs_to(identity),
                    CommitEvent.committed_at.is_not(None),
                )
            ).all()
        return {calendar.day_of(ts) for ts in stamps}
