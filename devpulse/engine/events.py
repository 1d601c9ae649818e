"""
devpulse.engine.events — CommitFact Envelope
=============================================

The normalized commit event the aggregation engine consumes.  Rows from
``commit_events`` (or any other :class:`~devpulse.services.sources.CommitSource`)
are converted into ``CommitFact`` before any calculation happens, so the
engine stays free of ORM objects.

``committed_at`` is deliberately loose (``datetime | str | None``): a
source may hand us something unparseable, and the aggregator is the one
that decides to skip it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

__all__ = ["CommitFact"]


@dataclass(frozen=True, slots=True)
class CommitFact:
    """One version-control commit, as far as the aggregator cares."""

    sha: str
    repository: str
    author_email: str
    committed_at: datetime | str | None
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0
    message: str = ""

    @classmethod
    def from_row(cls, row) -> CommitFact:
        """Build from a :class:`~devpulse.database.models.CommitEvent`."""
        return cls(
            sha=row.sha,
            repository=row.repository,
            author_email=row.author_email,
            committed_at=row.committed_at,
            additions=row.additions or 0,
            deletions=row.deletions or 0,
            files_changed=row.files_changed or 0,
            message=row.message or "",
        )
