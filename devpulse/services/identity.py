"""
devpulse.services.identity — Member Identity Resolution
========================================================

Mapping free-text commit authors to members happens upstream.  The core
only asks one question: *which emails belong to member X?*  That seam is
the :class:`IdentityResolver` protocol; the default implementation reads
the ``members`` table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import Engine, select

from devpulse.database.engine import get_session
from devpulse.database.models import Member

logger = logging.getLogger(__name__)


class DevPulseError(Exception):
    """Base class for errors raised by DevPulse services."""


class IdentityResolutionError(DevPulseError):
    """A member could not be resolved to an identity."""


@dataclass(frozen=True, slots=True)
class MemberIdentity:
    member_id: str
    emails: frozenset[str]
    active: bool = True


class IdentityResolver(Protocol):
    def resolve(self, member_id: str) -> MemberIdentity: ...
    def active_member_ids(self) -> list[str]: ...


class DatabaseIdentityResolver:
    """Resolve identities from the ``members`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def resolve(self, member_id: str) -> MemberIdentity:
        with get_session(self._engine) as session:
            member = session.get(Member, member_id)
            if member is None:
                raise IdentityResolutionError(f"Unknown member: {member_id!r}")
            if not member.email:
                raise IdentityResolutionError(f"Member {member_id!r} has no email")
            return MemberIdentity(
                member_id=member.id,
                emails=frozenset({member.email.strip().lower()}),
                active=bool(member.active),
            )

    def active_member_ids(self) -> list[str]:
        with get_session(self._engine) as session:
            return list(session.scalars(
                select(Member.id).where(Member.active.is_(True)).order_by(Member.id)
            ).all())
