"""
devpulse.api.routes.admin — Aggregation trigger and audit endpoints (JWT‑protected)
====================================================================================
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select

from devpulse.api.deps import AdminDep, CacheDep, ConfigDep, EngineDep
from devpulse.database.engine import get_session
from devpulse.database.models import Member, ProfileStats
from devpulse.engine.cache import member_prefix
from devpulse.services import consistency_service, profile_service
from devpulse.services.aggregation_service import MODES, Aggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AggregateRequest(BaseModel):
    mode: str = Field("full", pattern="^(member|date-range|full)$")
    member_id: str | None = None
    member_ids: list[str] | None = None
    start: date | None = None
    end: date | None = None
    budget_seconds: float | None = Field(None, gt=0)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------
@router.post("/aggregate")
def trigger_aggregate(
    body: AggregateRequest,
    admin: AdminDep,
    engine: EngineDep,
    cfg: ConfigDep,
    cache: CacheDep,
):
    """Run an aggregation synchronously and return its report."""
    scope: dict = {}
    if body.mode == "member":
        scope = {"member_id": body.member_id}
    elif body.mode == "date-range":
        scope = {"start": body.start, "end": body.end, "member_ids": body.member_ids}

    logger.info("Admin %s triggered %s aggregation %s", admin.get("sub"), body.mode, scope)
    try:
        report = Aggregator(engine, cfg, cache=cache).aggregate(
            body.mode, scope, budget_seconds=body.budget_seconds,
        )
    except ValueError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))
    return report.to_dict()


@router.get("/aggregate/status")
def aggregate_status(admin: AdminDep, engine: EngineDep):
    """Per-member snapshot overview: when each profile was last computed."""
    with get_session(engine) as session:
        rows = session.execute(
            select(Member, ProfileStats)
            .outerjoin(ProfileStats, ProfileStats.member_id == Member.id)
            .order_by(Member.id)
        ).all()
        members = [
            {
                "member_id": member.id,
                "name": member.name,
                "active": member.active,
                "total_commits": stats.total_commits if stats else None,
                "as_of": stats.as_of.isoformat() if stats and stats.as_of else None,
                "computed_at": stats.computed_at.isoformat() if stats else None,
            }
            for member, stats in rows
        ]
    return {"modes": list(MODES), "members": members}


@router.delete("/members/{member_id}/stats")
def delete_member_stats(member_id: str, admin: AdminDep, engine: EngineDep, cache: CacheDep):
    """Drop every derived row of a member (e.g. after removal upstream)."""
    result = profile_service.remove_member_stats(engine, member_id)
    cache.invalidate_prefix(member_prefix(member_id))
    return result


# ---------------------------------------------------------------------------
# Consistency
# ---------------------------------------------------------------------------
@router.get("/consistency")
def consistency(admin: AdminDep, engine: EngineDep):
    return consistency_service.check_consistency(engine)
