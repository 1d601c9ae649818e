"""
devpulse.api.routes.public — Read-only member stats endpoints
==============================================================

All reads are served from derived tables plus the live open day; none of
them waits on, or starts, an aggregation run.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, HTTPException, Query, status

from devpulse.api.deps import CacheDep, ConfigDep, EngineDep, RangeQueryDep
from devpulse.services import achievement_service
from devpulse.services.identity import IdentityResolutionError

router = APIRouter(prefix="/members", tags=["public"])


def _call(fn, *args, **kwargs):
    """Run a read service; unknown members become 404, bad input 400."""
    try:
        return fn(*args, **kwargs)
    except IdentityResolutionError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    except ValueError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))


# ---------------------------------------------------------------------------
# Range stats
# ---------------------------------------------------------------------------
@router.get("/{member_id}/stats")
def member_stats(
    member_id: str,
    query: RangeQueryDep,
    granularity: str = Query("week", pattern="^(week|month|year|custom)$"),
    anchor: date | None = None,
    start: date | None = None,
    end: date | None = None,
):
    """Per-day activity for the week/month/year around *anchor* (default today)."""
    return _call(query.get_stats, member_id, granularity, anchor, start, end)


@router.get("/{member_id}/heatmap")
def member_heatmap(
    member_id: str,
    query: RangeQueryDep,
    year: int | None = Query(None, ge=2000, le=2100),
):
    return _call(query.heatmap, member_id, year)


@router.get("/{member_id}/trend")
def member_trend(
    member_id: str,
    query: RangeQueryDep,
    year: int | None = Query(None, ge=2000, le=2100),
):
    return _call(query.weekly_trend, member_id, year)


@router.get("/{member_id}/commit-types")
def member_commit_types(member_id: str, query: RangeQueryDep):
    return _call(query.commit_type_distribution, member_id)


@router.get("/{member_id}/repositories")
def member_repositories(member_id: str, query: RangeQueryDep):
    return _call(query.repo_distribution, member_id)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
@router.get("/{member_id}/badges")
def member_badges(member_id: str, engine: EngineDep, cfg: ConfigDep):
    return _call(achievement_service.get_badges, engine, cfg, member_id)


@router.get("/{member_id}/trophies")
def member_trophies(member_id: str, engine: EngineDep, cfg: ConfigDep, cache: CacheDep):
    return _call(achievement_service.get_trophies, engine, cfg, member_id, cache)
