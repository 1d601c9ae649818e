"""
devpulse.services.achievement_service — Badge & Trophy Reads
=============================================================

Badges are stored on the snapshot (evaluated at write time); trophies are
derived on read from the snapshot plus the member's repository count,
and memoised in the stats cache when one is given.
"""

from __future__ import annotations

from sqlalchemy import Engine

from devpulse.config import DevPulseConfig
from devpulse.engine.badges import badge_details, group_by_category, next_badge_progress
from devpulse.engine.cache import StatsCache, trophies_key
from devpulse.engine.rollup import StatsSnapshot
from devpulse.engine.trophies import average_rank, calculate_trophies, total_score
from devpulse.services import activity_service, profile_service
from devpulse.services.identity import DatabaseIdentityResolver, IdentityResolver
from devpulse.services.range_service import repo_distribution


def _snapshot_or_empty(engine: Engine, member_id: str, resolver: IdentityResolver | None) -> StatsSnapshot:
    """Stored snapshot, or an empty one for a known member never aggregated."""
    (resolver or DatabaseIdentityResolver(engine)).resolve(member_id)
    return profile_service.load_snapshot(engine, member_id) or StatsSnapshot(member_id=member_id)


def get_badges(
    engine: Engine,
    config: DevPulseConfig,
    member_id: str,
    resolver: IdentityResolver | None = None,
) -> dict:
    snapshot = _snapshot_or_empty(engine, member_id, resolver)
    return {
        "member_id": member_id,
        "badges": badge_details(snapshot.badges, config.badges),
        "by_category": group_by_category(snapshot.badges, config.badges),
        "next": next_badge_progress(snapshot, config.badges),
    }


def get_trophies(
    engine: Engine,
    config: DevPulseConfig,
    member_id: str,
    cache: StatsCache | None = None,
    resolver: IdentityResolver | None = None,
) -> dict:
    def load() -> dict:
        snapshot = _snapshot_or_empty(engine, member_id, resolver)
        records = activity_service.load_days(engine, member_id).values()
        repository_count = len(repo_distribution(records))
        trophies = calculate_trophies(snapshot, repository_count, config.trophies)
        return {
            "member_id": member_id,
            "trophies": [t.to_dict() for t in trophies],
            "total_score": total_score(trophies),
            "average_rank": average_rank(trophies),
        }

    if cache is None:
        return load()
    version = profile_service.data_version(engine, member_id)
    return cache.get_or_set(trophies_key(member_id, version), load)
