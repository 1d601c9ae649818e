"""
devpulse.api.deps — FastAPI dependency injection
=================================================

Process-wide collaborators (engine, config, stats cache) are built once
and handed to routes through ``Depends``; tests swap them with
``app.dependency_overrides``.  Admin routes additionally require a bearer
JWT carrying ``is_admin``.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from devpulse.config import DevPulseConfig, load_config
from devpulse.database.engine import create_db_engine
from devpulse.engine.cache import MemoryBackend, StatsCache
from devpulse.services.range_service import RangeQuery

JWT_ALGORITHM = "HS256"

_MIN_SECRET_LENGTH = 32

# Placeholders that have shipped in example env files
_WEAK_SECRETS = frozenset({"devpulse-dev-secret-change-me", "change-me", "changeme", "secret", "dev"})


def _load_jwt_secret() -> str:
    """Return ``JWT_SECRET``, refusing missing, placeholder or short values.

    Runs at import time, so a misconfigured API fails before serving.
    """
    secret = os.getenv("JWT_SECRET", "").strip()
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret.lower() in _WEAK_SECRETS:
        raise RuntimeError(f"JWT_SECRET is a known weak default ('{secret}'); set a unique secret.")
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars, need {_MIN_SECRET_LENGTH})."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


# ---------------------------------------------------------------------------
# Shared collaborators
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> DevPulseConfig:
    return load_config(os.getenv("DEVPULSE_CONFIG", "config.yaml"))


@lru_cache(maxsize=1)
def get_stats_cache() -> StatsCache:
    return StatsCache(MemoryBackend(), default_ttl=get_config().cache_ttl_seconds)


EngineDep = Annotated[Engine, Depends(get_engine)]
ConfigDep = Annotated[DevPulseConfig, Depends(get_config)]
CacheDep = Annotated[StatsCache, Depends(get_stats_cache)]


def get_range_query(engine: EngineDep, cfg: ConfigDep, cache: CacheDep) -> RangeQuery:
    """Per-request range reader over the shared engine, config and cache."""
    return RangeQuery(engine, cfg, cache=cache)


RangeQueryDep = Annotated[RangeQuery, Depends(get_range_query)]


# ---------------------------------------------------------------------------
# Admin guard
# ---------------------------------------------------------------------------
def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Decode the bearer token; 401 when absent or invalid, 403 for non-admins.

    Tokens are issued elsewhere; this service only verifies them.
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme != "Bearer" or not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return payload


AdminDep = Annotated[dict, Depends(get_current_admin)]
