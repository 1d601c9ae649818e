"""
devpulse.api.main — FastAPI application entry point
=====================================================

Mounts the public member-stats router and the JWT-guarded admin router
under ``/api``.  Startup builds the engine and parses ``config.yaml`` so
a bad URL or a bad tuning file fails before the first request.

Run with::

    uvicorn devpulse.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from devpulse.api.deps import CacheDep, get_config, get_engine  # noqa: E402
from devpulse.api.routes.admin import router as admin_router  # noqa: E402
from devpulse.api.routes.public import router as public_router  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """``CORS_ALLOW_ORIGINS`` (comma-separated), else ``FRONTEND_URL``, else none."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "") or os.getenv("FRONTEND_URL", "")
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = get_engine()
    cfg = get_config()
    logger.info(
        "DevPulse API started: %s database, calendar %s, cache ttl %ss",
        engine.dialect.name, cfg.timezone, cfg.cache_ttl_seconds,
    )
    yield
    engine.dispose()
    logger.info("DevPulse API shutting down")


app = FastAPI(
    title="DevPulse API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(public_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/health/cache")
def cache_health(cache: CacheDep):
    """Entry count and hit/miss counters of the stats cache."""
    return cache.stats()
