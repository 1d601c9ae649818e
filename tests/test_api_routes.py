"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================

Public read endpoints and JWT-guarded admin endpoints, served from an
in-memory database through ``app.dependency_overrides``.  The client is
used without a ``with`` block so the lifespan (which opens the real
engine) does not run.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from fastapi.testclient import TestClient

from conftest import add_commit, add_member, kst, make_admin_token
from devpulse.api.deps import get_config, get_engine, get_stats_cache
from devpulse.engine.cache import MemoryBackend, StatsCache
from devpulse.services import profile_service
from devpulse.worker import SweepScheduler


@pytest.fixture
def stats_cache():
    return StatsCache(MemoryBackend())


@pytest.fixture
def client(db_engine, config, stats_cache):
    from devpulse.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_stats_cache] = lambda: stats_cache
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def member(db_engine):
    add_member(db_engine, "m1")
    add_commit(db_engine, kst(2024, 3, 12, 9), message="feat: a", repository="team/api")
    add_commit(db_engine, kst(2024, 3, 13, 9), message="fix: b", repository="team/web")
    return "m1"


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _rebuild(client, admin_token, member_id="m1"):
    resp = client.post(
        "/api/admin/aggregate",
        json={"mode": "member", "member_id": member_id},
        headers=_auth(admin_token),
    )
    assert resp.status_code == 200
    return resp.json()


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_cache_health_reports_counters(self, client, member):
        client.get("/api/members/m1/trophies")
        client.get("/api/members/m1/trophies")
        assert client.get("/api/health/cache").json() == {"size": 1, "hits": 1, "misses": 1}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAdminAuthGuards:
    ADMIN_GET_ENDPOINTS = [
        "/api/admin/aggregate/status",
        "/api/admin/consistency",
    ]

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_get_rejects_no_auth(self, client, endpoint):
        assert client.get(endpoint).status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_get_rejects_invalid_token(self, client, endpoint):
        resp = client.get(endpoint, headers={"Authorization": "Bearer invalid"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_get_rejects_non_admin(self, client, endpoint):
        resp = client.get(endpoint, headers=_auth(make_admin_token("1", "Dev", is_admin=False)))
        assert resp.status_code == 403

    def test_post_aggregate_rejects_no_auth(self, client):
        resp = client.post("/api/admin/aggregate", json={"mode": "full"})
        assert resp.status_code == 401

    def test_delete_rejects_no_auth(self, client):
        assert client.delete("/api/admin/members/m1/stats").status_code == 401


# ===========================================================================
# Admin endpoints
# ===========================================================================
class TestAdminAggregate:
    def test_member_rebuild(self, client, admin_token, member):
        body = _rebuild(client, admin_token)
        assert body["mode"] == "member"
        assert body["succeeded"] == 1
        assert body["failed"] == 0

    def test_full_mode(self, client, admin_token, member, db_engine):
        add_member(db_engine, "m2")
        resp = client.post("/api/admin/aggregate", json={"mode": "full"}, headers=_auth(admin_token))
        assert resp.json()["succeeded"] == 2

    def test_date_range(self, client, admin_token, member):
        resp = client.post(
            "/api/admin/aggregate",
            json={"mode": "date-range", "start": "2024-03-12", "end": "2024-03-13"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        # 2 day units + 1 rollup
        assert resp.json()["succeeded"] == 3

    def test_unknown_member_is_reported_failure(self, client, admin_token, member):
        body = _rebuild(client, admin_token, member_id="ghost")
        assert body["failed"] == 1
        assert body["failures"][0]["kind"] == "dependency"

    def test_bad_scope_is_400(self, client, admin_token):
        resp = client.post(
            "/api/admin/aggregate", json={"mode": "member"}, headers=_auth(admin_token),
        )
        assert resp.status_code == 400

    def test_bad_mode_is_422(self, client, admin_token):
        resp = client.post(
            "/api/admin/aggregate", json={"mode": "weekly"}, headers=_auth(admin_token),
        )
        assert resp.status_code == 422

    def test_status_lists_members(self, client, admin_token, member):
        _rebuild(client, admin_token)
        resp = client.get("/api/admin/aggregate/status", headers=_auth(admin_token))
        body = resp.json()
        assert body["modes"] == ["member", "date-range", "full"]
        assert body["members"][0]["member_id"] == "m1"
        assert body["members"][0]["total_commits"] == 2

    def test_consistency(self, client, admin_token, member):
        _rebuild(client, admin_token)
        body = client.get("/api/admin/consistency", headers=_auth(admin_token)).json()
        assert body["checked"] == 1
        assert body["mismatches"] == []

    def test_delete_member_stats(self, client, admin_token, member, db_engine, stats_cache):
        _rebuild(client, admin_token)
        client.get("/api/members/m1/trophies")
        resp = client.delete("/api/admin/members/m1/stats", headers=_auth(admin_token))
        assert resp.status_code == 200
        assert resp.json()["profile_rows_deleted"] == 1
        assert profile_service.load_snapshot(db_engine, "m1") is None
        assert stats_cache.stats()["size"] == 0


# ===========================================================================
# Public endpoints
# ===========================================================================
class TestPublicEndpoints:
    def test_custom_range_stats(self, client, admin_token, member):
        _rebuild(client, admin_token)
        resp = client.get(
            "/api/members/m1/stats",
            params={"granularity": "custom", "start": "2024-03-11", "end": "2024-03-13"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [d["commit_count"] for d in body["days"]] == [0, 1, 1]
        assert body["totals"]["commits"] == 2
        assert body["snapshot"]["total_commits"] == 2

    def test_stats_before_any_aggregation(self, client, member):
        resp = client.get(
            "/api/members/m1/stats",
            params={"granularity": "custom", "start": "2024-03-12", "end": "2024-03-12"},
        )
        body = resp.json()
        assert body["days"][0]["computed"] is False
        assert body["snapshot"] is None

    def test_bad_custom_range_is_400(self, client, member):
        resp = client.get(
            "/api/members/m1/stats",
            params={"granularity": "custom", "start": "2024-03-13", "end": "2024-03-01"},
        )
        assert resp.status_code == 400

    def test_bad_granularity_is_422(self, client, member):
        resp = client.get("/api/members/m1/stats", params={"granularity": "decade"})
        assert resp.status_code == 422

    @pytest.mark.parametrize(
        "path", ["stats", "heatmap", "trend", "commit-types", "repositories", "badges", "trophies"],
    )
    def test_unknown_member_is_404(self, client, path):
        assert client.get(f"/api/members/ghost/{path}").status_code == 404

    def test_heatmap_and_trend(self, client, admin_token, member):
        _rebuild(client, admin_token)
        heat = client.get("/api/members/m1/heatmap", params={"year": 2024}).json()
        assert [d["date"] for d in heat["days"]] == ["2024-03-12", "2024-03-13"]
        trend = client.get("/api/members/m1/trend", params={"year": 2024}).json()
        assert trend["weeks"][0]["commits"] == 2

    def test_distributions(self, client, admin_token, member):
        _rebuild(client, admin_token)
        types = client.get("/api/members/m1/commit-types").json()
        assert types["total"] == 2
        repos = client.get("/api/members/m1/repositories").json()
        assert {r["repo"] for r in repos} == {"team/api", "team/web"}

    def test_badges(self, client, admin_token, member):
        _rebuild(client, admin_token)
        body = client.get("/api/members/m1/badges").json()
        assert body["member_id"] == "m1"
        assert "first_commit" in [b["id"] for b in body["badges"]]

    def test_trophies(self, client, admin_token, member):
        _rebuild(client, admin_token)
        body = client.get("/api/members/m1/trophies").json()
        by_metric = {t["metric"]: t for t in body["trophies"]}
        assert by_metric["total_commits"]["value"] == 2
        assert body["total_score"] >= 0


# ===========================================================================
# Scheduled sweep
# ===========================================================================
class TestSweepScheduler:
    def test_run_sweep_once(self, db_engine, config, member):
        scheduler = SweepScheduler(db_engine, config)
        report = asyncio.run(scheduler.run_sweep_once())
        assert report["mode"] == "date-range"
        assert report["failed"] == 0
        # 7 day units + 1 rollup for the one active member
        assert report["succeeded"] == config.sweep_window_days + 1
        assert scheduler.runs == 1

    def test_failed_sweep_is_logged_not_raised(self, db_engine, config, monkeypatch, caplog):
        def boom(*args, **kwargs):
            raise RuntimeError("db unreachable")

        monkeypatch.setattr("devpulse.worker.sweep_recent", boom)
        scheduler = SweepScheduler(db_engine, config)
        assert asyncio.run(scheduler.run_sweep_once()) is None
        assert scheduler.runs == 0
        assert "Sweep failed" in caplog.text

    def test_consistency_once(self, db_engine, config, member):
        result = asyncio.run(SweepScheduler(db_engine, config).run_consistency_once())
        assert result["checked"] == 1

    def test_jobs_registered(self, db_engine, config):
        scheduler = SweepScheduler(db_engine, config)

        async def jobs():
            return {job.id: job for job in scheduler.build_scheduler().get_jobs()}

        registered = asyncio.run(jobs())
        assert set(registered) == {"sweep", "consistency"}
        sweep = registered["sweep"].trigger
        assert isinstance(sweep, IntervalTrigger)
        assert sweep.interval == timedelta(minutes=config.sweep_interval_minutes)
        audit = registered["consistency"].trigger
        assert isinstance(audit, CronTrigger)
        assert "hour='4'" in str(audit)

    def test_stop_shuts_scheduler_down(self, db_engine, config):
        scheduler = SweepScheduler(db_engine, config)
        scheduler.stop()
        asyncio.run(scheduler.run_forever())
        assert scheduler._scheduler.running is False
