"""Tests for the HTTP surface and the TEST_MODE dev routes."""

import json

import pytest

import main
from cache import StoreUnavailable
from conftest import SAMPLE_SNAPSHOT, ScriptedFetcher


@pytest.fixture(autouse=True)
def clean_store():
    main._store.clear()
    yield
    main._store.clear()


@pytest.fixture
def fast_refresh(monkeypatch):
    """Swap in a scripted fetcher and drop the inter-role delay."""
    fetcher = ScriptedFetcher()
    monkeypatch.setattr(main._orchestrator, "fetcher", fetcher)
    monkeypatch.setattr(main._orchestrator, "delay_seconds", 0)
    return fetcher


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["test_mode"] is True
        assert data["store_connected"] is True


class TestRoleMeta:
    def test_lists_roles(self, client):
        resp = client.get("/api/meta/roles")
        assert resp.json() == ["hc", "mid", "top", "sup4", "sup5"]

    def test_returns_cached_snapshot(self, client):
        main._store.set("mid", json.dumps(SAMPLE_SNAPSHOT), 100)

        resp = client.get("/api/meta/mid")
        assert resp.status_code == 200
        assert resp.json() == SAMPLE_SNAPSHOT

    def test_role_is_case_insensitive(self, client):
        main._store.set("sup4", json.dumps(SAMPLE_SNAPSHOT), 100)

        assert client.get("/api/meta/SUP4").status_code == 200
        assert client.get("/api/meta/Sup4").status_code == 200

    def test_unknown_role_404(self, client):
        resp = client.get("/api/meta/jungle")
        assert resp.status_code == 404
        assert "unknown role" in resp.json()["detail"].lower()

    def test_cache_miss_404(self, client):
        resp = client.get("/api/meta/hc")
        assert resp.status_code == 404

    def test_store_unavailable_503(self, client, monkeypatch):
        def boom(key):
            raise StoreUnavailable("connection refused")

        monkeypatch.setattr(main._store, "get", boom)
        resp = client.get("/api/meta/hc")
        assert resp.status_code == 503


class TestRefreshStatus:
    def test_status_shape(self, client):
        resp = client.get("/api/refresh/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["running"] is False
        assert "last_cycle" in data
        # Scheduler is disabled under test
        assert data["next_run_at"] is None


class TestDevRoutes:
    def test_trigger_refresh_fills_cache(self, client, fast_refresh):
        main._store.set("top", json.dumps(SAMPLE_SNAPSHOT), 100)

        resp = client.post("/dev/trigger-refresh")
        assert resp.status_code == 200
        data = resp.json()
        assert data["triggered"] is True
        assert data["report"]["outcomes"] == {
            "hc": "fetched",
            "mid": "fetched",
            "top": "cache_hit",
            "sup4": "fetched",
            "sup5": "fetched",
        }
        assert len(fast_refresh.calls) == 4

        status = client.get("/api/refresh/status").json()
        assert status["last_cycle"]["outcomes"]["top"] == "cache_hit"

    def test_cache_status(self, client):
        main._store.set("hc", "[1]", 100)

        resp = client.get("/dev/cache-status")
        assert resp.json() == {"hc": 3, "mid": None, "top": None, "sup4": None, "sup5": None}
