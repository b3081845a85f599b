"""
Pytest configuration and shared fixtures.

Run from the repo root:
  pytest tests/

TEST_MODE=1 is set here so cache.create_store() hands back a MemoryStore and
the /dev/* routes are mounted. SCHEDULER_ENABLED=0 keeps the app lifespan from
kicking off a real refresh cycle against Dota2ProTracker.
"""

import os

# ── Must be set BEFORE any app imports ────────────────────────────────────────
os.environ.setdefault("TEST_MODE", "1")
os.environ.setdefault("SCHEDULER_ENABLED", "0")

import pytest
from fastapi.testclient import TestClient

from cache import MemoryStore, StoreUnavailable
from roles import Role

# Import app after env vars are set
from main import app

SAMPLE_SNAPSHOT = [
    {"hero": "Faceless Void", "matches": 1520, "win_rate": 0.534},
    {"hero": "Medusa",        "matches": 1288, "win_rate": 0.521},
    {"hero": "Spectre",       "matches":  977, "win_rate": 0.512},
]


# ── Test doubles ──────────────────────────────────────────────────────────────

class FakeClock:
    """Virtual clock: sleep() advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingStore(MemoryStore):
    """MemoryStore that records every read (with clock time) and write."""

    def __init__(self, clock=None):
        super().__init__(clock=clock.time if clock else FakeClock().time)
        self.reads: list[tuple[str, float]] = []
        self.writes: list[tuple[str, str, int]] = []
        self.fail_get: set[str] = set()
        self.fail_set: set[str] = set()

    def get(self, key):
        self.reads.append((key, self._clock()))
        if key in self.fail_get:
            raise StoreUnavailable(f"read timeout for {key}")
        return super().get(key)

    def set(self, key, value, ttl_seconds):
        if key in self.fail_set:
            raise StoreUnavailable(f"write timeout for {key}")
        self.writes.append((key, value, ttl_seconds))
        super().set(key, value, ttl_seconds)


class ScriptedFetcher:
    """
    Replays scripted results per role, then falls back to `default`.
    A scripted Exception instance is raised instead of returned.
    """

    def __init__(self, script: dict[Role, list] | None = None, default=SAMPLE_SNAPSHOT):
        self.script = {role: list(results) for role, results in (script or {}).items()}
        self.default = default
        self.calls: list[Role] = []

    def fetch_role_snapshot(self, role: Role):
        self.calls.append(role)
        results = self.script.get(role)
        result = results.pop(0) if results else self.default
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return RecordingStore(clock)


@pytest.fixture
def fetcher():
    return ScriptedFetcher()


# ── Clients ───────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def client():
    """TestClient with the app lifespan running (scheduler disabled)."""
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
