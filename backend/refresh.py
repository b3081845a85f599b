"""Refresh cycle: per-role cache check, bounded-retry fetch, paced walk over all roles."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from cache import StoreUnavailable
from roles import ROLES, Role
from source import FetchError

logger = logging.getLogger(__name__)

MAX_FETCH_ATTEMPTS = 3
CACHE_TTL_SECONDS  = 43_200   # 12 h
ROLE_DELAY_SECONDS = 60       # between roles


class Store(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


class Fetcher(Protocol):
    def fetch_role_snapshot(self, role: Role) -> list[dict]: ...


class RefreshOutcome(str, Enum):
    CACHE_HIT         = "cache_hit"
    FETCHED           = "fetched"
    EXHAUSTED_RETRIES = "exhausted_retries"
    STORE_ERROR       = "store_error"


# ── Role refresh ──────────────────────────────────────────────────────────────

def _fetch_with_retries(role: Role, fetcher: Fetcher) -> list[dict] | None:
    for attempt in range(1, MAX_FETCH_ATTEMPTS + 1):
        logger.info("Fetching meta for %s (attempt %d/%d)", role.key, attempt, MAX_FETCH_ATTEMPTS)
        try:
            snapshot = fetcher.fetch_role_snapshot(role)
        except FetchError as exc:
            logger.warning("Fetch failed for %s: %s", role.key, exc)
            continue
        except Exception:
            logger.exception("Unexpected fetcher error for %s", role.key)
            continue
        if snapshot:
            return snapshot
        logger.warning("Empty snapshot for %s", role.key)
    return None


def refresh_role(role: Role, store: Store, fetcher: Fetcher) -> RefreshOutcome:
    """
    Refresh one role. Never raises.

    A non-empty cached value short-circuits the fetch. Otherwise the fetcher
    gets up to MAX_FETCH_ATTEMPTS tries; errors and empty snapshots both use
    up an attempt. Only a non-empty snapshot is ever written.
    """
    key = role.key
    try:
        logger.info("Checking cache for %s...", key)
        cached = store.get(key)
        if cached:
            logger.info("Data for %s already exists in cache", key)
            return RefreshOutcome.CACHE_HIT

        snapshot = _fetch_with_retries(role, fetcher)
        if snapshot is None:
            logger.error("Giving up on %s after %d attempts", key, MAX_FETCH_ATTEMPTS)
            return RefreshOutcome.EXHAUSTED_RETRIES

        store.set(key, json.dumps(snapshot), CACHE_TTL_SECONDS)
        logger.info("Saved %d heroes for %s to cache", len(snapshot), key)
        return RefreshOutcome.FETCHED
    except StoreUnavailable as exc:
        logger.error("Cache store unavailable while refreshing %s: %s", key, exc)
        return RefreshOutcome.STORE_ERROR
    except Exception:
        logger.exception("Unexpected error refreshing %s", key)
        return RefreshOutcome.STORE_ERROR


# ── Pacing ────────────────────────────────────────────────────────────────────

class Pacer:
    """
    Fixed-delay pacing between outbound requests.

    `sleep` defaults to waiting on the stop event, so stop() cuts a pending
    delay short. Tests pass a virtual clock's sleep instead.
    """

    def __init__(self, sleep: Callable[[float], object] | None = None):
        self._stop = threading.Event()
        self._sleep = sleep or self._stop.wait

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    def wait(self, seconds: float) -> bool:
        """Wait `seconds`. Returns False if a stop was requested."""
        if self._stop.is_set():
            return False
        self._sleep(seconds)
        return not self._stop.is_set()


# ── Cycle ─────────────────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CycleReport:
    started_at: datetime
    finished_at: datetime | None = None
    outcomes: dict[str, RefreshOutcome] = field(default_factory=dict)
    aborted: bool = False

    def to_dict(self) -> dict:
        return {
            "started_at":  self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "outcomes":    {k: v.value for k, v in self.outcomes.items()},
            "aborted":     self.aborted,
        }


class RefreshOrchestrator:
    """Runs every role through refresh_role, one at a time, with pacing between them."""

    def __init__(
        self,
        store: Store,
        fetcher: Fetcher,
        roles: list[Role] = ROLES,
        pacer: Pacer | None = None,
        delay_seconds: float = ROLE_DELAY_SECONDS,
    ):
        self.store = store
        self.fetcher = fetcher
        self.roles = list(roles)
        self.pacer = pacer or Pacer()
        self.delay_seconds = delay_seconds
        self.last_report: CycleReport | None = None
        self._running = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def stop(self) -> None:
        """Refuse new cycles; an in-flight cycle ends at its next delay."""
        self.pacer.stop()

    def run_cycle(self) -> CycleReport | None:
        """Refresh all roles once. Returns None if a cycle is already running or stopped."""
        if self.pacer.stopped:
            logger.info("Refresh stopped — not starting a new cycle")
            return None
        if not self._running.acquire(blocking=False):
            logger.warning("Refresh cycle already in progress — dropping trigger")
            return None

        try:
            report = CycleReport(started_at=_utcnow())
            logger.info("Running refresh cycle for %d roles...", len(self.roles))
            for index, role in enumerate(self.roles):
                report.outcomes[role.key] = refresh_role(role, self.store, self.fetcher)
                if index == len(self.roles) - 1:
                    break
                if not self.pacer.wait(self.delay_seconds):
                    report.aborted = True
                    logger.warning("Refresh cycle aborted after %s (shutdown)", role.key)
                    break
            report.finished_at = _utcnow()
            self.last_report = report

            counts: dict[str, int] = {}
            for outcome in report.outcomes.values():
                counts[outcome.value] = counts.get(outcome.value, 0) + 1
            logger.info("Refresh cycle complete: %s", counts)
            return report
        finally:
            self._running.release()
