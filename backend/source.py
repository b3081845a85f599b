"""Data fetching layer — pulls per-role hero meta from Dota2ProTracker."""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from roles import Role

logger = logging.getLogger(__name__)

D2PT_BASE_URL = os.getenv("D2PT_BASE_URL", "https://dota2protracker.com").rstrip("/")
D2PT_TIMEOUT  = float(os.getenv("D2PT_TIMEOUT", "15"))

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json",
}


class FetchError(RuntimeError):
    """Network or parse failure while fetching a role snapshot."""


def _unwrap(payload: Any) -> list[dict]:
    if isinstance(payload, dict):
        for key in ("data", "heroes"):
            if key in payload:
                payload = payload[key]
                break
    if not isinstance(payload, list):
        raise FetchError(f"Unexpected payload type: {type(payload).__name__}")
    return payload


class D2PTFetcher:
    """
    Fetches the hero meta table for one role.

    Returns an empty list when the source has nothing for the role right now;
    that is a normal answer, not an error. Anything else that goes wrong
    raises FetchError.
    """

    def __init__(self, base_url: str = D2PT_BASE_URL, timeout: float = D2PT_TIMEOUT,
                 session: requests.Session | None = None):
        self._url = f"{base_url.rstrip('/')}/api/heroes/meta"
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(HEADERS)

    def fetch_role_snapshot(self, role: Role) -> list[dict]:
        try:
            resp = self._session.get(self._url, params={"role": role.key}, timeout=self._timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise FetchError(f"Request for {role.key} failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"Invalid JSON for {role.key}: {exc}") from exc

        snapshot = _unwrap(payload)
        logger.debug("Fetched %d heroes for %s", len(snapshot), role.key)
        return snapshot

    def close(self) -> None:
        self._session.close()
