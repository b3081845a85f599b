"""
Dev-only FastAPI router — only mounted when TEST_MODE=1.

Endpoints:
  POST /dev/trigger-refresh   Run a refresh cycle right now (blocks until done)
  GET  /dev/cache-status      Show which roles currently have cached meta
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

import main
from roles import ROLES

router = APIRouter(prefix="/dev", tags=["dev (TEST_MODE only)"])


@router.post(
    "/trigger-refresh",
    summary="Run the hero meta refresh cycle right now",
)
async def trigger_refresh():
    """Runs one cycle in the threadpool — useful for smoke testing the full fetch → cache path."""
    report = await run_in_threadpool(main._orchestrator.run_cycle)
    if report is None:
        return {"triggered": False, "reason": "cycle already running or refresh stopped"}
    return {"triggered": True, "report": report.to_dict()}


@router.get(
    "/cache-status",
    summary="Show cached entry sizes per role",
)
async def cache_status():
    status = {}
    for role in ROLES:
        cached = await run_in_threadpool(main._store.get, role.key)
        status[role.key] = len(cached) if cached else None
    return status
