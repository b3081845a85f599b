"""FastAPI backend for the hero meta refresher."""

from __future__ import annotations

import os
import json
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from cache import StoreUnavailable, create_store
from refresh import RefreshOrchestrator
from roles import ROLES, Role
from scheduler import create_scheduler
from source import D2PTFetcher

logger = logging.getLogger(__name__)

TEST_MODE         = os.getenv("TEST_MODE", "") == "1"
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"

# ── Wiring ────────────────────────────────────────────────────────────────────

_store        = create_store()
_fetcher      = D2PTFetcher()
_orchestrator = RefreshOrchestrator(_store, _fetcher)
_scheduler    = create_scheduler(_orchestrator)


# ── Lifespan: connect store, start/stop scheduler ─────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await run_in_threadpool(_store.connect)
    except StoreUnavailable as exc:
        # RedisStore reconnects on first use; the cycle logs per-role failures
        logger.error("Cache store unavailable at startup: %s", exc)

    if SCHEDULER_ENABLED:
        _scheduler.start()
        logger.info("APScheduler started — hero meta refresh now, then every 12 h")
    yield
    # stop() cuts the pacing wait short; shutdown waits out the in-flight role
    _orchestrator.stop()
    if _scheduler.running:
        await run_in_threadpool(_scheduler.shutdown, True)
        logger.info("APScheduler stopped")
    _fetcher.close()
    _store.close()


app = FastAPI(title="Hero Meta Refresher API", version="1.0", lifespan=lifespan)

# ── Dev routes (only in TEST_MODE) ────────────────────────────────────────────
if TEST_MODE:
    from dev_routes import router as dev_router
    app.include_router(dev_router)
    logger.info("TEST_MODE: dev routes mounted at /dev/*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok", "test_mode": TEST_MODE, "store_connected": _store.is_connected}


# ── Hero meta ─────────────────────────────────────────────────────────────────


@app.get("/api/meta/roles")
async def get_roles():
    return [r.key for r in ROLES]


@app.get("/api/meta/{role}")
async def get_role_meta(role: str):
    try:
        parsed = Role.parse(role)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown role: {role}")

    try:
        cached = await run_in_threadpool(_store.get, parsed.key)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    if not cached:
        raise HTTPException(status_code=404, detail=f"No cached meta for {parsed.key}")
    return json.loads(cached)


# ── Refresh status ────────────────────────────────────────────────────────────


@app.get("/api/refresh/status")
async def refresh_status():
    report = _orchestrator.last_report
    job = _scheduler.get_job("refresh_hero_meta") if _scheduler.running else None
    return {
        "running":     _orchestrator.is_running,
        "last_cycle":  report.to_dict() if report else None,
        "next_run_at": job.next_run_time.isoformat() if job and job.next_run_time else None,
    }


# ── Dev entry point ───────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
