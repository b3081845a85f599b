"""APScheduler: refresh hero meta at startup, then at 00:00 and 12:00 UTC."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from refresh import RefreshOrchestrator

logger = logging.getLogger(__name__)

REFRESH_INTERVAL_HOURS = 12
REFRESH_HOURS = ",".join(str(h) for h in range(0, 24, REFRESH_INTERVAL_HOURS))   # "0,12"
JOB_ID = "refresh_hero_meta"


def run_refresh_job(orchestrator: RefreshOrchestrator) -> None:
    """Job function: one refresh cycle. Failures are logged so later ticks still run."""
    logger.info("Running job update meta heroes...")
    try:
        orchestrator.run_cycle()
    except Exception:
        logger.exception("Refresh cycle failed")


def create_scheduler(orchestrator: RefreshOrchestrator) -> BackgroundScheduler:
    """
    Create and configure the scheduler. Call start() on the returned instance.

    The first run fires as soon as the scheduler starts; after that the cron
    rule fires on the wall clock. max_instances=1 drops ticks that land while
    a cycle is still running; coalesce collapses ticks missed during downtime
    into a single run.
    """
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        run_refresh_job,
        trigger=CronTrigger(hour=REFRESH_HOURS, minute=0, timezone="UTC"),
        args=[orchestrator],
        id=JOB_ID,
        next_run_time=datetime.now(timezone.utc),
        max_instances=1,
        coalesce=True,
        misfire_grace_time=None,
        replace_existing=True,
    )
    return scheduler
