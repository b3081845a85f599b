"""
Headless refresher: runs the scheduler without the HTTP API until SIGINT/SIGTERM.

  hero-meta-worker            (installed console script)
  python backend/worker.py    (from a checkout)
"""

from __future__ import annotations

import logging
import os
import signal
import threading

from dotenv import load_dotenv

load_dotenv()

from cache import StoreUnavailable, create_store
from refresh import RefreshOrchestrator
from scheduler import create_scheduler
from source import D2PTFetcher

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = create_store()
    fetcher = D2PTFetcher()
    try:
        store.connect()
    except StoreUnavailable as exc:
        logger.error("Cache store unavailable at startup: %s", exc)

    orchestrator = RefreshOrchestrator(store, fetcher)
    scheduler = create_scheduler(orchestrator)

    shutdown = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info("Received signal %s, shutting down...", signum)
        shutdown.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    scheduler.start()
    logger.info("Scheduler started. Press Ctrl+C to exit.")
    try:
        shutdown.wait()
    finally:
        # stop() cuts the pacing wait short; shutdown waits out the in-flight role
        orchestrator.stop()
        scheduler.shutdown(wait=True)
        fetcher.close()
        store.close()
        logger.info("Scheduler shut down.")


if __name__ == "__main__":
    main()
