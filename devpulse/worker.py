"""
devpulse.worker — Scheduled Aggregation Sweep
==============================================

Recomputes the trailing ``sweep_window_days`` window for every active
member every ``sweep_interval_minutes``, plus a daily consistency audit.
Both jobs run on an APScheduler ``AsyncIOScheduler``; the blocking work
goes off the event loop through :func:`run_db`.  A failed run is logged
and the schedule keeps going; the next run retries from scratch.

Wiring:
1. Load .env (secrets).
2. Load config.yaml (tuning).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Start the scheduler (blocks until Ctrl+C or SIGTERM).

Run with::

    python -m devpulse.worker
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from dotenv import load_dotenv
from sqlalchemy import Engine

from devpulse.config import DevPulseConfig, load_config
from devpulse.database.engine import create_db_engine, init_db, run_db
from devpulse.services.aggregation_service import sweep_recent
from devpulse.services.consistency_service import check_consistency

logger = logging.getLogger(__name__)

# Civil hour the daily audit runs at, after the overnight sweeps
CONSISTENCY_HOUR = 4


class SweepScheduler:
    """Sweep + audit jobs on one asyncio event loop."""

    def __init__(self, engine: Engine, config: DevPulseConfig) -> None:
        self.engine = engine
        self.config = config
        self.runs = 0
        self._scheduler: AsyncIOScheduler | None = None
        self._stopping = asyncio.Event()

    async def run_sweep_once(self) -> dict | None:
        try:
            report = await run_db(sweep_recent, self.engine, self.config)
        except Exception:
            logger.exception("Sweep failed", extra={"task": "sweep"})
            return None
        self.runs += 1
        logger.info(
            "Sweep #%d: %d ok, %d failed, %d pending",
            self.runs, report["succeeded"], report["failed"], report["pending"],
        )
        return report

    async def run_consistency_once(self) -> dict | None:
        try:
            return await run_db(check_consistency, self.engine)
        except Exception:
            logger.exception("Consistency check failed", extra={"task": "consistency"})
            return None

    def build_scheduler(self) -> AsyncIOScheduler:
        """Register both jobs on a fresh scheduler.  Call inside the running loop."""
        tz = self.config.timezone
        scheduler = AsyncIOScheduler(timezone=tz)
        scheduler.add_job(
            self.run_sweep_once,
            trigger=IntervalTrigger(minutes=self.config.sweep_interval_minutes, timezone=tz),
            id="sweep",
            name="Trailing-window sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(ZoneInfo(tz)),
        )
        scheduler.add_job(
            self.run_consistency_once,
            trigger=CronTrigger(hour=CONSISTENCY_HOUR, minute=0, timezone=tz),
            id="consistency",
            name="Daily consistency audit",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        return scheduler

    async def run_forever(self) -> None:
        self._scheduler = self.build_scheduler()
        self._scheduler.start()
        logger.info(
            "Scheduler started: sweep every %dmin, audit daily at %02d:00",
            self.config.sweep_interval_minutes, CONSISTENCY_HOUR,
        )
        try:
            await self._stopping.wait()
        finally:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._stopping.set()


def main() -> None:
    """Bootstrap and run the sweep worker."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )

    load_dotenv()

    cfg = load_config()
    logger.info(
        "Config loaded — tz=%s window=%dd every %dmin",
        cfg.timezone, cfg.sweep_window_days, cfg.sweep_interval_minutes,
    )

    engine = create_db_engine()
    init_db(engine)

    scheduler = SweepScheduler(engine, cfg)
    try:
        asyncio.run(scheduler.run_forever())
    except KeyboardInterrupt:
        logger.info("Worker stopped")


if __name__ == "__main__":
    main()
