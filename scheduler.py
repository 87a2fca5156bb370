"""
scheduler.py – Recurring sync runs.

When ``sync_schedule`` holds a crontab expression the process stays up and a
:class:`BlockingScheduler` triggers :func:`sync.run_sync` on that schedule.
A failed run is logged and the next trigger still fires.
"""

from __future__ import annotations

import logging
from typing import Any

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from sync import run_sync

_scheduler = BlockingScheduler()
logger = logging.getLogger(__name__)

JOB_ID: str = "imdb_trakt_sync"


def start_scheduler(config: dict[str, Any]) -> None:
    """Register the sync job and block until the scheduler is shut down."""
    if not update_scheduler_jobs(config):
        raise ValueError(f"Invalid sync schedule: {config.get('sync_schedule')!r}")
    logger.info("Scheduler started")
    _scheduler.start()


def update_scheduler_jobs(config: dict[str, Any]) -> bool:
    """Replace the scheduled sync job; return whether one was registered."""
    _scheduler.remove_all_jobs()

    cron_expr = str(config.get("sync_schedule") or "").strip()
    if not cron_expr:
        return False
    try:
        _scheduler.add_job(
            _run_sync_job,
            CronTrigger.from_crontab(cron_expr),
            id=JOB_ID,
            name="IMDb -> Trakt sync",
            args=[config],
            max_instances=1,
            coalesce=True,
        )
    except Exception:
        logger.exception("Failed to schedule sync")
        return False
    logger.info("Scheduled sync: %s", cron_expr)
    return True


def _run_sync_job(config: dict[str, Any]) -> None:
    """Job handler for a scheduled sync."""
    logger.info("Scheduled sync starting")
    try:
        run_sync(config)
    except Exception:
        logger.exception("Scheduled sync failed")
