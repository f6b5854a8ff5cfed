"""Background scheduler — APScheduler jobs and activity batch timers.

One BackgroundScheduler hosts two kinds of jobs:
  - bulk_marker_sweep: interval job (default hourly) that deletes bulk
    operation markers left behind by callers that crashed before end()
  - activity-batch:<context_id>: single-shot date jobs, one per editing
    context, re-armed on every item addition (replace_existing=True)
"""

import logging
from datetime import datetime, timezone

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

log = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone=timezone.utc)

BATCH_JOB_PREFIX = "activity-batch:"


def _utc(dt):
    """Make a naive datetime UTC-aware (no-op if already aware)."""
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


# ── Batch window timers ─────────────────────────────────────────────────


class APSchedulerTimers:
    """TimerBackend on APScheduler date jobs, keyed by context id."""

    def __init__(self, sched: BackgroundScheduler = scheduler):
        self._scheduler = sched

    def arm(self, key: str, run_at: datetime, callback) -> None:
        self._scheduler.add_job(
            callback,
            "date",
            run_date=_utc(run_at),
            args=[key],
            id=f"{BATCH_JOB_PREFIX}{key}",
            replace_existing=True,
            misfire_grace_time=None,
        )

    def cancel(self, key: str) -> None:
        try:
            self._scheduler.remove_job(f"{BATCH_JOB_PREFIX}{key}")
        except JobLookupError:
            pass


# ── Jobs ────────────────────────────────────────────────────────────────


def _job_sweep_bulk_markers():
    """Delete bulk markers older than the staleness threshold."""
    from .services.bulk_registry import get_registry

    removed = get_registry().sweep()
    log.info("Bulk marker sweep complete: %d removed", removed)
    return removed


def configure_scheduler():
    """Register recurring jobs. Call once on app startup, before scheduler.start()."""
    from . import config

    settings = config.settings
    scheduler.add_job(
        _job_sweep_bulk_markers,
        "interval",
        minutes=settings.bulk_sweep_interval_min,
        id="bulk_marker_sweep",
        replace_existing=True,
        next_run_time=datetime.now(timezone.utc),
    )
    log.info(
        "Scheduler configured — bulk marker sweep every %d min (staleness %d min)",
        settings.bulk_sweep_interval_min, settings.bulk_marker_staleness_min,
    )
