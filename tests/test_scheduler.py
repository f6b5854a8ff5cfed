"""
test_scheduler.py — Tests for APScheduler jobs and batch timers

Covers: _utc helper, configure_scheduler registration, the bulk marker
sweep job, and APSchedulerTimers arm/replace/cancel semantics.

Called by: pytest
Depends on: cpq/scheduler.py
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from cpq.scheduler import BATCH_JOB_PREFIX, APSchedulerTimers, _job_sweep_bulk_markers, _utc, configure_scheduler, scheduler


def _noop(key):
    pass


@pytest.fixture(autouse=True)
def _clear_scheduler_jobs():
    """Remove all jobs before/after each test to prevent leakage."""
    for job in scheduler.get_jobs():
        job.remove()
    yield
    for job in scheduler.get_jobs():
        job.remove()


@pytest.fixture()
def paused_scheduler():
    sched = BackgroundScheduler(timezone=timezone.utc)
    sched.start(paused=True)
    yield sched
    sched.shutdown(wait=False)


# ── _utc() ─────────────────────────────────────────────────────────────


def test_utc_naive_becomes_utc():
    result = _utc(datetime(2026, 1, 15, 12, 0, 0))
    assert result.tzinfo == timezone.utc


def test_utc_aware_passthrough():
    tz2 = timezone(timedelta(hours=2))
    aware = datetime(2026, 1, 15, 12, 0, 0, tzinfo=tz2)
    assert _utc(aware).tzinfo == tz2


def test_utc_none_returns_none():
    assert _utc(None) is None


# ── configure_scheduler() ──────────────────────────────────────────────


def test_configure_registers_sweep_job():
    configure_scheduler()
    job = scheduler.get_job("bulk_marker_sweep")
    assert job is not None
    assert job.trigger.interval == timedelta(minutes=60)


def test_configure_uses_settings_interval():
    mock_settings = MagicMock(bulk_sweep_interval_min=15, bulk_marker_staleness_min=5)
    with patch("cpq.config.settings", mock_settings):
        configure_scheduler()
    assert scheduler.get_job("bulk_marker_sweep").trigger.interval == timedelta(minutes=15)


def test_sweep_job_calls_registry():
    fake = MagicMock()
    fake.sweep.return_value = 2
    with patch("cpq.services.bulk_registry.get_registry", return_value=fake):
        assert _job_sweep_bulk_markers() == 2
    fake.sweep.assert_called_once_with()


# ── APSchedulerTimers ──────────────────────────────────────────────────


def test_arm_adds_date_job(paused_scheduler):
    timers = APSchedulerTimers(paused_scheduler)
    run_at = datetime.now(timezone.utc) + timedelta(seconds=3)
    timers.arm("Q-1", run_at, _noop)

    job = paused_scheduler.get_job(f"{BATCH_JOB_PREFIX}Q-1")
    assert job is not None
    assert job.args == ("Q-1",)
    assert job.trigger.run_date == run_at


def test_rearm_replaces_existing(paused_scheduler):
    timers = APSchedulerTimers(paused_scheduler)
    first = datetime.now(timezone.utc) + timedelta(seconds=3)
    second = first + timedelta(seconds=2)
    timers.arm("Q-1", first, _noop)
    timers.arm("Q-1", second, _noop)

    jobs = paused_scheduler.get_jobs()
    assert len(jobs) == 1
    assert jobs[0].trigger.run_date == second


def test_cancel_removes_and_tolerates_missing(paused_scheduler):
    timers = APSchedulerTimers(paused_scheduler)
    timers.arm("Q-1", datetime.now(timezone.utc) + timedelta(seconds=3), _noop)
    timers.cancel("Q-1")
    assert paused_scheduler.get_job(f"{BATCH_JOB_PREFIX}Q-1") is None
    timers.cancel("Q-1")


def test_naive_run_at_treated_as_utc(paused_scheduler):
    timers = APSchedulerTimers(paused_scheduler)
    naive = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=3)
    timers.arm("Q-2", naive, _noop)
    job = paused_scheduler.get_job(f"{BATCH_JOB_PREFIX}Q-2")
    assert job.trigger.run_date == naive.replace(tzinfo=timezone.utc)
