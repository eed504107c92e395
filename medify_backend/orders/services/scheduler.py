# orders/services/scheduler.py

"""
BACKGROUND SCHEDULER

APScheduler BackgroundScheduler (its own thread) running:
- the abandoned order sweep every ORDERS_CLEANUP_INTERVAL_MS,
  first run after ORDERS_CLEANUP_INITIAL_DELAY_MS
- the expired webhook lock purge on the same period

Started from OrdersConfig.ready() only when ORDERS_CLEANUP_ENABLED is on
and the process actually serves requests (not migrate/shell/test).
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
import threading
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "orders_abandoned_sweep"
LOCK_PURGE_JOB_ID = "payments_lock_purge"

_scheduler: BackgroundScheduler | None = None
_lock = threading.Lock()


def _is_serving_process() -> bool:
    argv = sys.argv or []
    if len(argv) > 1 and os.path.basename(argv[0]) == "manage.py":
        if argv[1] != "runserver":
            return False
        # Autoreloader parent only watches files; the child has RUN_MAIN set.
        return "--noreload" in argv or os.environ.get("RUN_MAIN") == "true"
    return True


def _sweep_job():
    from orders.services.cleanup import run_scheduled_sweep

    run_scheduled_sweep()


def _lock_purge_job():
    from payments.services.webhook_lock import purge_expired_locks

    try:
        purge_expired_locks()
    except Exception:
        logger.exception("Webhook lock purge failed")


def build_scheduler() -> BackgroundScheduler:
    interval_ms = int(getattr(settings, "ORDERS_CLEANUP_INTERVAL_MS", 120_000))
    delay_ms = int(getattr(settings, "ORDERS_CLEANUP_INITIAL_DELAY_MS", 30_000))
    first_run = datetime.now(timezone.utc) + timedelta(milliseconds=delay_ms)

    scheduler = BackgroundScheduler(daemon=True, timezone="UTC")
    scheduler.add_job(
        _sweep_job,
        IntervalTrigger(seconds=interval_ms / 1000),
        id=SWEEP_JOB_ID,
        name="Abandoned order sweep",
        next_run_time=first_run,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        _lock_purge_job,
        IntervalTrigger(seconds=interval_ms / 1000),
        id=LOCK_PURGE_JOB_ID,
        name="Expired webhook lock purge",
        next_run_time=first_run,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler


def start_scheduler_if_enabled() -> BackgroundScheduler | None:
    global _scheduler

    if not getattr(settings, "ORDERS_CLEANUP_ENABLED", False):
        return None
    if not _is_serving_process():
        return None

    with _lock:
        if _scheduler is not None:
            return _scheduler

        _scheduler = build_scheduler()
        _scheduler.start()
        atexit.register(stop_scheduler)

    logger.info(
        "Order cleanup scheduler started",
        extra={
            "interval_ms": getattr(settings, "ORDERS_CLEANUP_INTERVAL_MS", 120_000),
            "initial_delay_ms": getattr(settings, "ORDERS_CLEANUP_INITIAL_DELAY_MS", 30_000),
            "pending_age_minutes": getattr(settings, "ORDERS_PENDING_AGE_MINUTES", 5),
        },
    )
    return _scheduler


def stop_scheduler() -> None:
    global _scheduler

    with _lock:
        if _scheduler is None:
            return
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
        _scheduler = None
    logger.info("Order cleanup scheduler stopped")


def scheduler_running() -> bool:
    scheduler = _scheduler
    return scheduler is not None and scheduler.running
