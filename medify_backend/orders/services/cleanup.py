# orders/services/cleanup.py

"""
ABANDONED ORDER SWEEP

Orders left in PENDING_PAYMENT longer than ORDERS_PENDING_AGE_MINUTES
are closed as ABANDONED.

Rules:
- one failing order never stops the batch
- a run with no candidates is silent
- sweep_abandoned_orders() raises if the candidate query cannot run;
  run_scheduled_sweep() is the scheduler entrypoint and never raises
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.conf import settings

from orders.services.order_store import find_stale_pending, mark_abandoned

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    found: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    dry_run: bool = False

    def as_dict(self) -> dict:
        return {
            "found": self.found,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "dry_run": self.dry_run,
        }


def pending_age_minutes() -> int:
    return int(getattr(settings, "ORDERS_PENDING_AGE_MINUTES", 5))


def sweep_abandoned_orders(*, age_minutes: int | None = None, dry_run: bool = False) -> SweepResult:
    age = pending_age_minutes() if age_minutes is None else int(age_minutes)
    order_ids = find_stale_pending(max_age_minutes=age)

    result = SweepResult(found=len(order_ids), dry_run=dry_run)
    if not order_ids or dry_run:
        return result

    logger.info("Sweep started", extra={"found": result.found, "max_age_minutes": age})

    for order_id in order_ids:
        try:
            if mark_abandoned(order_id=order_id):
                result.succeeded += 1
            else:
                result.skipped += 1
        except Exception:
            result.failed += 1
            logger.exception("Failed to mark order as abandoned", extra={"order_id": order_id})

    logger.info("Sweep finished", extra=result.as_dict())
    return result


def run_scheduled_sweep() -> SweepResult | None:
    try:
        return sweep_abandoned_orders()
    except Exception:
        # retried on the next tick
        logger.exception("Sweep run failed")
        return None
