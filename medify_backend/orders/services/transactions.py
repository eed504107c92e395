# orders/services/transactions.py

"""
TRANSACTION RUNNER

Every multi-row read/modify/write in this project goes through
run_in_transaction():

- fn() runs inside transaction.atomic(); rows it must serialize on are
  read with select_for_update()
- commit is all-or-nothing
- OperationalError (deadlock, serialization failure, lock or statement
  timeout) is retried at the outermost level only, a bounded number of
  times, then surfaced as TransientInfraError

Nested calls (already inside an atomic block) are never retried here:
the failed outer transaction is unusable, so the owner of that block
has to decide.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, OperationalError, transaction

from orders.services.exceptions import TransientInfraError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKOFF_SECONDS = 0.05


def _max_attempts() -> int:
    return max(1, int(getattr(settings, "DB_TRANSACTION_RETRIES", 3) or 1))


def run_in_transaction(fn: Callable[[], T], *, using: str = DEFAULT_DB_ALIAS, label: str = "") -> T:
    nested = transaction.get_connection(using).in_atomic_block
    attempts = 1 if nested else _max_attempts()

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic(using=using):
                return fn()
        except OperationalError as exc:
            if attempt >= attempts:
                logger.error(
                    "Transaction failed",
                    extra={"label": label, "attempt": attempt, "nested": nested},
                )
                raise TransientInfraError(f"Database unavailable: {exc}") from exc

            logger.warning(
                "Transaction conflict, retrying",
                extra={"label": label, "attempt": attempt, "error": str(exc)},
            )
            time.sleep(BACKOFF_SECONDS * attempt)

    # unreachable: the loop either returns or raises
    raise TransientInfraError("Transaction retries exhausted")
