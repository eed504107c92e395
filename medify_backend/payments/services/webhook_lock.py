# payments/services/webhook_lock.py

"""
WEBHOOK LOCK (DATABASE-BACKED, TTL)

Serializes processing of notifications for the same payment id across
workers and processes. The provider retries deliveries, so the same
payment id can arrive concurrently.

UNLOCKED -> LOCKED    try_acquire() succeeded
LOCKED   -> UNLOCKED  release(), or acquired_at older than the TTL

Policy on database failures:
- WEBHOOK_LOCK_FAIL_OPEN=True (default): try_acquire() returns True.
  A duplicate processing run is cheaper than a missed payment, and
  settlement is idempotent anyway.
- WEBHOOK_LOCK_FAIL_OPEN=False: returns False; the provider retries later.
"""

from __future__ import annotations

import logging
import time
import uuid

from django.conf import settings
from django.db import DatabaseError, IntegrityError

from orders.services.exceptions import TransientInfraError
from orders.services.transactions import run_in_transaction
from payments.models import WebhookLock

logger = logging.getLogger(__name__)


def _now_epoch() -> int:
    return int(time.time())


def lock_ttl_seconds() -> int:
    return int(getattr(settings, "WEBHOOK_LOCK_TTL_SECONDS", 300))


def _fail_open() -> bool:
    return bool(getattr(settings, "WEBHOOK_LOCK_FAIL_OPEN", True))


def new_owner_token() -> str:
    return uuid.uuid4().hex


def try_acquire(payment_id, *, owner_token: str | None = None) -> bool:
    payment_id = str(payment_id or "").strip()
    if not payment_id:
        return False

    token = owner_token or new_owner_token()
    ttl = lock_ttl_seconds()

    def _acquire() -> bool:
        now = _now_epoch()
        lock = WebhookLock.objects.select_for_update().filter(payment_id=payment_id).first()

        if lock is None:
            # Two first-comers race on the primary key; the loser gets IntegrityError.
            WebhookLock.objects.create(payment_id=payment_id, acquired_at=now, owner_token=token)
            return True

        age = now - lock.acquired_at
        if age < ttl:
            logger.warning(
                "Webhook lock held, duplicate delivery ignored",
                extra={"payment_id": payment_id, "lock_age_seconds": age},
            )
            return False

        logger.info(
            "Webhook lock expired, renewing",
            extra={"payment_id": payment_id, "lock_age_seconds": age},
        )
        lock.acquired_at = now
        lock.owner_token = token
        lock.save(update_fields=["acquired_at", "owner_token"])
        return True

    try:
        return run_in_transaction(_acquire, label="webhook_lock_acquire")
    except IntegrityError:
        logger.warning(
            "Webhook lock taken concurrently, duplicate delivery ignored",
            extra={"payment_id": payment_id},
        )
        return False
    except (DatabaseError, TransientInfraError):
        fail_open = _fail_open()
        logger.exception(
            "Webhook lock acquisition failed (%s)",
            "fail-open, processing anyway" if fail_open else "fail-closed, skipping",
            extra={"payment_id": payment_id},
        )
        return fail_open


def release(payment_id, *, owner_token: str | None = None) -> None:
    """
    Best-effort delete. With owner_token only our own row is removed, so a
    run that outlived the TTL never drops the lock of the run that took over.
    """
    payment_id = str(payment_id or "").strip()
    if not payment_id:
        return

    qs = WebhookLock.objects.filter(payment_id=payment_id)
    if owner_token:
        qs = qs.filter(owner_token=owner_token)

    try:
        deleted, _ = qs.delete()
    except DatabaseError:
        logger.exception("Webhook lock release failed, TTL will expire it", extra={"payment_id": payment_id})
        return

    logger.debug("Webhook lock released", extra={"payment_id": payment_id, "deleted": deleted})


def is_locked(payment_id) -> bool:
    lock = WebhookLock.objects.filter(payment_id=str(payment_id)).first()
    if lock is None:
        return False
    return _now_epoch() - lock.acquired_at < lock_ttl_seconds()


def purge_expired_locks() -> int:
    """Delete lock rows older than the TTL. Returns how many were removed."""
    cutoff = _now_epoch() - lock_ttl_seconds()
    deleted, _ = WebhookLock.objects.filter(acquired_at__lt=cutoff).delete()
    if deleted:
        logger.info("Expired webhook locks purged", extra={"deleted": deleted})
    return deleted
