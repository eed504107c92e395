# orders/services/order_store.py

"""
ORDER STORE (SINGLE WRITER)

Purpose:
- The only module that writes Order rows (and the Prescription
  FINALIZED transition that goes with a payment).

Guarantees:
- At most one live order per (user, prescription): the duplicate check
  and the insert share one transaction, serialized on the prescription row.
- Settlement is idempotent: re-applying the same payment id is a no-op,
  a different payment id on a paid order is refused and logged as an anomaly.
- Order PAID + Prescription FINALIZED commit together or not at all.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from orders.models import Order
from orders.services.exceptions import (
    DuplicateOrderError,
    OrderServiceError,
    OrderValidationError,
)
from orders.services.money import quantize_money
from orders.services.transactions import run_in_transaction
from prescriptions.models import Prescription, Quote

logger = logging.getLogger(__name__)

# Provider-driven states that never touch the prescription.
NON_SETTLING_STATES = {
    Order.STATE_REJECTED,
    Order.STATE_CANCELLED,
    Order.STATE_PENDING,
    Order.STATE_UNKNOWN,
}


def _money(v) -> Decimal:
    try:
        return quantize_money(v)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise OrderValidationError(f"Invalid price: {v!r}") from exc


def _require(value, name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise OrderValidationError(f"{name} is required")
    return text


def _parse_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError, TypeError):
        return None


def _duplicate_window() -> timedelta:
    return timedelta(minutes=int(getattr(settings, "ORDERS_DUPLICATE_WINDOW_MINUTES", 5)))


# ============================================================
# CREATE
# ============================================================


def create_order(
    *,
    user_id,
    pharmacy_id,
    prescription_id,
    quote_id,
    price,
    pharmacy_name: str = "",
    description: str = "",
    image_url: str = "",
    delivery_address: dict | None = None,
) -> str:
    """
    Create a PENDING_PAYMENT order unless a paid or fresh pending one exists.

    Returns the new order id (str).

    Raises:
        OrderValidationError on bad input
        DuplicateOrderError when the pair already has a paid order, or a
        pending one younger than ORDERS_DUPLICATE_WINDOW_MINUTES
    """
    user_id = _require(user_id, "user_id")
    pharmacy_id = _require(pharmacy_id, "pharmacy_id")
    prescription_id = _require(prescription_id, "prescription_id")
    quote_id = _require(quote_id, "quote_id")

    prescription_pk = _parse_uuid(prescription_id)
    if prescription_pk is None:
        raise OrderValidationError("prescription_id is not a valid id")
    quote_pk = _parse_uuid(quote_id)
    if quote_pk is None:
        raise OrderValidationError("quote_id is not a valid id")

    amount = _money(price)
    if amount <= Decimal("0.00"):
        raise OrderValidationError("price must be greater than zero")

    window = _duplicate_window()

    def _create() -> str:
        # Row lock on the prescription serializes concurrent checkouts for it.
        prescription = (
            Prescription.objects.select_for_update().filter(id=prescription_pk).first()
        )
        if prescription is None:
            raise OrderValidationError("Prescription not found")

        quote = Quote.objects.filter(id=quote_pk, prescription=prescription).first()
        if quote is None:
            raise OrderValidationError("Quote not found for this prescription")

        latest = (
            Order.objects.filter(
                user_id=user_id,
                prescription_id=prescription.id,
                state__in=Order.LIVE_STATES,
            )
            .order_by("-created_at")
            .first()
        )

        now = timezone.now()

        if latest is not None:
            if latest.state == Order.STATE_PAID:
                raise DuplicateOrderError(
                    "An order for this prescription is already paid",
                    order_id=latest.id,
                )

            age = now - latest.created_at
            if age < window:
                remaining = (window - age).total_seconds()
                minutes = max(1, math.ceil(remaining / 60))
                raise DuplicateOrderError(
                    "An order for this prescription is in progress, "
                    f"retry after {minutes} minute{'s' if minutes != 1 else ''}",
                    order_id=latest.id,
                    retry_after_seconds=max(1, math.ceil(remaining)),
                )

        order = Order.objects.create(
            user_id=user_id,
            pharmacy_id=pharmacy_id,
            prescription=prescription,
            quote=quote,
            price=amount,
            state=Order.STATE_PENDING_PAYMENT,
            pharmacy_name=str(pharmacy_name or "").strip(),
            description=str(description or "").strip(),
            image_url=str(image_url or "").strip(),
            delivery_address=delivery_address or {},
            created_at=now,
        )
        return str(order.id)

    order_id = run_in_transaction(_create, label="create_order")
    logger.info(
        "Order created",
        extra={"order_id": order_id, "prescription_id": prescription_id, "user_id": user_id},
    )
    return order_id


# ============================================================
# SETTLEMENT
# ============================================================


def _finalize_prescription(*, prescription_id, now) -> None:
    updated = Prescription.objects.filter(id=prescription_id).update(
        state=Prescription.STATE_FINALIZED,
        finalized_at=now,
        updated_at=now,
    )
    if not updated:
        raise OrderServiceError(f"Prescription {prescription_id} vanished during settlement")


def settle_idempotent(*, order_id, payment_id, provider_status) -> bool:
    """
    Mark an order PAID and finalize its prescription, atomically.

    Returns True only when this call applied the transition.
    Returns False (no writes) when:
    - the order does not exist
    - it is already PAID with the same payment id (idempotent replay)
    - it is already PAID with another payment id (anomaly)
    - another order of the same prescription is already PAID (anomaly)
    """
    payment_id = _require(payment_id, "payment_id")
    pk = _parse_uuid(order_id)
    if pk is None:
        logger.warning(
            "Settlement for malformed order id ignored",
            extra={"order_id": str(order_id), "payment_id": payment_id},
        )
        return False

    def _settle() -> bool:
        order = Order.objects.select_for_update().filter(id=pk).first()
        if order is None:
            logger.warning(
                "Settlement for unknown order ignored",
                extra={"order_id": str(pk), "payment_id": payment_id},
            )
            return False

        if order.state == Order.STATE_PAID:
            if order.payment_id == payment_id:
                logger.info(
                    "Order already paid with this payment, idempotent no-op",
                    extra={"order_id": str(pk), "payment_id": payment_id},
                )
            else:
                logger.error(
                    "Payment anomaly: order already paid with a different payment",
                    extra={
                        "order_id": str(pk),
                        "paid_payment_id": order.payment_id,
                        "payment_id": payment_id,
                    },
                )
            return False

        other_paid = (
            Order.objects.filter(prescription_id=order.prescription_id, state=Order.STATE_PAID)
            .exclude(id=order.id)
            .values_list("id", flat=True)
            .first()
        )
        if other_paid is not None:
            logger.error(
                "Payment anomaly: prescription already paid through another order",
                extra={
                    "order_id": str(pk),
                    "paid_order_id": str(other_paid),
                    "payment_id": payment_id,
                },
            )
            return False

        now = timezone.now()
        order.state = Order.STATE_PAID
        order.payment_id = payment_id
        order.provider_status = provider_status
        order.paid_at = now
        order.save(update_fields=["state", "payment_id", "provider_status", "paid_at", "updated_at"])

        _finalize_prescription(prescription_id=order.prescription_id, now=now)
        return True

    updated = run_in_transaction(_settle, label="settle_idempotent")
    if updated:
        logger.info(
            "Order marked as paid, prescription finalized",
            extra={"order_id": str(pk), "payment_id": payment_id},
        )
    return updated


def update_non_terminal(*, order_id, state: str, payment_id, provider_status) -> bool:
    """
    Record a non-approved provider status (rejected, cancelled, pending, unknown).

    Overwrites with the latest status. A PAID order is never moved back.
    """
    if state not in NON_SETTLING_STATES:
        raise OrderValidationError(f"State '{state}' cannot be applied without settlement")

    pk = _parse_uuid(order_id)
    if pk is None:
        logger.warning("Update for malformed order id ignored", extra={"order_id": str(order_id)})
        return False

    def _update() -> bool:
        order = Order.objects.select_for_update().filter(id=pk).first()
        if order is None:
            logger.warning("Update for unknown order ignored", extra={"order_id": str(pk)})
            return False

        if order.state == Order.STATE_PAID:
            logger.warning(
                "Order already paid, late provider status ignored",
                extra={"order_id": str(pk), "state": state, "payment_id": str(payment_id)},
            )
            return False

        order.state = state
        order.payment_id = str(payment_id) if payment_id else order.payment_id
        order.provider_status = provider_status
        fields = ["state", "payment_id", "provider_status", "updated_at"]
        if state in Order.TERMINAL_STATES and not order.closed_at:
            order.closed_at = timezone.now()
            fields.append("closed_at")
        order.save(update_fields=fields)
        return True

    updated = run_in_transaction(_update, label="update_non_terminal")
    if updated:
        logger.info(
            "Order updated from provider status",
            extra={"order_id": str(pk), "state": state, "provider_status": provider_status},
        )
    return updated


# ============================================================
# SWEEP / COMPENSATION
# ============================================================


def mark_abandoned(*, order_id) -> bool:
    """
    PENDING_PAYMENT -> ABANDONED as one conditional UPDATE.

    Returns False when the order left PENDING_PAYMENT in the meantime
    (or does not exist); nothing is written then.
    """
    pk = _parse_uuid(order_id)
    if pk is None:
        return False

    now = timezone.now()
    updated = Order.objects.filter(id=pk, state=Order.STATE_PENDING_PAYMENT).update(
        state=Order.STATE_ABANDONED,
        closed_at=now,
        updated_at=now,
    )
    if updated:
        logger.info("Order marked as abandoned", extra={"order_id": str(pk)})
    else:
        logger.info("Order no longer pending payment, not abandoned", extra={"order_id": str(pk)})
    return bool(updated)


def delete_order(*, order_id) -> bool:
    """Compensating hard delete, used when the provider preference could not be created."""
    pk = _parse_uuid(order_id)
    if pk is None:
        return False

    deleted, _ = Order.objects.filter(id=pk).delete()
    logger.info("Order deleted", extra={"order_id": str(pk), "deleted": deleted})
    return bool(deleted)


def _stale_pending_indexed(cutoff) -> list[str]:
    # Savepoint so a failed query leaves any outer transaction usable.
    with transaction.atomic():
        ids = Order.objects.filter(
            state=Order.STATE_PENDING_PAYMENT,
            created_at__lt=cutoff,
        ).values_list("id", flat=True)
        return [str(pk) for pk in ids]


def _stale_pending_filtered(cutoff) -> list[str]:
    rows = (
        Order.objects.filter(state=Order.STATE_PENDING_PAYMENT)
        .values_list("id", "created_at")
        .iterator(chunk_size=500)
    )
    out = []
    for pk, created_at in rows:
        if created_at is None:
            logger.debug("Order without created_at skipped by sweep", extra={"order_id": str(pk)})
            continue
        if created_at < cutoff:
            out.append(str(pk))
    return out


def find_stale_pending(*, max_age_minutes: int) -> list[str]:
    """
    Ids of PENDING_PAYMENT orders created more than max_age_minutes ago.

    Primary path is the (state, created_at) index. If that query fails,
    fall back to filtering by state only and comparing timestamps here,
    unless ORDERS_STALE_QUERY_FALLBACK is disabled.
    """
    cutoff = timezone.now() - timedelta(minutes=int(max_age_minutes))

    try:
        ids = _stale_pending_indexed(cutoff)
    except DatabaseError as exc:
        logger.warning(
            "Stale pending query failed; check that the (state, created_at) "
            "index order_state_created_idx exists (run migrations)",
            extra={"error": str(exc)},
        )
        if not getattr(settings, "ORDERS_STALE_QUERY_FALLBACK", True):
            raise

        ids = _stale_pending_filtered(cutoff)
        logger.warning(
            "Fallback applied: stale pending orders filtered in process",
            extra={"count": len(ids)},
        )
        return ids

    if ids:
        logger.info(
            "Stale pending orders found",
            extra={"count": len(ids), "max_age_minutes": max_age_minutes},
        )
    return ids
