# payments/services/reconciler.py

"""
PAYMENT RECONCILER (WEBHOOK -> ORDER STATE)

Flow for one notification:
1) type != "payment"              -> IGNORED
2) no payment id                  -> IGNORED
3) webhook rate limit exceeded    -> REJECTED (provider retries later)
4) lock held by another delivery  -> IGNORED
5) GET the payment from the provider (the webhook body is only a poke)
6) order id = external_reference, else metadata.order_id
7) approved          -> settle_idempotent (order PAID + prescription FINALIZED)
   rejected/cancelled -> update_non_terminal
   pending family     -> update_non_terminal(PENDING)
   anything else      -> update_non_terminal(UNKNOWN)

The lock taken in (4) is always released.

process_webhook() never raises: the HTTP layer answers 200 whatever
happens here, so provider retries are never triggered by our bugs.
"""

from __future__ import annotations

import logging
from enum import Enum

from orders.models import Order
from orders.services.order_store import settle_idempotent, update_non_terminal
from payments.services import mercadopago, webhook_lock
from payments.services.exceptions import PaymentProcessingError, PaymentProviderError
from payments.services.notifications import PaymentNotification, parse_notification
from payments.services.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    PROCESSED = "processed"
    IGNORED = "ignored"
    REJECTED = "rejected"
    ERROR = "error"


STATUS_APPROVED = "approved"

PROVIDER_STATUS_MAP = {
    "approved": Order.STATE_PAID,
    "rejected": Order.STATE_REJECTED,
    "cancelled": Order.STATE_CANCELLED,
    "pending": Order.STATE_PENDING,
    "in_process": Order.STATE_PENDING,
    "in_mediation": Order.STATE_PENDING,
}

METADATA_ORDER_KEYS = ("order_id", "orderId", "pedidoId")


def map_provider_status(provider_status) -> str:
    status = str(provider_status or "").strip().lower()
    state = PROVIDER_STATUS_MAP.get(status)
    if state is None:
        logger.warning("Unrecognized provider payment status", extra={"provider_status": status})
        return Order.STATE_UNKNOWN
    return state


def resolve_order_id(payment: mercadopago.ProviderPayment) -> str | None:
    if payment.external_reference:
        return payment.external_reference

    metadata = payment.metadata or {}
    for key in METADATA_ORDER_KEYS:
        value = metadata.get(key)
        if value:
            return str(value).strip()
    return None


def reconcile_payment(payment_id: str) -> bool:
    """
    Pull the payment from the provider and apply it to its order.

    Returns True when an order row changed.
    Raises PaymentProcessingError when the provider could not be reached
    or the store failed; the notification will be retried by the provider.
    """
    try:
        payment = mercadopago.get_payment(payment_id)
    except PaymentProviderError as exc:
        logger.error(
            "Provider lookup failed during reconciliation",
            extra={"payment_id": payment_id, "error": str(exc)},
        )
        raise PaymentProcessingError(f"Could not verify payment {payment_id} with provider") from exc

    order_id = resolve_order_id(payment)
    logger.info(
        "Payment fetched",
        extra={"payment_id": payment_id, "provider_status": payment.status, "order_id": order_id},
    )

    if not order_id:
        logger.warning("Payment without associated order", extra={"payment_id": payment_id})
        return False

    state = map_provider_status(payment.status)

    try:
        if state == Order.STATE_PAID:
            return settle_idempotent(
                order_id=order_id,
                payment_id=payment_id,
                provider_status=payment.status,
            )

        return update_non_terminal(
            order_id=order_id,
            state=state,
            payment_id=payment_id,
            provider_status=payment.status or None,
        )
    except Exception as exc:
        logger.exception(
            "Order update failed during reconciliation",
            extra={"payment_id": payment_id, "order_id": order_id},
        )
        raise PaymentProcessingError(f"Could not apply payment {payment_id} to order {order_id}") from exc


def handle_notification(notification: PaymentNotification) -> WebhookOutcome:
    """
    Steps 1-7 for an already parsed notification.

    Raises PaymentProcessingError from reconcile_payment().
    """
    if not notification.is_payment:
        logger.debug("Webhook ignored", extra={"type": notification.type})
        return WebhookOutcome.IGNORED

    payment_id = notification.payment_id
    if not payment_id:
        logger.warning("Payment webhook without payment id")
        return WebhookOutcome.IGNORED

    if not get_rate_limiter().allow_webhook(payment_id):
        logger.warning("Webhook rate limit exceeded, rejecting", extra={"payment_id": payment_id})
        return WebhookOutcome.REJECTED

    token = webhook_lock.new_owner_token()
    if not webhook_lock.try_acquire(payment_id, owner_token=token):
        logger.warning("Webhook already being processed, duplicate ignored", extra={"payment_id": payment_id})
        return WebhookOutcome.IGNORED

    try:
        reconcile_payment(payment_id)
        return WebhookOutcome.PROCESSED
    finally:
        webhook_lock.release(payment_id, owner_token=token)


def process_webhook(payload) -> WebhookOutcome:
    notification = parse_notification(payload)
    try:
        return handle_notification(notification)
    except PaymentProcessingError:
        logger.exception("Webhook processing failed", extra={"payment_id": notification.payment_id})
        return WebhookOutcome.ERROR
    except Exception:
        logger.exception("Unhandled webhook error", extra={"payment_id": notification.payment_id})
        return WebhookOutcome.ERROR
