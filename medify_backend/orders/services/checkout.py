# orders/services/checkout.py

"""
CHECKOUT PREREQUISITES

Read-only checks that run before create_order():
- prescription exists, belongs to the user, and is collecting quotes
- quote exists, belongs to that prescription, is priced, and was sent
  by the pharmacy the user picked

The quote price is authoritative; the client never sends the amount.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError

from orders.services.exceptions import CheckoutNotFoundError, OrderValidationError
from prescriptions.models import Prescription, Quote

logger = logging.getLogger(__name__)

CHECKOUT_PRESCRIPTION_STATES = {Prescription.STATE_PHARMACIES_RESPONDING}


@dataclass(frozen=True)
class CheckoutContext:
    prescription: Prescription
    quote: Quote
    price: Decimal


def _get_or_none(model, **lookup):
    try:
        return model.objects.filter(**lookup).first()
    except (DjangoValidationError, ValueError):
        # malformed UUIDs
        return None


def validate_checkout(*, user_id, prescription_id, quote_id, pharmacy_id) -> CheckoutContext:
    prescription = _get_or_none(Prescription, id=prescription_id)
    if prescription is None:
        logger.warning("Checkout for unknown prescription", extra={"prescription_id": str(prescription_id)})
        raise CheckoutNotFoundError("Prescription not found")

    if prescription.user_id != str(user_id):
        logger.warning(
            "Checkout by non-owner",
            extra={"prescription_id": str(prescription.id), "user_id": str(user_id)},
        )
        raise OrderValidationError("Prescription does not belong to this user")

    if prescription.state not in CHECKOUT_PRESCRIPTION_STATES:
        logger.warning(
            "Prescription not ready for payment",
            extra={"prescription_id": str(prescription.id), "state": prescription.state},
        )
        raise OrderValidationError("Prescription is not ready to process the payment")

    quote = _get_or_none(Quote, id=quote_id, prescription=prescription)
    if quote is None:
        raise CheckoutNotFoundError("Quote not found")

    if quote.state != Quote.STATE_QUOTED:
        raise OrderValidationError("Quote is not in a valid state to proceed with the payment")

    if quote.price is None or quote.price <= Decimal("0.00"):
        logger.error("Quote with invalid price", extra={"quote_id": str(quote.id), "price": str(quote.price)})
        raise OrderValidationError("Invalid price in quote")

    if quote.pharmacy_id != str(pharmacy_id):
        logger.error(
            "Pharmacy mismatch",
            extra={"quote_id": str(quote.id), "requested": str(pharmacy_id), "quoted": quote.pharmacy_id},
        )
        raise OrderValidationError("Pharmacy does not match the quote")

    return CheckoutContext(prescription=prescription, quote=quote, price=quote.price)
