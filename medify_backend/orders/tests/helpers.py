# orders/tests/helpers.py

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from orders.models import Order
from prescriptions.models import Prescription, Quote

USER_ID = "user-1"
PHARMACY_ID = "pharmacy-1"


def make_prescription(*, user_id: str = USER_ID, state: str = Prescription.STATE_PHARMACIES_RESPONDING) -> Prescription:
    return Prescription.objects.create(
        user_id=user_id,
        state=state,
        image_url="https://files.example.test/rx.jpg",
        delivery_address={"street": "Av. Siempre Viva", "number": "742", "city": "Springfield"},
    )


def make_quote(
    prescription: Prescription,
    *,
    pharmacy_id: str = PHARMACY_ID,
    price=Decimal("1500.00"),
    state: str = Quote.STATE_QUOTED,
) -> Quote:
    return Quote.objects.create(
        prescription=prescription,
        pharmacy_id=pharmacy_id,
        pharmacy_name="Farmacia Central",
        description="Amoxicilina 500mg x 21",
        price=price,
        state=state,
    )


def make_order(
    quote: Quote,
    *,
    user_id: str = USER_ID,
    state: str = Order.STATE_PENDING_PAYMENT,
    age_minutes: int = 0,
    payment_id: str | None = None,
) -> Order:
    order = Order.objects.create(
        user_id=user_id,
        pharmacy_id=quote.pharmacy_id,
        prescription=quote.prescription,
        quote=quote,
        price=quote.price,
        state=state,
        payment_id=payment_id,
    )
    if age_minutes:
        backdate(order, minutes=age_minutes)
    return order


def backdate(order: Order, *, minutes: int) -> None:
    created = timezone.now() - timedelta(minutes=minutes)
    Order.objects.filter(id=order.id).update(created_at=created)
    order.created_at = created
