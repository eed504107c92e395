# orders/models/order.py

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from prescriptions.models import Prescription, Quote


class Order(models.Model):
    """
    One checkout attempt for a prescription/quote pair.

    Key rule:
    - Order is created first (PENDING_PAYMENT) before the payment provider
      preference exists
    - It becomes PAID only through webhook reconciliation
    - Only orders.services.order_store writes to this table
    """

    STATE_PENDING_PAYMENT = "pending_payment"
    # Provider-side pending (in_process / in_mediation). Also the legacy
    # state of orders created before PENDING_PAYMENT existed.
    STATE_PENDING = "pending"
    STATE_PAID = "paid"
    STATE_REJECTED = "rejected"
    STATE_CANCELLED = "cancelled"
    STATE_ABANDONED = "abandoned"
    STATE_UNKNOWN = "unknown"

    STATE_CHOICES = [
        (STATE_PENDING_PAYMENT, "Pending Payment"),
        (STATE_PENDING, "Pending"),
        (STATE_PAID, "Paid"),
        (STATE_REJECTED, "Rejected"),
        (STATE_CANCELLED, "Cancelled"),
        (STATE_ABANDONED, "Abandoned"),
        (STATE_UNKNOWN, "Unknown"),
    ]

    TERMINAL_STATES = frozenset(
        {STATE_PAID, STATE_REJECTED, STATE_CANCELLED, STATE_ABANDONED}
    )

    # States that block a new order for the same (user, prescription).
    LIVE_STATES = (STATE_PENDING_PAYMENT, STATE_PENDING, STATE_PAID)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user_id = models.CharField(max_length=128, db_index=True)
    pharmacy_id = models.CharField(max_length=128)

    prescription = models.ForeignKey(
        Prescription,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    quote = models.ForeignKey(
        Quote,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    # Server authoritative (copied from the quote at checkout)
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    state = models.CharField(
        max_length=32,
        choices=STATE_CHOICES,
        default=STATE_PENDING_PAYMENT,
    )

    payment_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    provider_status = models.CharField(max_length=32, null=True, blank=True)

    # Checkout snapshot shown on the provider page / receipts
    pharmacy_name = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")
    image_url = models.URLField(max_length=500, blank=True, default="")
    delivery_address = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    paid_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["state", "created_at"], name="order_state_created_idx"),
            models.Index(
                fields=["user_id", "prescription", "created_at"],
                name="order_user_rx_created_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(price__gt=0), name="order_price_positive"),
            models.UniqueConstraint(
                fields=["prescription"],
                condition=Q(state="paid"),
                name="uniq_paid_order_per_prescription",
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.state in self.TERMINAL_STATES

    def __str__(self):
        return f"{self.id} | {self.price} | {self.state}"
