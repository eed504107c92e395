# prescriptions/models.py

"""
PRESCRIPTION + QUOTE MODELS

Lifecycle:
- Prescription is uploaded by a user (AWAITING_RESPONSES)
- Pharmacies answer with quotes (PHARMACIES_RESPONDING)
- Once an order for it is paid, it is FINALIZED and never accepts
  quotes or payments again

Only the orders app writes the FINALIZED transition, inside the same
transaction that marks the order as paid.
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class Prescription(models.Model):
    STATE_AWAITING_RESPONSES = "awaiting_responses"
    STATE_PHARMACIES_RESPONDING = "pharmacies_responding"
    STATE_FINALIZED = "finalized"

    STATE_CHOICES = [
        (STATE_AWAITING_RESPONSES, "Awaiting responses"),
        (STATE_PHARMACIES_RESPONDING, "Pharmacies responding"),
        (STATE_FINALIZED, "Finalized"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Identity lives in the external auth provider; we only keep its uid.
    user_id = models.CharField(max_length=128, db_index=True)

    state = models.CharField(
        max_length=32,
        choices=STATE_CHOICES,
        default=STATE_AWAITING_RESPONSES,
        db_index=True,
    )

    image_url = models.URLField(max_length=500, blank=True, default="")
    delivery_address = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    finalized_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user_id", "created_at"], name="prescription_user_created_idx"),
        ]

    @property
    def is_finalized(self) -> bool:
        return self.state == self.STATE_FINALIZED

    def __str__(self):
        return f"{self.id} ({self.state})"


class Quote(models.Model):
    """
    A pharmacy's priced answer to a prescription.
    """

    STATE_QUOTED = "quoted"
    STATE_UNAVAILABLE = "unavailable"

    STATE_CHOICES = [
        (STATE_QUOTED, "Quoted"),
        (STATE_UNAVAILABLE, "Unavailable"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    prescription = models.ForeignKey(
        Prescription,
        on_delete=models.CASCADE,
        related_name="quotes",
    )

    pharmacy_id = models.CharField(max_length=128, db_index=True)
    pharmacy_name = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")

    # Null when the pharmacy answered without stock.
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    state = models.CharField(max_length=32, choices=STATE_CHOICES, default=STATE_QUOTED)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["prescription", "pharmacy_id"], name="quote_rx_pharmacy_idx"),
        ]

    def __str__(self):
        return f"{self.pharmacy_name or self.pharmacy_id} | {self.price} | {self.state}"
