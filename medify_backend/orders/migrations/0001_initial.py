"""
======================================================
PATH: orders/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Order

- Composite index (state, created_at) backs the stale pending sweep.
- Partial unique constraint: one PAID order per prescription.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("prescriptions", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("user_id", models.CharField(db_index=True, max_length=128)),
                ("pharmacy_id", models.CharField(max_length=128)),
                (
                    "price",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.01"))
                        ],
                    ),
                ),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("pending_payment", "Pending Payment"),
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("rejected", "Rejected"),
                            ("cancelled", "Cancelled"),
                            ("abandoned", "Abandoned"),
                            ("unknown", "Unknown"),
                        ],
                        default="pending_payment",
                        max_length=32,
                    ),
                ),
                (
                    "payment_id",
                    models.CharField(blank=True, db_index=True, max_length=64, null=True),
                ),
                ("provider_status", models.CharField(blank=True, max_length=32, null=True)),
                ("pharmacy_name", models.CharField(blank=True, default="", max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("image_url", models.URLField(blank=True, default="", max_length=500)),
                ("delivery_address", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "prescription",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="prescriptions.prescription",
                    ),
                ),
                (
                    "quote",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="prescriptions.quote",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["state", "created_at"],
                        name="order_state_created_idx",
                    ),
                    models.Index(
                        fields=["user_id", "prescription", "created_at"],
                        name="order_user_rx_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("price__gt", 0)),
                        name="order_price_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("state", "paid")),
                        fields=("prescription",),
                        name="uniq_paid_order_per_prescription",
                    ),
                ],
            },
        ),
    ]
