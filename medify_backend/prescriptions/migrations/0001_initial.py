"""
======================================================
PATH: prescriptions/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Prescription + Quote
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

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Prescription",
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
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("awaiting_responses", "Awaiting responses"),
                            ("pharmacies_responding", "Pharmacies responding"),
                            ("finalized", "Finalized"),
                        ],
                        db_index=True,
                        default="awaiting_responses",
                        max_length=32,
                    ),
                ),
                ("image_url", models.URLField(blank=True, default="", max_length=500)),
                ("delivery_address", models.JSONField(blank=True, default=dict)),
                (
                    "created_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("finalized_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user_id", "created_at"],
                        name="prescription_user_created_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Quote",
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
                ("pharmacy_id", models.CharField(db_index=True, max_length=128)),
                ("pharmacy_name", models.CharField(blank=True, default="", max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.01"))
                        ],
                    ),
                ),
                (
                    "state",
                    models.CharField(
                        choices=[("quoted", "Quoted"), ("unavailable", "Unavailable")],
                        default="quoted",
                        max_length=32,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "prescription",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="quotes",
                        to="prescriptions.prescription",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["prescription", "pharmacy_id"],
                        name="quote_rx_pharmacy_idx",
                    )
                ],
            },
        ),
    ]
