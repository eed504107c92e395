# orders/api/serializers.py

from __future__ import annotations

from rest_framework import serializers

from orders.models import Order


class OrderStatusSerializer(serializers.ModelSerializer):
    prescription_id = serializers.UUIDField(read_only=True)
    quote_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "state",
            "price",
            "pharmacy_id",
            "pharmacy_name",
            "prescription_id",
            "quote_id",
            "payment_id",
            "provider_status",
            "created_at",
            "paid_at",
            "closed_at",
        ]
        read_only_fields = fields


class SweepRequestSerializer(serializers.Serializer):
    age_minutes = serializers.IntegerField(min_value=1, required=False)
    dry_run = serializers.BooleanField(required=False, default=False)


class SweepResultSerializer(serializers.Serializer):
    found = serializers.IntegerField()
    succeeded = serializers.IntegerField()
    skipped = serializers.IntegerField()
    failed = serializers.IntegerField()
    dry_run = serializers.BooleanField()
