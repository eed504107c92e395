# payments/serializers.py

"""
PAYMENTS SERIALIZERS

Transport layer only: request/response shapes, not business rules
(those live in orders.services.checkout / order_store).
"""

from __future__ import annotations

from rest_framework import serializers


class DeliveryAddressSerializer(serializers.Serializer):
    street = serializers.CharField(required=False, allow_blank=True, default="")
    number = serializers.CharField(required=False, allow_blank=True, default="")
    city = serializers.CharField(required=False, allow_blank=True, default="")
    province = serializers.CharField(required=False, allow_blank=True, default="")
    postal_code = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PreferenceRequestSerializer(serializers.Serializer):
    """
    The amount is never taken from the client: it comes from the quote.
    """

    user_id = serializers.CharField(max_length=128)
    pharmacy_id = serializers.CharField(max_length=128)
    prescription_id = serializers.UUIDField()
    quote_id = serializers.UUIDField()
    pharmacy_name = serializers.CharField(max_length=255)
    image_url = serializers.URLField(max_length=500)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    delivery_address = DeliveryAddressSerializer()


class PreferenceResponseSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    preference_id = serializers.CharField()
    payment_url = serializers.URLField()


class WebhookAckSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    detail = serializers.CharField()


class PaymentVerificationSerializer(serializers.Serializer):
    id = serializers.CharField()
    status = serializers.CharField()
    status_detail = serializers.CharField(allow_blank=True)
    external_reference = serializers.CharField(allow_blank=True)
    metadata = serializers.DictField()
    transaction_amount = serializers.CharField(allow_null=True)
    currency = serializers.CharField(allow_blank=True)


class PaymentsHealthSerializer(serializers.Serializer):
    status = serializers.CharField()
    service = serializers.CharField()
    mercadopago_configured = serializers.BooleanField()
    webhook_signature_configured = serializers.BooleanField()
    webhook_signature_enforced = serializers.BooleanField()
