# payments/views/status.py

"""
PAYMENT STATUS ENDPOINTS

- GET /api/payments/verify/<payment_id>/  provider-side payment lookup
- GET /api/payments/health/               provider/signature configuration
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.serializers import PaymentsHealthSerializer, PaymentVerificationSerializer
from payments.services import mercadopago, signature
from payments.services.exceptions import PaymentProviderError, PaymentProviderNotConfigured
from payments.throttling import PaymentsThrottle

logger = logging.getLogger(__name__)


class PaymentVerifyView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [PaymentsThrottle]

    @extend_schema(
        responses={
            200: PaymentVerificationSerializer,
            400: OpenApiResponse(description="Invalid payment id / provider refused"),
            503: OpenApiResponse(description="Payment provider not configured"),
        },
        tags=["Payments"],
    )
    def get(self, request, payment_id):
        payment_id = str(payment_id or "").strip()
        if not payment_id:
            return Response({"detail": "Invalid payment id"}, status=status.HTTP_400_BAD_REQUEST)

        if not mercadopago.is_configured():
            return Response(
                {"detail": "Payment service unavailable"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        logger.info("Verifying payment", extra={"payment_id": payment_id})
        try:
            payment = mercadopago.get_payment(payment_id)
        except PaymentProviderNotConfigured:
            return Response(
                {"detail": "Payment service unavailable"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        except PaymentProviderError as exc:
            logger.error("Payment verification failed", extra={"payment_id": payment_id, "error": str(exc)})
            return Response({"detail": "Could not verify the payment"}, status=status.HTTP_400_BAD_REQUEST)

        return Response(PaymentVerificationSerializer(payment.as_dict()).data, status=status.HTTP_200_OK)


class PaymentsHealthView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(responses={200: PaymentsHealthSerializer}, tags=["Payments"])
    def get(self, request):
        return Response(
            {
                "status": "OK",
                "service": "payments",
                "mercadopago_configured": mercadopago.is_configured(),
                "webhook_signature_configured": signature.is_configured(),
                "webhook_signature_enforced": signature.verification_enabled(),
            },
            status=status.HTTP_200_OK,
        )
