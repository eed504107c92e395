# payments/views/webhook.py

"""
MERCADOPAGO WEBHOOK

POST /api/payments/webhook/

Always answers 200 {"ok": true, "detail": <outcome>}: MercadoPago retries
non-2xx responses, and internal failures must not turn into retry storms.
The body is only a hint; reconciler re-reads the payment from the API.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.serializers import WebhookAckSerializer
from payments.services import signature
from payments.services.notifications import extract_data_id
from payments.services.reconciler import process_webhook

logger = logging.getLogger(__name__)


def _ack(detail: str) -> Response:
    return Response({"ok": True, "detail": detail}, status=status.HTTP_200_OK)


class MercadoPagoWebhookView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    parser_classes = [JSONParser]
    # Never 429: shedding is per payment id inside the reconciler.
    throttle_classes = []

    @extend_schema(
        request=None,
        responses={200: WebhookAckSerializer},
        description="MercadoPago payment notifications. Always acknowledged with 200.",
        tags=["Payments"],
    )
    def post(self, request, *args, **kwargs):
        try:
            payload = request.data if isinstance(request.data, dict) else {}
        except (ParseError, UnsupportedMediaType):
            logger.warning("Webhook with unreadable body")
            return _ack("ignored (invalid body)")

        data_id = extract_data_id(payload)
        logger.info("MercadoPago webhook received", extra={"type": payload.get("type"), "data_id": data_id})

        if not data_id:
            logger.warning("Webhook without data id")
            return _ack("ignored (missing data.id)")

        if signature.verification_enabled():
            x_signature = request.headers.get("x-signature")
            x_request_id = request.headers.get("x-request-id")

            try:
                valid = signature.is_valid_signature(
                    x_signature=x_signature, x_request_id=x_request_id, data_id=data_id
                )
                recent = valid and signature.is_recent_timestamp(x_signature)
            except Exception:
                logger.exception("Webhook signature check crashed", extra={"data_id": data_id})
                valid = recent = False

            if not valid:
                logger.warning("Invalid webhook signature", extra={"data_id": data_id})
                return _ack("ignored (invalid signature)")

            if not recent:
                logger.warning("Webhook timestamp expired", extra={"data_id": data_id})
                return _ack("ignored (expired timestamp)")

        outcome = process_webhook(payload)
        logger.info("Webhook handled", extra={"data_id": data_id, "outcome": outcome.value})
        return _ack(outcome.value)
