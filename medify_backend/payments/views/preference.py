# payments/views/preference.py

"""
CHECKOUT PREFERENCE (MERCADOPAGO)

POST /api/payments/preference/

1) validate prescription + quote (quote price is the amount)
2) create the PENDING_PAYMENT order (duplicate suppressed)
3) create the provider preference for that order
4) provider failure -> delete the order created in (2)

Hard rules:
- The client never sends the amount
- An order without a preference never survives this request
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.services.checkout import validate_checkout
from orders.services.exceptions import (
    CheckoutNotFoundError,
    DuplicateOrderError,
    OrderValidationError,
    TransientInfraError,
)
from orders.services.order_store import create_order, delete_order
from payments.serializers import PreferenceRequestSerializer, PreferenceResponseSerializer
from payments.services import mercadopago
from payments.services.exceptions import PaymentProviderError, PaymentProviderNotConfigured
from payments.throttling import PaymentsThrottle

logger = logging.getLogger(__name__)


def _error(detail: str, http_status: int, **headers) -> Response:
    resp = Response({"detail": detail}, status=http_status)
    for name, value in headers.items():
        resp[name] = value
    return resp


def _compensate(order_id: str | None) -> None:
    if not order_id:
        return
    try:
        delete_order(order_id=order_id)
    except Exception:
        logger.exception("Compensating order delete failed", extra={"order_id": order_id})


class PreferenceCreateView(APIView):
    permission_classes = [AllowAny]
    parser_classes = [JSONParser]
    throttle_classes = [PaymentsThrottle]

    @extend_schema(
        request=PreferenceRequestSerializer,
        responses={
            200: PreferenceResponseSerializer,
            400: OpenApiResponse(description="Validation error"),
            404: OpenApiResponse(description="Prescription or quote not found"),
            409: OpenApiResponse(description="Order already paid or in progress"),
            429: OpenApiResponse(description="Rate limited"),
            502: OpenApiResponse(description="Payment provider error"),
            503: OpenApiResponse(description="Payment provider not configured / database busy"),
        },
        description="Create a PENDING_PAYMENT order for a quote and return the MercadoPago checkout URL.",
        tags=["Payments"],
    )
    def post(self, request):
        s = PreferenceRequestSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        user = getattr(request, "user", None)
        user_id = str(user.pk) if user is not None and user.is_authenticated else data["user_id"]

        logger.info(
            "Preference requested",
            extra={"prescription_id": str(data["prescription_id"]), "quote_id": str(data["quote_id"])},
        )

        if not mercadopago.is_configured():
            logger.warning("MercadoPago is not configured")
            return _error("Payment provider not configured", status.HTTP_503_SERVICE_UNAVAILABLE)

        try:
            checkout = validate_checkout(
                user_id=user_id,
                prescription_id=data["prescription_id"],
                quote_id=data["quote_id"],
                pharmacy_id=data["pharmacy_id"],
            )
            order_id = create_order(
                user_id=user_id,
                pharmacy_id=data["pharmacy_id"],
                prescription_id=str(checkout.prescription.id),
                quote_id=str(checkout.quote.id),
                price=checkout.price,
                pharmacy_name=data["pharmacy_name"],
                description=data.get("description") or checkout.quote.description,
                image_url=data["image_url"],
                delivery_address=dict(data["delivery_address"]),
            )
        except CheckoutNotFoundError as exc:
            return _error(str(exc), status.HTTP_404_NOT_FOUND)
        except DuplicateOrderError as exc:
            logger.warning(
                "Duplicate order refused",
                extra={"prescription_id": str(data["prescription_id"]), "order_id": str(exc.order_id)},
            )
            headers = {}
            if exc.retry_after_seconds:
                headers["Retry-After"] = str(exc.retry_after_seconds)
            return _error(str(exc), status.HTTP_409_CONFLICT, **headers)
        except OrderValidationError as exc:
            return _error(str(exc), status.HTTP_400_BAD_REQUEST)
        except TransientInfraError:
            logger.exception("Order creation failed on database")
            return _error("Service busy, try again", status.HTTP_503_SERVICE_UNAVAILABLE)

        try:
            preference = mercadopago.create_preference(
                order_id=order_id,
                prescription_id=str(checkout.prescription.id),
                quote_id=str(checkout.quote.id),
                pharmacy_id=data["pharmacy_id"],
                user_id=user_id,
                price=checkout.price,
                pharmacy_name=data["pharmacy_name"],
                description=data.get("description") or checkout.quote.description,
                image_url=data["image_url"],
            )
        except PaymentProviderNotConfigured:
            _compensate(order_id)
            return _error("Payment provider not configured", status.HTTP_503_SERVICE_UNAVAILABLE)
        except PaymentProviderError as exc:
            logger.error(
                "MercadoPago preference failed",
                extra={"order_id": order_id, "error": str(exc)},
            )
            _compensate(order_id)
            return _error(f"Error creating payment preference: {exc}", status.HTTP_502_BAD_GATEWAY)
        except Exception:
            logger.exception("Unexpected error creating preference", extra={"order_id": order_id})
            _compensate(order_id)
            return _error("Internal error while processing the payment", status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(
            PreferenceResponseSerializer(
                {
                    "order_id": order_id,
                    "preference_id": preference.id,
                    "payment_url": preference.init_point,
                }
            ).data,
            status=status.HTTP_200_OK,
        )
