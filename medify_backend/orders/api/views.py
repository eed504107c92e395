# orders/api/views.py

"""
ORDERS API

- GET  /api/orders/<order_id>/  order status polling (after the provider
                                 redirects back to the client)
- POST /api/orders/sweep/       manual abandoned-order sweep (admin)
"""

from __future__ import annotations

import logging

from django.db import DatabaseError
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from orders.api.serializers import (
    OrderStatusSerializer,
    SweepRequestSerializer,
    SweepResultSerializer,
)
from orders.models import Order
from orders.services.cleanup import sweep_abandoned_orders

logger = logging.getLogger(__name__)


class OrderPollThrottle(AnonRateThrottle):
    """
    Uses REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['order_poll'].
    """

    scope = "order_poll"


class OrderStatusView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [OrderPollThrottle]

    @extend_schema(
        responses={
            200: OrderStatusSerializer,
            404: OpenApiResponse(description="Order not found"),
        },
        tags=["Orders"],
    )
    def get(self, request, order_id):
        order = get_object_or_404(Order, id=order_id)
        return Response(OrderStatusSerializer(order).data, status=status.HTTP_200_OK)


class SweepNowView(APIView):
    permission_classes = [IsAdminUser]
    parser_classes = [JSONParser]

    @extend_schema(
        request=SweepRequestSerializer,
        responses={
            200: SweepResultSerializer,
            503: OpenApiResponse(description="Candidate query could not run"),
        },
        description="Run the abandoned-order sweep now instead of waiting for the scheduler.",
        tags=["Orders"],
    )
    def post(self, request):
        s = SweepRequestSerializer(data=request.data or {})
        s.is_valid(raise_exception=True)
        data = s.validated_data

        logger.info(
            "Manual sweep requested",
            extra={"user_id": str(request.user.pk), "dry_run": data.get("dry_run", False)},
        )

        try:
            result = sweep_abandoned_orders(
                age_minutes=data.get("age_minutes"),
                dry_run=data.get("dry_run", False),
            )
        except DatabaseError:
            logger.exception("Manual sweep failed")
            return Response(
                {"detail": "Sweep could not run, try again later"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return Response(SweepResultSerializer(result.as_dict()).data, status=status.HTTP_200_OK)
