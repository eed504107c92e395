# orders/api/urls.py

"""
Mounted in backend/urls.py at /api/orders/
"""

from django.urls import path

from orders.api.views import OrderStatusView, SweepNowView

app_name = "orders"

urlpatterns = [
    path("sweep/", SweepNowView.as_view(), name="order-sweep"),
    path("<uuid:order_id>/", OrderStatusView.as_view(), name="order-status"),
]
