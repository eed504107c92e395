# payments/urls.py

"""
PAYMENTS API URLS

Base path (mounted in backend/urls.py):
    /api/payments/

- POST /api/payments/preference/
- POST /api/payments/webhook/
- GET  /api/payments/verify/<payment_id>/
- GET  /api/payments/health/
"""

from __future__ import annotations

from django.urls import path

from payments.views.preference import PreferenceCreateView
from payments.views.status import PaymentsHealthView, PaymentVerifyView
from payments.views.webhook import MercadoPagoWebhookView

app_name = "payments"

urlpatterns = [
    path("preference/", PreferenceCreateView.as_view(), name="payment-preference"),
    path("webhook/", MercadoPagoWebhookView.as_view(), name="mercadopago-webhook"),
    path("verify/<str:payment_id>/", PaymentVerifyView.as_view(), name="payment-verify"),
    path("health/", PaymentsHealthView.as_view(), name="payments-health"),
]
