# payments/apps.py

"""
PAYMENTS APP CONFIG

MercadoPago checkout and webhook reconciliation:
- preference creation (order first, provider second, compensating delete)
- webhook intake guarded by rate limit + per-payment lock
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
