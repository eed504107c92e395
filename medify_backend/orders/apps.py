# orders/apps.py

"""
ORDERS APP CONFIG

Order lifecycle:
- checkout creates PENDING_PAYMENT orders (duplicate suppressed)
- payment reconciliation settles them
- the background sweeper abandons the ones nobody paid
"""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "orders"
    verbose_name = "Orders"

    def ready(self):
        from orders.services.scheduler import start_scheduler_if_enabled

        start_scheduler_if_enabled()
