# orders/admin.py

from django.contrib import admin

from orders.models import Order


# ======================================================
# ORDER ADMIN
# ======================================================


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-mostly: state changes go through orders.services.order_store.
    """

    list_display = (
        "id",
        "state",
        "price",
        "user_id",
        "pharmacy_id",
        "payment_id",
        "created_at",
        "paid_at",
    )
    readonly_fields = (
        "id",
        "user_id",
        "pharmacy_id",
        "prescription",
        "quote",
        "price",
        "state",
        "payment_id",
        "provider_status",
        "created_at",
        "paid_at",
        "closed_at",
        "updated_at",
    )
    search_fields = ("id", "user_id", "payment_id", "pharmacy_id")
    list_filter = ("state", "created_at")
    ordering = ("-created_at",)
