# payments/admin.py

from django.contrib import admin

from payments.models import WebhookLock


@admin.register(WebhookLock)
class WebhookLockAdmin(admin.ModelAdmin):
    list_display = ("payment_id", "acquired_at", "owner_token")
    readonly_fields = ("payment_id", "acquired_at", "owner_token")
    search_fields = ("payment_id",)
    ordering = ("-acquired_at",)
