# prescriptions/admin.py

from django.contrib import admin

from prescriptions.models import Prescription, Quote


class QuoteInline(admin.TabularInline):
    model = Quote
    extra = 0
    readonly_fields = ("created_at",)


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ("id", "user_id", "state", "created_at", "finalized_at")
    readonly_fields = ("created_at", "updated_at", "finalized_at")
    search_fields = ("id", "user_id")
    list_filter = ("state", "created_at")
    inlines = [QuoteInline]


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ("id", "prescription", "pharmacy_name", "price", "state", "created_at")
    search_fields = ("id", "pharmacy_id", "pharmacy_name")
    list_filter = ("state",)
