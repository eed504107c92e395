# prescriptions/apps.py

"""
PRESCRIPTIONS APP CONFIG

Prescriptions and the pharmacy quotes answering them.
Orders read both during checkout and finalize the prescription on payment.
"""

from django.apps import AppConfig


class PrescriptionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "prescriptions"
    verbose_name = "Prescriptions"
