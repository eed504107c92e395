# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS
- in-memory SQLite
- no background scheduler
- fake provider credentials (tests patch the HTTP client)
"""

from __future__ import annotations

from .base import *  # noqa: F403

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
        "OPTIONS": {"timeout": 10},
    }
}

ORDERS_CLEANUP_ENABLED = False

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

PAYMENTS = {
    "MERCADOPAGO": {
        "ACCESS_TOKEN": "TEST-access-token",
        "WEBHOOK_SECRET": "test-webhook-secret",
        "VERIFY_SIGNATURE": False,
        "NOTIFICATION_URL": "https://api.example.test/api/payments/webhook/",
        "SUCCESS_URL": "https://app.example.test/checkout/success",
        "FAILURE_URL": "https://app.example.test/checkout/failure",
        "PENDING_URL": "https://app.example.test/checkout/pending",
        "TIMEOUT_SECONDS": 5,
        "PREFERENCE_EXPIRATION_MINUTES": 10,
        "CURRENCY": "ARS",
    }
}

LOGGING["root"]["level"] = "CRITICAL"  # noqa: F405
