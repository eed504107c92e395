"""
PATH: backend/settings/base.py

BASE SETTINGS (shared by dev + prod + test)

- Orders: duplicate window, abandoned-order sweeper
- Payments: MercadoPago, webhook lock, rate limits
- Throttling (DRF scopes)
- Sentry (optional): error visibility in production
"""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import environ
from corsheaders.defaults import default_headers, default_methods

# -----------------------------------------
# BASE DIRECTORY
# -----------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# -----------------------------------------
# TEST MODE DETECTION
# -----------------------------------------
TESTING = "test" in sys.argv or "pytest" in sys.modules

# -----------------------------------------
# ENV (django-environ)
# -----------------------------------------
env = environ.Env(
    DEBUG=(bool, True),
    SECRET_KEY=(str, ""),
    TIME_ZONE=(str, "UTC"),
    ADMIN_PATH=(str, "admin/"),
    LOG_LEVEL=(str, "INFO"),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    CORS_ALLOWED_ORIGINS=(list, ["http://localhost:5173"]),
    CSRF_TRUSTED_ORIGINS=(list, ["http://localhost:5173"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    DB_TIMEOUT_SECONDS=(int, 10),
    DB_TRANSACTION_RETRIES=(int, 3),
    # Orders
    ORDERS_PENDING_AGE_MINUTES=(int, 5),
    ORDERS_DUPLICATE_WINDOW_MINUTES=(int, 5),
    ORDERS_CLEANUP_ENABLED=(bool, not TESTING),
    ORDERS_CLEANUP_INTERVAL_MS=(int, 120_000),
    ORDERS_CLEANUP_INITIAL_DELAY_MS=(int, 30_000),
    ORDERS_STALE_QUERY_FALLBACK=(bool, True),
    # Webhook lock
    WEBHOOK_LOCK_TTL_SECONDS=(int, 300),
    WEBHOOK_LOCK_FAIL_OPEN=(bool, True),
    # Rate limiter
    RATE_LIMIT_REQUESTS_PER_MINUTE=(int, 10),
    RATE_LIMIT_WEBHOOK_REQUESTS_PER_MINUTE=(int, 5),
    RATE_LIMIT_WINDOW_SECONDS=(int, 60),
    # MercadoPago
    MERCADOPAGO_ACCESS_TOKEN=(str, ""),
    MERCADOPAGO_WEBHOOK_SECRET=(str, ""),
    MERCADOPAGO_VERIFY_SIGNATURE=(bool, False),
    MERCADOPAGO_NOTIFICATION_URL=(str, ""),
    MERCADOPAGO_SUCCESS_URL=(str, ""),
    MERCADOPAGO_FAILURE_URL=(str, ""),
    MERCADOPAGO_PENDING_URL=(str, ""),
    MERCADOPAGO_TIMEOUT_SECONDS=(int, 10),
    MERCADOPAGO_PREFERENCE_EXPIRATION_MINUTES=(int, 10),
    MERCADOPAGO_CURRENCY=(str, "ARS"),
    # Throttling
    THROTTLE_ANON_RATE=(str, "60/min"),
    THROTTLE_USER_RATE=(str, "600/min"),
    THROTTLE_ORDER_POLL_RATE=(str, "120/min"),
    # Sentry (optional; enable by setting SENTRY_DSN)
    SENTRY_DSN=(str, ""),
    SENTRY_ENVIRONMENT=(str, "development"),
    SENTRY_TRACES_SAMPLE_RATE=(float, 0.0),
    SENTRY_SEND_PII=(bool, False),
)

# -----------------------------------------
# LOAD .env
# -----------------------------------------
env_file_1 = BASE_DIR / ".env"
env_file_2 = BASE_DIR.parent / ".env"

if env_file_1.exists():
    env.read_env(str(env_file_1))
elif env_file_2.exists():
    env.read_env(str(env_file_2))

# -----------------------------------------
# CORE SECURITY
# -----------------------------------------
SECRET_KEY = (env("SECRET_KEY") or "dev-insecure-change-me").strip()
DEBUG = env.bool("DEBUG")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")
ADMIN_PATH = (env("ADMIN_PATH") or "admin/").strip()

# -----------------------------------------
# I18N / TZ
# -----------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = (env("TIME_ZONE") or "UTC").strip()
USE_I18N = True
USE_TZ = True

# -----------------------------------------
# INSTALLED APPS
# -----------------------------------------
INSTALLED_APPS = [
    "corsheaders",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "prescriptions.apps.PrescriptionsConfig",
    "orders.apps.OrdersConfig",
    "payments.apps.PaymentsConfig",
]

# -----------------------------------------
# MIDDLEWARE
# -----------------------------------------
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "backend.urls"
WSGI_APPLICATION = "backend.wsgi.application"
APPEND_SLASH = True

# -----------------------------------------
# TEMPLATES (required for Django admin)
# -----------------------------------------
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [str(BASE_DIR / "templates")],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# -----------------------------------------
# REST FRAMEWORK
# -----------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("THROTTLE_ANON_RATE"),
        "user": env("THROTTLE_USER_RATE"),
        "order_poll": env("THROTTLE_ORDER_POLL_RATE"),
    },
}

# -----------------------------------------
# SIMPLE JWT
# -----------------------------------------
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
}

# -----------------------------------------
# DATABASE
# -----------------------------------------
DB_TIMEOUT_SECONDS = env.int("DB_TIMEOUT_SECONDS")
DB_TRANSACTION_RETRIES = env.int("DB_TRANSACTION_RETRIES")

DATABASES = {
    "default": env.db("DATABASE_URL"),
}


def _apply_db_timeout(db: dict, seconds: int) -> None:
    """Bound every statement / lock wait so requests fail instead of hanging."""
    engine = db.get("ENGINE", "")
    options = db.setdefault("OPTIONS", {})
    if "sqlite" in engine:
        options.setdefault("timeout", seconds)
    elif "postgresql" in engine:
        ms = seconds * 1000
        options.setdefault("options", f"-c statement_timeout={ms} -c lock_timeout={ms}")
        options.setdefault("connect_timeout", seconds)


_apply_db_timeout(DATABASES["default"], DB_TIMEOUT_SECONDS)

# -----------------------------------------
# CACHES
# -----------------------------------------
# "ratelimit" is per process on purpose: counters are advisory.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "medify-default",
    },
    "ratelimit": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "medify-ratelimit",
        "OPTIONS": {"MAX_ENTRIES": 10_000},
    },
}

# -----------------------------------------
# ORDERS
# -----------------------------------------
ORDERS_PENDING_AGE_MINUTES = env.int("ORDERS_PENDING_AGE_MINUTES")
ORDERS_DUPLICATE_WINDOW_MINUTES = env.int("ORDERS_DUPLICATE_WINDOW_MINUTES")
ORDERS_CLEANUP_ENABLED = env.bool("ORDERS_CLEANUP_ENABLED")
ORDERS_CLEANUP_INTERVAL_MS = env.int("ORDERS_CLEANUP_INTERVAL_MS")
ORDERS_CLEANUP_INITIAL_DELAY_MS = env.int("ORDERS_CLEANUP_INITIAL_DELAY_MS")
ORDERS_STALE_QUERY_FALLBACK = env.bool("ORDERS_STALE_QUERY_FALLBACK")

# -----------------------------------------
# WEBHOOK LOCK / RATE LIMIT
# -----------------------------------------
WEBHOOK_LOCK_TTL_SECONDS = env.int("WEBHOOK_LOCK_TTL_SECONDS")
WEBHOOK_LOCK_FAIL_OPEN = env.bool("WEBHOOK_LOCK_FAIL_OPEN")

RATE_LIMIT_CACHE_ALIAS = "ratelimit"
RATE_LIMIT_REQUESTS_PER_MINUTE = env.int("RATE_LIMIT_REQUESTS_PER_MINUTE")
RATE_LIMIT_WEBHOOK_REQUESTS_PER_MINUTE = env.int("RATE_LIMIT_WEBHOOK_REQUESTS_PER_MINUTE")
RATE_LIMIT_WINDOW_SECONDS = env.int("RATE_LIMIT_WINDOW_SECONDS")

# -----------------------------------------
# PAYMENTS
# -----------------------------------------
PAYMENTS = {
    "MERCADOPAGO": {
        "ACCESS_TOKEN": (env("MERCADOPAGO_ACCESS_TOKEN") or "").strip(),
        "WEBHOOK_SECRET": (env("MERCADOPAGO_WEBHOOK_SECRET") or "").strip(),
        "VERIFY_SIGNATURE": env.bool("MERCADOPAGO_VERIFY_SIGNATURE"),
        "NOTIFICATION_URL": (env("MERCADOPAGO_NOTIFICATION_URL") or "").strip(),
        "SUCCESS_URL": (env("MERCADOPAGO_SUCCESS_URL") or "").strip(),
        "FAILURE_URL": (env("MERCADOPAGO_FAILURE_URL") or "").strip(),
        "PENDING_URL": (env("MERCADOPAGO_PENDING_URL") or "").strip(),
        "TIMEOUT_SECONDS": env.int("MERCADOPAGO_TIMEOUT_SECONDS"),
        "PREFERENCE_EXPIRATION_MINUTES": env.int("MERCADOPAGO_PREFERENCE_EXPIRATION_MINUTES"),
        "CURRENCY": (env("MERCADOPAGO_CURRENCY") or "ARS").strip(),
    }
}

# -----------------------------------------
# LOGGING
# -----------------------------------------
LOG_LEVEL = (env("LOG_LEVEL") or "INFO").strip().upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "apscheduler": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}

# -----------------------------------------
# SENTRY (optional)
# -----------------------------------------
SENTRY_DSN = (env("SENTRY_DSN") or "").strip()
SENTRY_ENVIRONMENT = (env("SENTRY_ENVIRONMENT") or "development").strip()
SENTRY_TRACES_SAMPLE_RATE = float(env("SENTRY_TRACES_SAMPLE_RATE"))
SENTRY_SEND_PII = env.bool("SENTRY_SEND_PII")

if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        integrations=[DjangoIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=SENTRY_SEND_PII,
    )

# -----------------------------------------
# CORS / CSRF
# -----------------------------------------
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = list(default_methods)
CORS_ALLOW_HEADERS = list(default_headers)

CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS")

# -----------------------------------------
# STATIC FILES
# -----------------------------------------
STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# SWAGGER
# -----------------------------------------
SPECTACULAR_SETTINGS = {
    "TITLE": "Medify Backend API",
    "DESCRIPTION": "Prescription orders and MercadoPago payment reconciliation API",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}
