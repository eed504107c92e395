# payments/services/signature.py

"""
MERCADOPAGO WEBHOOK SIGNATURE

Headers:
    x-signature:  ts=<epoch seconds>,v1=<hex hmac>
    x-request-id: <uuid>

Manifest signed with HMAC-SHA256 and the webhook secret:
    id:<data.id>;request-id:<x-request-id>;ts:<ts>;
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time

from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 300
SIGNATURE_HEX_RE = re.compile(r"[0-9a-f]{64}")


def _secret() -> str:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = payments.get("MERCADOPAGO") or {}
    return str(cfg.get("WEBHOOK_SECRET") or "").strip()


def is_configured() -> bool:
    return bool(_secret())


def verification_enabled() -> bool:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = payments.get("MERCADOPAGO") or {}
    return bool(cfg.get("VERIFY_SIGNATURE"))


def parse_signature_header(x_signature: str | None) -> dict[str, str]:
    parts: dict[str, str] = {}
    for pair in str(x_signature or "").split(","):
        key, sep, value = pair.strip().partition("=")
        if sep:
            parts[key.strip()] = value.strip()
    return parts


def build_manifest(*, data_id: str, request_id: str, ts: str) -> str:
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


def compute_signature(*, manifest: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()


def is_valid_signature(*, x_signature: str | None, x_request_id: str | None, data_id: str | None) -> bool:
    secret = _secret()
    if not secret:
        logger.error("Webhook signature check failed: MERCADOPAGO_WEBHOOK_SECRET is not configured")
        return False

    if not x_signature or not x_request_id or not data_id:
        logger.warning("Webhook signature check failed: missing x-signature, x-request-id or data id")
        return False

    parts = parse_signature_header(x_signature)
    ts = parts.get("ts")
    v1 = parts.get("v1")
    if not ts or not v1:
        logger.warning("Webhook signature check failed: malformed x-signature header")
        return False

    # MercadoPago lowercases alphanumeric data ids in the signed manifest.
    manifest = build_manifest(data_id=str(data_id).lower(), request_id=x_request_id, ts=ts)
    expected = compute_signature(manifest=manifest, secret=secret)

    v1 = v1.lower()
    if not SIGNATURE_HEX_RE.fullmatch(v1):
        logger.warning("Webhook signature check failed: v1 is not a hex SHA-256 digest")
        return False

    valid = hmac.compare_digest(expected.encode("ascii"), v1.encode("ascii"))
    if not valid:
        logger.warning("Webhook signature mismatch", extra={"data_id": str(data_id)})
    return valid


def is_recent_timestamp(x_signature: str | None, *, max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS) -> bool:
    ts = parse_signature_header(x_signature).get("ts")
    if not ts:
        return False
    try:
        ts_value = int(ts)
    except ValueError:
        logger.warning("Webhook signature timestamp is not numeric", extra={"ts": ts})
        return False

    # Some deliveries carry milliseconds.
    if ts_value > 10**11:
        ts_value //= 1000

    age = int(time.time()) - ts_value
    if age > max_age_seconds:
        logger.warning("Webhook timestamp expired", extra={"age_seconds": age, "max_age_seconds": max_age_seconds})
        return False
    return True
