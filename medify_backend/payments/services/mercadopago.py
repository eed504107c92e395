# payments/services/mercadopago.py

"""
MERCADOPAGO REST CLIENT

Two calls are needed:
- POST /checkout/preferences   create the hosted checkout for an order
- GET  /v1/payments/<id>       authoritative payment status

Config: settings.PAYMENTS["MERCADOPAGO"] (see backend/settings/base.py).
Every call has a timeout (MERCADOPAGO_TIMEOUT_SECONDS); every failure is
raised as PaymentProviderError.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from django.conf import settings

from orders.services.money import quantize_money
from payments.services.exceptions import (
    PaymentProviderError,
    PaymentProviderNotConfigured,
)

logger = logging.getLogger(__name__)

MERCADOPAGO_BASE = "https://api.mercadopago.com"


@dataclass(frozen=True)
class PreferenceResult:
    id: str
    init_point: str
    sandbox_init_point: str = ""


@dataclass(frozen=True)
class ProviderPayment:
    id: str
    status: str
    status_detail: str = ""
    external_reference: str = ""
    metadata: dict = field(default_factory=dict)
    transaction_amount: Decimal | None = None
    currency: str = ""
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "status_detail": self.status_detail,
            "external_reference": self.external_reference,
            "metadata": self.metadata,
            "transaction_amount": (
                str(self.transaction_amount) if self.transaction_amount is not None else None
            ),
            "currency": self.currency,
        }


def _cfg() -> dict:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = payments.get("MERCADOPAGO") if isinstance(payments, dict) else None
    return cfg if isinstance(cfg, dict) else {}


def _get_access_token() -> str:
    token = str(_cfg().get("ACCESS_TOKEN") or "").strip()
    if not token:
        raise PaymentProviderNotConfigured(
            "MERCADOPAGO ACCESS_TOKEN is not configured. "
            "Expected settings.PAYMENTS['MERCADOPAGO']['ACCESS_TOKEN'] (env MERCADOPAGO_ACCESS_TOKEN)."
        )
    return token


def is_configured() -> bool:
    return bool(str(_cfg().get("ACCESS_TOKEN") or "").strip())


def _timeout() -> int:
    return int(_cfg().get("TIMEOUT_SECONDS") or 10)


def _money(v) -> Decimal | None:
    if v is None or v == "":
        return None
    try:
        return quantize_money(v)
    except (InvalidOperation, ValueError, TypeError):
        logger.warning("Invalid money value from provider", extra={"value": v})
        return None


def _safe_preview(text: str, limit: int = 800) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


def _parse_json_or_text(raw: str) -> dict[str, Any]:
    raw = raw or ""
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {"kind": "text", "raw": raw}
    if isinstance(parsed, dict):
        return {"kind": "json", "json": parsed, "raw": raw}
    return {"kind": "json_non_object", "json": parsed, "raw": raw}


def _request_json(
    method: str,
    path: str,
    *,
    body: dict | None = None,
    idempotency_key: str = "",
) -> dict[str, Any]:
    token = _get_access_token()
    data = None
    if body is not None:
        data = json.dumps(body, ensure_ascii=False, default=str).encode("utf-8")

    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if idempotency_key:
        headers["X-Idempotency-Key"] = idempotency_key

    req = Request(f"{MERCADOPAGO_BASE}{path}", data=data, headers=headers, method=method)

    try:
        with urlopen(req, timeout=_timeout()) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
            parsed_any = _parse_json_or_text(raw)
    except HTTPError as e:
        try:
            raw = e.read().decode("utf-8", errors="replace")
        except (OSError, AttributeError):
            raw = ""
        parsed_any = _parse_json_or_text(raw)

        if parsed_any.get("kind") == "json":
            j = parsed_any.get("json") or {}
            msg = j.get("message") or j.get("error") or "MercadoPago rejected request"
            raise PaymentProviderError(f"MercadoPago HTTPError: {e.code} {msg}", status_code=e.code) from e

        preview = _safe_preview(parsed_any.get("raw") or str(e))
        raise PaymentProviderError(f"MercadoPago HTTPError: {e.code} {preview}", status_code=e.code) from e
    except URLError as e:
        raise PaymentProviderError(f"MercadoPago URLError: {e.reason}") from e
    except (TimeoutError, OSError) as e:
        raise PaymentProviderError(f"MercadoPago request failed: {e}") from e

    if parsed_any.get("kind") != "json":
        raise PaymentProviderError(
            f"MercadoPago returned non-JSON: {_safe_preview(parsed_any.get('raw') or '')}"
        )

    return parsed_any.get("json") or {}


def _expiration_window(now: datetime | None = None) -> tuple[str, str]:
    minutes = int(_cfg().get("PREFERENCE_EXPIRATION_MINUTES") or 10)
    start = now or datetime.now(timezone.utc)
    end = start + timedelta(minutes=minutes)
    return (
        start.isoformat(timespec="milliseconds"),
        end.isoformat(timespec="milliseconds"),
    )


def build_preference_payload(
    *,
    order_id: str,
    prescription_id: str,
    quote_id: str,
    pharmacy_id: str,
    user_id: str,
    price: Decimal,
    pharmacy_name: str,
    description: str = "",
    image_url: str = "",
) -> dict:
    cfg = _cfg()
    expires_from, expires_to = _expiration_window()

    item = {
        "id": str(prescription_id),
        "title": pharmacy_name or "Prescription",
        "description": description or "",
        "category_id": "health",
        "quantity": 1,
        "currency_id": cfg.get("CURRENCY") or "ARS",
        "unit_price": float(price),
    }
    if image_url:
        item["picture_url"] = image_url

    payload: dict = {
        "items": [item],
        "external_reference": str(order_id),
        "metadata": {
            "order_id": str(order_id),
            "prescription_id": str(prescription_id),
            "quote_id": str(quote_id),
            "pharmacy_id": str(pharmacy_id),
            "user_id": str(user_id),
        },
        "expires": True,
        "expiration_date_from": expires_from,
        "expiration_date_to": expires_to,
        "statement_descriptor": f"MEDIFY - {pharmacy_name}"[:22] if pharmacy_name else "MEDIFY",
    }

    back_urls = {
        key: str(cfg.get(setting) or "").strip()
        for key, setting in (
            ("success", "SUCCESS_URL"),
            ("failure", "FAILURE_URL"),
            ("pending", "PENDING_URL"),
        )
        if str(cfg.get(setting) or "").strip()
    }
    if back_urls:
        payload["back_urls"] = back_urls

    notification_url = str(cfg.get("NOTIFICATION_URL") or "").strip()
    if notification_url:
        payload["notification_url"] = notification_url

    return payload


def create_preference(
    *,
    order_id: str,
    prescription_id: str,
    quote_id: str,
    pharmacy_id: str,
    user_id: str,
    price: Decimal,
    pharmacy_name: str,
    description: str = "",
    image_url: str = "",
) -> PreferenceResult:
    payload = build_preference_payload(
        order_id=order_id,
        prescription_id=prescription_id,
        quote_id=quote_id,
        pharmacy_id=pharmacy_id,
        user_id=user_id,
        price=price,
        pharmacy_name=pharmacy_name,
        description=description,
        image_url=image_url,
    )
    logger.debug("Creating MercadoPago preference", extra={"order_id": str(order_id), "payload": payload})

    # One preference per order: a retried request must not create a second one.
    parsed = _request_json(
        "POST",
        "/checkout/preferences",
        body=payload,
        idempotency_key=f"preference-{order_id}",
    )

    pref_id = str(parsed.get("id") or "").strip()
    init_point = str(parsed.get("init_point") or "").strip()
    if not pref_id or not init_point:
        raise PaymentProviderError("MercadoPago preference response missing id/init_point")

    logger.info(
        "MercadoPago preference created",
        extra={"order_id": str(order_id), "preference_id": pref_id, "price": str(price)},
    )
    return PreferenceResult(
        id=pref_id,
        init_point=init_point,
        sandbox_init_point=str(parsed.get("sandbox_init_point") or ""),
    )


def get_payment(payment_id) -> ProviderPayment:
    pid = str(payment_id or "").strip()
    if not pid:
        raise PaymentProviderError("payment_id is required")

    raw = _request_json("GET", f"/v1/payments/{quote(pid, safe='')}")

    metadata = raw.get("metadata")
    return ProviderPayment(
        id=str(raw.get("id") or pid),
        status=str(raw.get("status") or "").strip().lower(),
        status_detail=str(raw.get("status_detail") or ""),
        external_reference=str(raw.get("external_reference") or "").strip(),
        metadata=metadata if isinstance(metadata, dict) else {},
        transaction_amount=_money(raw.get("transaction_amount")),
        currency=str(raw.get("currency_id") or ""),
        raw=raw,
    )
