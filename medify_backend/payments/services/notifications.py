# payments/services/notifications.py

"""
WEBHOOK PAYLOAD PARSING

The raw body is a loose JSON object. It is converted once into a
PaymentNotification; nothing past this module reads the raw dict.
"""

from __future__ import annotations

from dataclasses import dataclass

PAYMENT_TYPE = "payment"


@dataclass(frozen=True)
class PaymentNotification:
    type: str
    payment_id: str | None
    action: str = ""

    @property
    def is_payment(self) -> bool:
        return self.type == PAYMENT_TYPE


def _text(value) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def parse_notification(payload) -> PaymentNotification:
    if not isinstance(payload, dict):
        return PaymentNotification(type="", payment_id=None)

    data = payload.get("data")
    payment_id = _text(data.get("id")) if isinstance(data, dict) else None

    return PaymentNotification(
        type=(_text(payload.get("type")) or "").lower(),
        payment_id=payment_id,
        action=_text(payload.get("action")) or "",
    )


def extract_data_id(payload) -> str | None:
    """
    Id used in the signature manifest:
    data.id, else the last path segment of "resource", else the root "id".
    """
    if not isinstance(payload, dict):
        return None

    data = payload.get("data")
    if isinstance(data, dict):
        data_id = _text(data.get("id"))
        if data_id:
            return data_id

    resource = payload.get("resource")
    if isinstance(resource, str):
        last = resource.rstrip("/").rsplit("/", 1)[-1].strip()
        if last:
            return last

    return _text(payload.get("id"))
