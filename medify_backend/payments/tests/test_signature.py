import time

from django.test import SimpleTestCase, override_settings

from payments.services import signature
from payments.services.notifications import extract_data_id, parse_notification

SECRET = "test-webhook-secret"


def signed_header(*, data_id, request_id, ts=None, secret=SECRET):
    ts = str(ts if ts is not None else int(time.time()))
    manifest = signature.build_manifest(data_id=data_id, request_id=request_id, ts=ts)
    return f"ts={ts},v1={signature.compute_signature(manifest=manifest, secret=secret)}"


class SignatureTests(SimpleTestCase):
    def test_manifest_format(self):
        self.assertEqual(
            signature.build_manifest(data_id="123", request_id="req-1", ts="1700000000"),
            "id:123;request-id:req-1;ts:1700000000;",
        )

    def test_parse_header(self):
        parts = signature.parse_signature_header("ts=1700000000, v1=abcdef")

        self.assertEqual(parts, {"ts": "1700000000", "v1": "abcdef"})
        self.assertEqual(signature.parse_signature_header(None), {})

    def test_valid_signature(self):
        header = signed_header(data_id="123", request_id="req-1")

        self.assertTrue(signature.is_valid_signature(x_signature=header, x_request_id="req-1", data_id="123"))

    def test_alphanumeric_data_id_is_signed_lowercase(self):
        header = signed_header(data_id="abc123", request_id="req-1")

        self.assertTrue(
            signature.is_valid_signature(x_signature=header, x_request_id="req-1", data_id="ABC123")
        )

    def test_tampered_values_are_rejected(self):
        header = signed_header(data_id="123", request_id="req-1")

        self.assertFalse(signature.is_valid_signature(x_signature=header, x_request_id="req-2", data_id="123"))
        self.assertFalse(signature.is_valid_signature(x_signature=header, x_request_id="req-1", data_id="124"))

    def test_wrong_secret_is_rejected(self):
        header = signed_header(data_id="123", request_id="req-1", secret="other")

        self.assertFalse(signature.is_valid_signature(x_signature=header, x_request_id="req-1", data_id="123"))

    def test_missing_or_malformed_headers_are_rejected(self):
        self.assertFalse(signature.is_valid_signature(x_signature=None, x_request_id="req-1", data_id="123"))
        self.assertFalse(signature.is_valid_signature(x_signature="ts=1", x_request_id="req-1", data_id="123"))
        self.assertFalse(signature.is_valid_signature(x_signature="v1=aa", x_request_id=None, data_id="123"))

    def test_non_hex_v1_is_rejected_not_raised(self):
        self.assertFalse(
            signature.is_valid_signature(x_signature="ts=1700000000,v1=éé", x_request_id="req-1", data_id="123")
        )
        self.assertFalse(
            signature.is_valid_signature(x_signature="ts=1700000000,v1=zz", x_request_id="req-1", data_id="123")
        )

    @override_settings(PAYMENTS={"MERCADOPAGO": {"WEBHOOK_SECRET": ""}})
    def test_missing_secret_rejects_everything(self):
        header = signed_header(data_id="123", request_id="req-1")

        self.assertFalse(signature.is_configured())
        self.assertFalse(signature.is_valid_signature(x_signature=header, x_request_id="req-1", data_id="123"))

    def test_timestamp_freshness(self):
        now = int(time.time())

        self.assertTrue(signature.is_recent_timestamp(f"ts={now},v1=x"))
        self.assertTrue(signature.is_recent_timestamp(f"ts={now * 1000},v1=x"))
        self.assertFalse(signature.is_recent_timestamp(f"ts={now - 301},v1=x"))
        self.assertFalse(signature.is_recent_timestamp("ts=yesterday,v1=x"))
        self.assertFalse(signature.is_recent_timestamp("v1=x"))


class NotificationParsingTests(SimpleTestCase):
    def test_parse_payment_notification(self):
        n = parse_notification({"type": "Payment", "action": "payment.created", "data": {"id": 123}})

        self.assertTrue(n.is_payment)
        self.assertEqual(n.payment_id, "123")
        self.assertEqual(n.action, "payment.created")

    def test_parse_other_shapes(self):
        self.assertFalse(parse_notification({"type": "merchant_order"}).is_payment)
        self.assertIsNone(parse_notification({"type": "payment", "data": "123"}).payment_id)
        self.assertEqual(parse_notification("not a dict").type, "")

    def test_extract_data_id_sources(self):
        self.assertEqual(extract_data_id({"data": {"id": "123"}, "id": "999"}), "123")
        self.assertEqual(
            extract_data_id({"resource": "https://api.mercadopago.com/v1/payments/456"}), "456"
        )
        self.assertEqual(extract_data_id({"resource": "/merchant_orders/789/"}), "789")
        self.assertEqual(extract_data_id({"id": 42}), "42")
        self.assertIsNone(extract_data_id({"data": {}}))
        self.assertIsNone(extract_data_id(None))
