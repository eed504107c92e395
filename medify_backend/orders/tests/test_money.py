from decimal import Decimal, InvalidOperation

from django.test import SimpleTestCase

from orders.services import money, order_store
from orders.services.exceptions import OrderValidationError
from payments.services import mercadopago


class QuantizeMoneyTests(SimpleTestCase):
    """
    GUARANTEES:
    - Amounts round half-up to cents
    - Order prices and provider amounts share one rounding rule
    """

    def test_rounds_half_up_to_cents(self):
        self.assertEqual(money.quantize_money("10.005"), Decimal("10.01"))
        self.assertEqual(money.quantize_money(1500), Decimal("1500.00"))
        self.assertEqual(money.quantize_money(Decimal("0.004")), Decimal("0.00"))

    def test_junk_raises(self):
        with self.assertRaises(InvalidOperation):
            money.quantize_money("abc")

    def test_order_store_and_provider_round_the_same(self):
        for raw in ("99.995", "1500", "0.015"):
            self.assertEqual(order_store._money(raw), mercadopago._money(raw))

        with self.assertRaises(OrderValidationError):
            order_store._money("abc")
        self.assertIsNone(mercadopago._money("abc"))
