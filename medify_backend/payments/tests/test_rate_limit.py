from unittest import mock

from django.core.cache import caches
from django.test import SimpleTestCase, override_settings

from payments.services.rate_limit import RateLimiter, get_rate_limiter, reset_rate_limiter


class RateLimiterTests(SimpleTestCase):
    """
    GUARANTEES:
    - Fixed window: the (limit + 1)th hit inside a window is refused
    - Counters are independent per namespace and identifier
    - "webhook" uses its own ceiling
    - Cache failures never block a request
    """

    def setUp(self):
        caches["ratelimit"].clear()
        self.limiter = RateLimiter(window_seconds=60, default_limit=3, webhook_limit=2)

    def test_allows_up_to_limit_then_refuses(self):
        results = [self.limiter.allow("payments", "10.0.0.1") for _ in range(4)]

        self.assertEqual(results, [True, True, True, False])

    def test_identifiers_are_independent(self):
        for _ in range(3):
            self.limiter.allow("payments", "10.0.0.1")

        self.assertFalse(self.limiter.allow("payments", "10.0.0.1"))
        self.assertTrue(self.limiter.allow("payments", "10.0.0.2"))
        self.assertTrue(self.limiter.allow("orders", "10.0.0.1"))

    def test_webhook_namespace_has_its_own_limit(self):
        results = [self.limiter.allow_webhook("123") for _ in range(3)]

        self.assertEqual(results, [True, True, False])
        self.assertTrue(self.limiter.allow_webhook("456"))

    def test_reset_starts_a_new_window(self):
        for _ in range(4):
            self.limiter.allow("payments", "10.0.0.1")

        self.limiter.reset("payments", "10.0.0.1")

        self.assertTrue(self.limiter.allow("payments", "10.0.0.1"))

    def test_expired_counter_starts_a_new_window(self):
        with mock.patch.object(self.limiter, "_key", return_value="rl:payments:expiring"):
            for _ in range(4):
                self.limiter.allow("payments", "10.0.0.1")
            caches["ratelimit"].delete("rl:payments:expiring")

            self.assertTrue(self.limiter.allow("payments", "10.0.0.1"))

    def test_cache_failure_fails_open(self):
        with mock.patch.object(RateLimiter, "_hit", side_effect=RuntimeError("cache down")):
            for _ in range(10):
                self.assertTrue(self.limiter.allow("payments", "10.0.0.1"))

    def test_logs_when_approaching_limit(self):
        limiter = RateLimiter(window_seconds=60, default_limit=5, webhook_limit=5)

        with self.assertLogs("payments.services.rate_limit", level="INFO") as logs:
            for _ in range(3):
                limiter.allow("payments", "10.0.0.9")

        self.assertTrue(any("Approaching rate limit" in line for line in logs.output))

    def test_limit_for_namespaces(self):
        self.assertEqual(self.limiter.limit_for("webhook"), 2)
        self.assertEqual(self.limiter.limit_for("payments"), 3)


class DefaultLimiterTests(SimpleTestCase):
    def tearDown(self):
        reset_rate_limiter()

    @override_settings(RATE_LIMIT_REQUESTS_PER_MINUTE=7, RATE_LIMIT_WEBHOOK_REQUESTS_PER_MINUTE=4)
    def test_default_limiter_reads_settings(self):
        reset_rate_limiter()

        limiter = get_rate_limiter()

        self.assertIs(limiter, get_rate_limiter())
        self.assertEqual(limiter.default_limit, 7)
        self.assertEqual(limiter.webhook_limit, 4)
        self.assertEqual(limiter.cache_alias, "ratelimit")
