# payments/throttling.py

"""
THROTTLES

- PaymentsThrottle: per client IP, namespace "payments", ceiling
  RATE_LIMIT_REQUESTS_PER_MINUTE; counted by the shared RateLimiter.
- The webhook view has no throttle: it must always answer 200, and
  per-payment limiting happens inside the reconciler.
"""

from __future__ import annotations

from rest_framework.throttling import BaseThrottle

from payments.services.rate_limit import get_rate_limiter


class NamespaceRateThrottle(BaseThrottle):
    namespace = "api"

    def allow_request(self, request, view):
        return get_rate_limiter().allow(self.namespace, self.get_ident(request))

    def wait(self):
        return get_rate_limiter().window_seconds


class PaymentsThrottle(NamespaceRateThrottle):
    namespace = "payments"

