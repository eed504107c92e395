# payments/services/rate_limit.py

"""
RATE LIMITER (FIXED WINDOW)

Counts requests per "namespace:identifier" in the Django cache alias
RATE_LIMIT_CACHE_ALIAS ("ratelimit", LocMemCache: per process, thread-safe,
per-key expiry).

- The first hit of a window creates the counter with a
  RATE_LIMIT_WINDOW_SECONDS timeout; later hits increment it.
- Once the count exceeds the namespace ceiling, allow() returns False
  until the key expires.
- Advisory only: any cache failure lets the request through.

Ceilings:
- "webhook" namespace  -> RATE_LIMIT_WEBHOOK_REQUESTS_PER_MINUTE (per payment id)
- everything else      -> RATE_LIMIT_REQUESTS_PER_MINUTE
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.cache import caches

logger = logging.getLogger(__name__)

WEBHOOK_NAMESPACE = "webhook"
KEY_PREFIX = "rl"


class RateLimiter:
    def __init__(
        self,
        *,
        cache_alias: str | None = None,
        window_seconds: int | None = None,
        default_limit: int | None = None,
        webhook_limit: int | None = None,
    ):
        self.cache_alias = cache_alias or getattr(settings, "RATE_LIMIT_CACHE_ALIAS", "ratelimit")
        self.window_seconds = int(
            window_seconds or getattr(settings, "RATE_LIMIT_WINDOW_SECONDS", 60)
        )
        self.default_limit = int(
            default_limit or getattr(settings, "RATE_LIMIT_REQUESTS_PER_MINUTE", 10)
        )
        self.webhook_limit = int(
            webhook_limit or getattr(settings, "RATE_LIMIT_WEBHOOK_REQUESTS_PER_MINUTE", 5)
        )

    @property
    def cache(self):
        return caches[self.cache_alias]

    def limit_for(self, namespace: str) -> int:
        if namespace == WEBHOOK_NAMESPACE:
            return self.webhook_limit
        return self.default_limit

    def _key(self, namespace: str, identifier: str) -> str:
        return f"{KEY_PREFIX}:{namespace}:{identifier}"

    def _hit(self, key: str) -> int:
        cache = self.cache
        if cache.add(key, 1, timeout=self.window_seconds):
            return 1
        try:
            return cache.incr(key)
        except ValueError:
            # Window expired between add() and incr(): start a new one.
            if cache.add(key, 1, timeout=self.window_seconds):
                return 1
            return cache.incr(key)

    def allow(self, namespace: str, identifier) -> bool:
        namespace = str(namespace or "global").strip() or "global"
        identifier = str(identifier or "").strip() or "anonymous"
        limit = self.limit_for(namespace)

        try:
            count = self._hit(self._key(namespace, identifier))
        except Exception:
            logger.exception(
                "Rate limiter unavailable, allowing request",
                extra={"namespace": namespace, "identifier": identifier},
            )
            return True

        if count > limit:
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "namespace": namespace,
                    "identifier": identifier,
                    "count": count,
                    "limit": limit,
                    "window_seconds": self.window_seconds,
                },
            )
            return False

        if limit > 2 and count == limit - 2:
            logger.info(
                "Approaching rate limit",
                extra={"namespace": namespace, "identifier": identifier, "count": count, "limit": limit},
            )

        return True

    def allow_webhook(self, payment_id) -> bool:
        return self.allow(WEBHOOK_NAMESPACE, payment_id)

    def reset(self, namespace: str, identifier) -> None:
        self.cache.delete(self._key(namespace, str(identifier)))


_default_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Process-wide instance built from settings."""
    global _default_limiter
    if _default_limiter is None:
        _default_limiter = RateLimiter()
    return _default_limiter


def reset_rate_limiter() -> None:
    """Drop the process-wide instance (settings overrides in tests)."""
    global _default_limiter
    _default_limiter = None
