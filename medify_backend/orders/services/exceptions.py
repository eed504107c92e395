# orders/services/exceptions.py

"""
ORDER SERVICE ERRORS

Centralized domain errors for order services.
"""


class OrderServiceError(Exception):
    """Base exception for all order service failures."""


class OrderValidationError(OrderServiceError):
    """Raised on malformed or missing input. No side effects happened."""


class CheckoutNotFoundError(OrderServiceError):
    """Raised when the prescription or quote behind a checkout does not exist."""


class DuplicateOrderError(OrderServiceError):
    """
    Raised when a paid or still-fresh pending order already exists
    for the same (user, prescription) pair.
    """

    def __init__(self, message: str, *, order_id=None, retry_after_seconds: int | None = None):
        super().__init__(message)
        self.order_id = order_id
        self.retry_after_seconds = retry_after_seconds


class TransientInfraError(OrderServiceError):
    """Raised when the database keeps failing (conflicts, timeouts) after retries."""
