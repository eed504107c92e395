# payments/services/exceptions.py

"""
PAYMENT SERVICE ERRORS
"""


class PaymentServiceError(Exception):
    """Base exception for all payment service failures."""


class PaymentProviderNotConfigured(PaymentServiceError):
    """Raised when MERCADOPAGO_ACCESS_TOKEN is missing."""


class PaymentProviderError(PaymentServiceError):
    """
    Raised on provider HTTP/transport failures (timeouts, 4xx/5xx,
    non-JSON bodies). Retryable.
    """

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PaymentProcessingError(PaymentServiceError):
    """Raised when a payment could not be reconciled; the provider will notify again."""
