"""Domain exceptions raised by services and rendered by the API layer.

Services never raise ``HTTPException`` directly; each exception carries the
status code the exception handler in ``app.main`` should answer with.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code: int = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(StorefrontError):
    """A request field is missing or malformed."""

    status_code = 400


class NotFound(StorefrontError):
    status_code = 404


class InvalidTransitionError(StorefrontError):
    """An order event is not allowed from the order's current state."""

    status_code = 409

    def __init__(self, event: str, status: str, payment_status: str):
        super().__init__(
            f"Cannot apply '{event}' to an order in state {status}/{payment_status}"
        )
        self.event = event
        self.status = status
        self.payment_status = payment_status


class SignatureMismatch(StorefrontError):
    """A payment or webhook signature failed verification."""

    status_code = 400


class UpstreamError(StorefrontError):
    """A call to the payment gateway or storage service failed."""

    status_code = 502


class NotConfigured(StorefrontError):
    """An optional integration has no credentials configured."""

    status_code = 503
