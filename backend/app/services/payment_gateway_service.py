"""Payment Gateway Service - Razorpay-compatible REST integration.

Provides:
- Gateway order creation (the order the hosted checkout is opened against)
- Checkout callback signature verification (``order_ref|payment_ref``)
- Webhook signature verification and event parsing

The service is constructed from settings and handed to routes through the
``get_payment_gateway`` dependency so tests can swap in a fake.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from app.core.config import Settings, settings
from app.core.exceptions import NotConfigured, SignatureMismatch, UpstreamError, ValidationFailed
from app.core.security import verify_hmac_signature

logger = logging.getLogger(__name__)

# Events the storefront reacts to; everything else is acknowledged and ignored
CAPTURED_EVENTS = ("payment.captured", "order.paid")
FAILED_EVENTS = ("payment.failed",)

SIGNATURE_HEADER = "X-Razorpay-Signature"


class PaymentGatewayService:
    """Thin client for the payment gateway's order and signature APIs."""

    def __init__(
        self,
        key_id: str = "",
        key_secret: str = "",
        webhook_secret: str = "",
        api_base_url: str = "https://api.razorpay.com/v1",
        currency: str = "INR",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._key_id = key_id
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret
        self.api_base_url = api_base_url.rstrip("/")
        self.currency = currency
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Settings) -> "PaymentGatewayService":
        return cls(
            key_id=config.gateway_key_id,
            key_secret=config.gateway_key_secret,
            webhook_secret=config.gateway_webhook_secret,
            api_base_url=config.gateway_api_base_url,
            currency=config.gateway_currency,
            timeout=config.gateway_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._key_id and self._key_secret)

    @property
    def key_id(self) -> str:
        return self._key_id

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise NotConfigured(
                "Payment gateway is not configured. Set GATEWAY_KEY_ID and GATEWAY_KEY_SECRET."
            )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_gateway_order(
        self,
        amount: Decimal,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Create a gateway order for ``amount`` (in rupees).

        The gateway works in minor units, so the amount is sent in paise.
        Returns the gateway's order object (``id``, ``amount``, ``currency``...).
        """
        self._require_configured()
        amount_minor = int((Decimal(str(amount)) * 100).to_integral_value())
        if amount_minor <= 0:
            raise ValidationFailed("Payment amount must be greater than zero")

        payload = {
            "amount": amount_minor,
            "currency": self.currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            with httpx.Client(
                base_url=self.api_base_url,
                auth=(self._key_id, self._key_secret),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = client.post("/orders", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Gateway order creation failed for {receipt}: {e}")
            raise UpstreamError("Failed to create payment order") from e

        if response.status_code not in (200, 201):
            logger.error(
                f"Gateway rejected order {receipt}: {response.status_code} {response.text[:300]}"
            )
            raise UpstreamError("Failed to create payment order")

        data = response.json()
        logger.info(f"Created gateway order {data.get('id')} for receipt {receipt}")
        return data

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def verify_payment_signature(
        self,
        gateway_order_ref: str,
        gateway_payment_ref: str,
        signature: Optional[str],
    ) -> bool:
        """Check the checkout callback signature.

        The gateway signs ``"<order_ref>|<payment_ref>"`` with the key secret.
        A mismatch is reported as False, never raised.
        """
        self._require_configured()
        message = f"{gateway_order_ref}|{gateway_payment_ref}"
        return verify_hmac_signature(message, self._key_secret, signature)

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify and parse a webhook delivery.

        The signature covers the raw request body, so it is checked before
        the payload is parsed. Returns ``event_type``, ``gateway_order_ref``
        and ``gateway_payment_ref``.
        """
        if not self._webhook_secret:
            raise NotConfigured("Webhook secret is not configured")
        if not verify_hmac_signature(payload, self._webhook_secret, signature):
            logger.warning("Webhook signature verification failed")
            raise SignatureMismatch("Invalid signature")

        try:
            event = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationFailed(f"Invalid payload: {e}") from e
        if not isinstance(event, dict):
            raise ValidationFailed("Invalid payload: expected a JSON object")

        payment = (event.get("payload") or {}).get("payment") or {}
        entity = payment.get("entity") or {}
        if not entity:
            order_entity = ((event.get("payload") or {}).get("order") or {}).get("entity") or {}
            entity = {"order_id": order_entity.get("id")}

        return {
            "event_type": event.get("event"),
            "gateway_order_ref": entity.get("order_id"),
            "gateway_payment_ref": entity.get("id"),
        }


def get_payment_gateway() -> PaymentGatewayService:
    """FastAPI dependency building the gateway client from settings."""
    return PaymentGatewayService.from_settings(settings)
