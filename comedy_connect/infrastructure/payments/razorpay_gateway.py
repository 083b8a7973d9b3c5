# comedy_connect/infrastructure/payments/razorpay_gateway.py

import logging

import razorpay

from comedy_connect.domain.exceptions import (
    ConfigurationError,
    PaymentGatewayError,
    UnauthorizedError,
)
from comedy_connect.settings import Settings


logger = logging.getLogger(__name__)


class RazorpayGateway:
    """Thin wrapper over the Razorpay SDK for order creation and webhook checks."""

    provider = "RAZORPAY"

    def __init__(
        self,
        key_id: str | None,
        key_secret: str | None,
        webhook_secret: str | None,
        currency: str = "INR",
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.currency = currency
        self._client: razorpay.Client | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            webhook_secret=settings.razorpay_webhook_secret,
            currency=settings.currency,
        )

    @property
    def client(self) -> razorpay.Client:
        if self._client is None:
            self._client = razorpay.Client(
                auth=(self.key_id or "", self.key_secret or "")
            )
        return self._client

    def create_order(self, amount: int, receipt: str) -> str:
        if not self.key_id or not self.key_secret:
            raise ConfigurationError(
                "Razorpay keys not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )

        try:
            order = self.client.order.create(
                {
                    "amount": amount,
                    "currency": self.currency,
                    "receipt": receipt,
                }
            )
        except Exception as exc:
            logger.exception("Razorpay order creation failed for receipt %s", receipt)
            raise PaymentGatewayError("Could not create payment order") from exc

        order_id = order.get("id")
        if not order_id:
            raise PaymentGatewayError("Payment gateway returned an order without id")
        return order_id

    def verify_webhook_signature(self, raw_body: bytes, signature: str | None) -> None:
        """
        Fails closed: a missing secret, a missing header or a mismatch all
        raise UnauthorizedError.
        """
        if not signature:
            raise UnauthorizedError("Missing webhook signature")
        if not self.webhook_secret:
            logger.error("RAZORPAY_WEBHOOK_SECRET is not configured; rejecting webhook")
            raise UnauthorizedError("Webhook signature cannot be verified")

        try:
            body = raw_body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise UnauthorizedError("Invalid webhook signature") from exc

        try:
            self.client.utility.verify_webhook_signature(
                body,
                signature,
                self.webhook_secret,
            )
        except razorpay.errors.SignatureVerificationError as exc:
            raise UnauthorizedError("Invalid webhook signature") from exc
