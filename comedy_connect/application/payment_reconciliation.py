# comedy_connect/application/payment_reconciliation.py

from dataclasses import dataclass
import hashlib
import json
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from comedy_connect.application.booking_service import BookingService
from comedy_connect.domain.exceptions import ValidationError
from comedy_connect.infrastructure.payments.razorpay_gateway import RazorpayGateway
from comedy_connect.infrastructure.repositories.webhook_event_repository import (
    WebhookEventRepository,
)


logger = logging.getLogger(__name__)


PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"


@dataclass(frozen=True)
class WebhookOutcome:
    event: str
    action: str
    order_id: str | None = None
    booking_id: str | None = None


@dataclass(frozen=True)
class _PaymentEvent:
    event: str
    payment_id: str
    order_id: str


def _parse_payment_event(raw_body: bytes) -> tuple[str, _PaymentEvent | None]:
    try:
        payload = json.loads(raw_body)
    except (UnicodeDecodeError, ValueError) as exc:
        raise ValidationError("Webhook body is not valid JSON") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
        raise ValidationError("Webhook body has no event")

    event = payload["event"]
    if event not in {PAYMENT_CAPTURED, PAYMENT_FAILED}:
        return event, None

    try:
        entity = payload["payload"]["payment"]["entity"]
        payment_id = entity["id"]
        order_id = entity["order_id"]
    except (KeyError, TypeError) as exc:
        raise ValidationError("Webhook payment entity is malformed") from exc

    if not isinstance(payment_id, str) or not isinstance(order_id, str):
        raise ValidationError("Webhook payment entity is malformed")

    return event, _PaymentEvent(event=event, payment_id=payment_id, order_id=order_id)


class PaymentReconciliation:
    """
    Applies verified gateway webhooks to bookings.

    Deliveries are at-least-once. A repeated (event, payment id) pair is
    answered from the event log without dispatch, and the booking's
    conditional status change makes any replay that slips past the log a
    no-op as well.
    """

    def __init__(
        self,
        db: Session,
        gateway: RazorpayGateway,
        booking_service: BookingService,
    ):
        self.db = db
        self.gateway = gateway
        self.booking_service = booking_service
        self.events = WebhookEventRepository(db)

    def handle_webhook(self, raw_body: bytes, signature: str | None) -> WebhookOutcome:
        self.gateway.verify_webhook_signature(raw_body, signature)

        event, payment = _parse_payment_event(raw_body)
        if payment is None:
            logger.warning("Ignoring unhandled webhook event %s", event)
            return WebhookOutcome(event=event, action="ignored")

        provider = self.gateway.provider
        existing = self.events.get(provider, payment.event, payment.payment_id)
        if existing is not None:
            logger.info(
                "Duplicate webhook %s for payment %s (first outcome %s)",
                payment.event,
                payment.payment_id,
                existing.outcome,
            )
            return WebhookOutcome(
                event=event,
                action="duplicate",
                order_id=payment.order_id,
            )

        record = self.events.record(
            provider=provider,
            event_type=payment.event,
            payment_id=payment.payment_id,
            order_id=payment.order_id,
            payload_hash=hashlib.sha256(raw_body).hexdigest(),
            outcome="received",
        )
        try:
            self.db.flush()
        except IntegrityError:
            # A concurrent delivery of the same event recorded it first.
            self.db.rollback()
            logger.info(
                "Concurrent duplicate webhook %s for payment %s",
                payment.event,
                payment.payment_id,
            )
            return WebhookOutcome(
                event=event,
                action="duplicate",
                order_id=payment.order_id,
            )

        if payment.event == PAYMENT_CAPTURED:
            settlement = self.booking_service.process_payment_success(
                order_id=payment.order_id,
                payment_id=payment.payment_id,
            )
            action = "confirmed" if settlement.applied else "noop"
        else:
            settlement = self.booking_service.process_payment_failure(
                order_id=payment.order_id,
            )
            action = "failed" if settlement.applied else "noop"

        record.outcome = action
        self.db.flush()

        return WebhookOutcome(
            event=event,
            action=action,
            order_id=payment.order_id,
            booking_id=settlement.booking.id,
        )
