# comedy_connect/infrastructure/repositories/webhook_event_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from comedy_connect.infrastructure.db.models import PaymentWebhookEvent


class WebhookEventRepository:

    def __init__(self, db: Session):
        self.db = db

    def get(
        self,
        provider: str,
        event_type: str,
        payment_id: str,
    ) -> PaymentWebhookEvent | None:

        stmt = (
            select(PaymentWebhookEvent)
            .where(PaymentWebhookEvent.provider == provider)
            .where(PaymentWebhookEvent.event_type == event_type)
            .where(PaymentWebhookEvent.payment_id == payment_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def record(
        self,
        provider: str,
        event_type: str,
        payment_id: str,
        order_id: str | None,
        payload_hash: str,
        outcome: str,
    ) -> PaymentWebhookEvent:

        event = PaymentWebhookEvent(
            provider=provider,
            event_type=event_type,
            payment_id=payment_id,
            order_id=order_id,
            payload_hash=payload_hash,
            outcome=outcome,
        )
        self.db.add(event)
        return event
