import logging

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from comedy_connect.api.dependencies import get_app_settings, get_payment_gateway
from comedy_connect.api.schemas.schemas import WebhookResponse
from comedy_connect.application.booking_service import BookingService
from comedy_connect.application.payment_reconciliation import PaymentReconciliation
from comedy_connect.infrastructure.db.session import get_db
from comedy_connect.infrastructure.payments.razorpay_gateway import RazorpayGateway
from comedy_connect.settings import Settings


router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger(__name__)


async def raw_body(request: Request) -> bytes:
    # Signatures cover the exact bytes sent, so the body is never re-serialized.
    return await request.body()


@router.post("/payment", response_model=WebhookResponse)
@router.post("/razorpay", response_model=WebhookResponse)
def payment_webhook(
    body: bytes = Depends(raw_body),
    x_signature: str | None = Header(default=None),
    x_razorpay_signature: str | None = Header(default=None),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
):
    reconciliation = PaymentReconciliation(
        db=db,
        gateway=gateway,
        booking_service=BookingService(db, settings=settings, gateway=gateway),
    )
    outcome = reconciliation.handle_webhook(body, x_razorpay_signature or x_signature)

    logger.info(
        "Webhook %s handled: action=%s order=%s booking=%s",
        outcome.event,
        outcome.action,
        outcome.order_id,
        outcome.booking_id,
    )
    return WebhookResponse(status="ok", outcome=outcome.action)
