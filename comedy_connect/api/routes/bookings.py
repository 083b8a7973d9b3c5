from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from comedy_connect.api.dependencies import (
    get_app_settings,
    get_order_gateway,
    require_user,
)
from comedy_connect.api.schemas.schemas import (
    BookingCreatedResponse,
    BookingRequest,
    BookingResponse,
    PaymentOrderResponse,
)
from comedy_connect.application.booking_service import BookingService
from comedy_connect.domain.exceptions import ConfigurationError, PaymentGatewayError
from comedy_connect.infrastructure.db.models import Booking
from comedy_connect.infrastructure.db.session import get_db
from comedy_connect.infrastructure.identity.session_identity import CurrentUser
from comedy_connect.infrastructure.payments.razorpay_gateway import RazorpayGateway
from comedy_connect.settings import Settings


router = APIRouter(prefix="/bookings", tags=["Bookings"])


def booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        show_id=booking.show_id,
        user_id=booking.user_id,
        quantity=booking.quantity,
        total_amount=booking.total_amount,
        booking_fee=booking.booking_fee,
        platform_fee=booking.platform_fee,
        amount_payable=booking.total_amount + booking.booking_fee,
        status=booking.status.value,
        order_id=booking.order_id,
        payment_id=booking.payment_id,
        reserved_until=booking.reserved_until.isoformat(),
        created_at=booking.created_at.isoformat() if booking.created_at else None,
    )


@router.post("", response_model=BookingCreatedResponse)
def create_booking(
    request: BookingRequest,
    user: CurrentUser = Depends(require_user),
    gateway: RazorpayGateway | None = Depends(get_order_gateway),
    settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
):
    service = BookingService(db, settings=settings, gateway=gateway)
    booking = service.create_booking(
        user_id=user.id,
        show_id=request.show_id,
        quantity=request.quantity,
    )
    # The reservation is durable before the gateway is called.
    db.commit()

    try:
        service.open_payment_order(booking)
    except (PaymentGatewayError, ConfigurationError):
        # Keep the FAILED status and released tickets.
        db.commit()
        raise

    return BookingCreatedResponse(
        booking=booking_response(booking),
        payment=PaymentOrderResponse(
            provider=gateway.provider if gateway else None,
            order_id=booking.order_id,
            amount=booking.total_amount + booking.booking_fee,
            currency=settings.currency,
            key_id=gateway.key_id if gateway else None,
        ),
    )


@router.get("", response_model=list[BookingResponse])
def list_my_bookings(
    show_id: str | None = None,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    bookings = BookingService(db).list_user_bookings(user, show_id=show_id)
    return [booking_response(booking) for booking in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    booking = BookingService(db).get_booking(booking_id, user)
    return booking_response(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    booking = BookingService(db).cancel_booking(booking_id, user)
    return booking_response(booking)
