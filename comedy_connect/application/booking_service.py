from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from comedy_connect.application.fee_service import FeeService
from comedy_connect.domain.exceptions import (
    BookingError,
    ConfigurationError,
    ForbiddenError,
    InsufficientInventoryError,
    NotFoundError,
    PaymentGatewayError,
    SoldOutError,
    ValidationError,
)
from comedy_connect.domain.fee_engine import compute_fee
from comedy_connect.domain.state_machine import BookingStateMachine, BookingStatus
from comedy_connect.infrastructure.db.models import Booking, Show
from comedy_connect.infrastructure.identity.session_identity import CurrentUser
from comedy_connect.infrastructure.payments.razorpay_gateway import RazorpayGateway
from comedy_connect.infrastructure.repositories.booking_repository import BookingRepository
from comedy_connect.infrastructure.repositories.inventory_ledger import (
    InventoryLedger,
    ReservationHandle,
)
from comedy_connect.infrastructure.repositories.show_repository import ShowRepository
from comedy_connect.settings import Settings, get_settings


logger = logging.getLogger(__name__)

MAX_TICKETS_PER_BOOKING = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Settlement:
    booking: Booking
    applied: bool


class BookingService:
    """
    Application service coordinating the booking lifecycle.

    Bookings are created PENDING with tickets held in the inventory ledger
    and leave PENDING exactly once. The status change is a conditional
    UPDATE, and only the caller that wins it commits or releases the held
    tickets, so replays and races never adjust inventory twice.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings | None = None,
        gateway: RazorpayGateway | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.gateway = gateway
        self.clock = clock
        self.booking_repository = BookingRepository(db)
        self.show_repository = ShowRepository(db)
        self.ledger = InventoryLedger(db)
        self.fee_service = FeeService(db, settings=self.settings)

    # -----------------------------
    # Creation
    # -----------------------------
    def create_booking(
        self,
        user_id: str,
        show_id: str,
        quantity: int,
    ) -> Booking:
        if quantity < 1 or quantity > MAX_TICKETS_PER_BOOKING:
            raise ValidationError(
                f"Quantity must be between 1 and {MAX_TICKETS_PER_BOOKING} tickets per booking"
            )

        show = self.show_repository.get_for_booking(show_id)
        if not show:
            raise NotFoundError("Show")

        now = self.clock()
        if not show.is_published or show.date <= now:
            raise BookingError(
                "Show is not open for booking",
                code="SHOW_NOT_BOOKABLE",
            )

        if self.booking_repository.find_active(user_id, show_id):
            raise BookingError(
                "You already have a booking awaiting payment for this show",
                code="DUPLICATE_BOOKING",
            )

        fees = compute_fee(
            ticket_price=show.ticket_price,
            quantity=quantity,
            schedule=self.fee_service.current_schedule(),
            override=self._platform_fee_override(show),
        )

        try:
            self.ledger.reserve(show_id, quantity)
        except InsufficientInventoryError as exc:
            logger.info(
                "Sold out: show=%s requested=%s user=%s",
                show_id,
                quantity,
                user_id,
            )
            raise SoldOutError() from exc

        booking = Booking(
            show_id=show_id,
            user_id=user_id,
            quantity=quantity,
            total_amount=fees.total_amount,
            platform_fee=fees.platform_fee,
            booking_fee=fees.booking_fee,
            status=BookingStatus.PENDING,
            reserved_until=now + timedelta(seconds=self.settings.reservation_timeout_seconds),
        )

        try:
            self.booking_repository.add(booking)
        except IntegrityError as exc:
            # Partial unique index on (user, show) for PENDING bookings.
            raise BookingError(
                "You already have a booking awaiting payment for this show",
                code="DUPLICATE_BOOKING",
            ) from exc

        logger.info(
            "Booking %s created: show=%s quantity=%s total=%s booking_fee=%s platform_fee=%s",
            booking.id,
            show_id,
            quantity,
            booking.total_amount,
            booking.booking_fee,
            booking.platform_fee,
        )
        return booking

    def open_payment_order(self, booking: Booking) -> Booking:
        """
        Create the gateway order for a PENDING booking.

        Without a gateway (payments disabled) the booking is confirmed
        unpaid and its tickets are committed straight away.
        """
        if self.gateway is None:
            self._settle(booking, BookingStatus.CONFIRMED_UNPAID, self.ledger.commit)
            logger.info("Booking %s confirmed unpaid (payments disabled)", booking.id)
            return booking

        try:
            order_id = self.gateway.create_order(
                amount=booking.total_amount + booking.booking_fee,
                receipt=booking.id,
            )
        except (PaymentGatewayError, ConfigurationError):
            self._settle(booking, BookingStatus.FAILED, self.ledger.release)
            logger.warning(
                "Booking %s failed: payment order could not be created",
                booking.id,
            )
            raise

        booking.order_id = order_id
        self.db.flush()
        return booking

    # -----------------------------
    # Queries and user actions
    # -----------------------------
    def get_booking(self, booking_id: str, user: CurrentUser) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking")

        if booking.user_id != user.id and not user.is_admin:
            raise ForbiddenError("Unauthorized access to booking")

        return booking

    def list_user_bookings(
        self,
        user: CurrentUser,
        show_id: str | None = None,
    ) -> list[Booking]:
        return self.booking_repository.list_for_user(user.id, show_id=show_id)

    def cancel_booking(self, booking_id: str, user: CurrentUser) -> Booking:
        booking = self.get_booking(booking_id, user)

        if booking.status != BookingStatus.PENDING:
            raise BookingError(
                f"Cannot cancel booking in status {booking.status.value}",
                code="NOT_CANCELLABLE",
            )

        settlement = self._settle(booking, BookingStatus.CANCELLED, self.ledger.release)
        if not settlement.applied and booking.status != BookingStatus.CANCELLED:
            raise BookingError(
                f"Cannot cancel booking in status {booking.status.value}",
                code="NOT_CANCELLABLE",
            )

        logger.info("Booking %s cancelled by user %s", booking.id, user.id)
        return booking

    # -----------------------------
    # Payment outcomes
    # -----------------------------
    def process_payment_success(self, order_id: str, payment_id: str) -> Settlement:
        booking = self.booking_repository.get_by_order_id(order_id)
        if not booking:
            raise NotFoundError("Booking for payment")

        if BookingStateMachine.is_terminal(booking.status):
            self._log_replay(booking, "payment success")
            return Settlement(booking=booking, applied=False)

        settlement = self._settle(
            booking,
            BookingStatus.CONFIRMED,
            self.ledger.commit,
            payment_id=payment_id,
        )
        if settlement.applied:
            logger.info("Payment confirmed for order %s (booking %s)", order_id, booking.id)
        return settlement

    def process_payment_failure(self, order_id: str) -> Settlement:
        booking = self.booking_repository.get_by_order_id(order_id)
        if not booking:
            raise NotFoundError("Booking for payment")

        if BookingStateMachine.is_terminal(booking.status):
            self._log_replay(booking, "payment failure")
            return Settlement(booking=booking, applied=False)

        settlement = self._settle(booking, BookingStatus.FAILED, self.ledger.release)
        if settlement.applied:
            logger.info("Payment failed for order %s (booking %s)", order_id, booking.id)
        return settlement

    # -----------------------------
    # Expiry
    # -----------------------------
    def expire_booking(self, booking_id: str, now: datetime | None = None) -> bool:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking")

        now = now or self.clock()
        if booking.status != BookingStatus.PENDING or booking.reserved_until > now:
            return False

        settlement = self._settle(booking, BookingStatus.CANCELLED, self.ledger.release)
        if settlement.applied:
            logger.info(
                "Booking %s expired; released %s ticket(s) for show %s",
                booking.id,
                booking.quantity,
                booking.show_id,
            )
        return settlement.applied

    def expire_stale_bookings(
        self,
        now: datetime | None = None,
        batch_size: int = 100,
    ) -> int:
        now = now or self.clock()
        expired = 0
        for booking_id in self.booking_repository.list_expired_ids(now, limit=batch_size):
            if self.expire_booking(booking_id, now=now):
                expired += 1
        return expired

    # -----------------------------
    # Admin
    # -----------------------------
    def recompute_platform_fees(self) -> int:
        """Re-price the platform fee of bookings on shows not yet paid out."""
        schedule = self.fee_service.load_schedule()
        updated = 0

        for booking in self.booking_repository.list_recomputable():
            fees = compute_fee(
                ticket_price=booking.show.ticket_price,
                quantity=booking.quantity,
                schedule=schedule,
                override=self._platform_fee_override(booking.show),
            )
            if fees.platform_fee != booking.platform_fee:
                self.booking_repository.update_fees(booking, fees.platform_fee)
                updated += 1

        self.db.flush()
        logger.info("Recomputed platform fees for %s booking(s)", updated)
        return updated

    # -----------------------------
    # Internals
    # -----------------------------
    def _settle(
        self,
        booking: Booking,
        to_status: BookingStatus,
        inventory_action: Callable[[ReservationHandle], None],
        **values,
    ) -> Settlement:
        handle = ReservationHandle(show_id=booking.show_id, quantity=booking.quantity)

        if not self.booking_repository.transition(booking, to_status, **values):
            logger.info(
                "Booking %s already left PENDING (now %s); skipping %s",
                booking.id,
                booking.status.value,
                to_status.value,
            )
            return Settlement(booking=booking, applied=False)

        inventory_action(handle)
        return Settlement(booking=booking, applied=True)

    @staticmethod
    def _platform_fee_override(show: Show) -> Decimal | None:
        # Show rate first, then the creator's account-wide rate, then slabs.
        if show.custom_platform_fee is not None:
            return show.custom_platform_fee
        return show.creator.custom_platform_fee

    @staticmethod
    def _log_replay(booking: Booking, outcome: str) -> None:
        if booking.status in {BookingStatus.CANCELLED, BookingStatus.FAILED}:
            logger.warning(
                "Received %s for booking %s in status %s; no state change",
                outcome,
                booking.id,
                booking.status.value,
            )
        else:
            logger.info(
                "Duplicate %s for booking %s in status %s ignored",
                outcome,
                booking.id,
                booking.status.value,
            )
