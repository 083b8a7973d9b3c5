# comedy_connect/application/payout_service.py

from dataclasses import dataclass
import logging

from sqlalchemy.orm import Session

from comedy_connect.domain.exceptions import NotFoundError, ValidationError
from comedy_connect.domain.state_machine import BookingStatus
from comedy_connect.infrastructure.repositories.booking_repository import BookingRepository
from comedy_connect.infrastructure.repositories.show_repository import ShowRepository


logger = logging.getLogger(__name__)


SETTLED_STATUSES = {BookingStatus.CONFIRMED, BookingStatus.CONFIRMED_UNPAID}


@dataclass(frozen=True)
class PayoutSummary:
    show_id: str
    bookings: int
    tickets_sold: int
    gross_revenue: int
    platform_fees: int
    booking_fees: int
    pending_bookings: int
    is_disbursed: bool

    @property
    def net_payout(self) -> int:
        return self.gross_revenue - self.platform_fees


class PayoutService:
    """Admin projection of what a show's creator is owed."""

    def __init__(self, db: Session):
        self.db = db
        self.show_repository = ShowRepository(db)
        self.booking_repository = BookingRepository(db)

    def summarize(self, show_id: str) -> PayoutSummary:
        show = self.show_repository.get_by_id(show_id)
        if not show:
            raise NotFoundError("Show")
        return self._summary(show.id, show.is_disbursed)

    def disburse(self, show_id: str, admin_id: str) -> PayoutSummary:
        show = self.show_repository.lock(show_id)
        if not show:
            raise NotFoundError("Show")

        if show.is_disbursed:
            raise ValidationError("Show payout has already been disbursed")

        summary = self._summary(show.id, show.is_disbursed)
        if summary.pending_bookings:
            raise ValidationError(
                "Cannot disburse while bookings are awaiting payment",
                details=[f"{summary.pending_bookings} pending booking(s)"],
            )

        show.is_disbursed = True
        self.db.flush()

        logger.info(
            "Show %s disbursed by %s: gross=%s platform_fees=%s net=%s",
            show.id,
            admin_id,
            summary.gross_revenue,
            summary.platform_fees,
            summary.net_payout,
        )
        return self._summary(show.id, True)

    def _summary(self, show_id: str, is_disbursed: bool) -> PayoutSummary:
        settled = self.booking_repository.list_for_show(show_id, SETTLED_STATUSES)
        return PayoutSummary(
            show_id=show_id,
            bookings=len(settled),
            tickets_sold=sum(b.quantity for b in settled),
            gross_revenue=sum(b.total_amount for b in settled),
            platform_fees=sum(b.platform_fee for b in settled),
            booking_fees=sum(b.booking_fee for b in settled),
            pending_bookings=self.booking_repository.count_by_status(
                show_id, {BookingStatus.PENDING}
            ),
            is_disbursed=is_disbursed,
        )
