# comedy_connect/infrastructure/repositories/booking_repository.py

from datetime import datetime

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, select, update

from comedy_connect.infrastructure.db.models import Booking, Show
from comedy_connect.domain.state_machine import BookingStateMachine, BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_order_id(
        self,
        order_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.order_id == order_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_active(
        self,
        user_id: str,
        show_id: str,
    ) -> Booking | None:

        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .where(Booking.show_id == show_id)
            .where(Booking.status.in_(BookingStateMachine.active_statuses()))
        )
        return self.db.execute(stmt).scalars().first()

    def count_by_status(
        self,
        show_id: str,
        statuses: set[BookingStatus],
    ) -> int:

        stmt = (
            select(func.count(Booking.id))
            .where(Booking.show_id == show_id)
            .where(Booking.status.in_(statuses))
        )
        return self.db.execute(stmt).scalar_one()

    def count_for_show(self, show_id: str) -> int:
        stmt = select(func.count(Booking.id)).where(Booking.show_id == show_id)
        return self.db.execute(stmt).scalar_one()

    def list_for_show(
        self,
        show_id: str,
        statuses: set[BookingStatus],
    ) -> list[Booking]:

        stmt = (
            select(Booking)
            .where(Booking.show_id == show_id)
            .where(Booking.status.in_(statuses))
            .order_by(Booking.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_user(
        self,
        user_id: str,
        show_id: str | None = None,
    ) -> list[Booking]:

        stmt = select(Booking).where(Booking.user_id == user_id)
        if show_id is not None:
            stmt = stmt.where(Booking.show_id == show_id)
        stmt = stmt.order_by(Booking.created_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def list_expired_ids(
        self,
        now: datetime,
        limit: int = 100,
    ) -> list[str]:

        stmt = (
            select(Booking.id)
            .where(Booking.status == BookingStatus.PENDING)
            .where(Booking.reserved_until <= now)
            .order_by(Booking.reserved_until)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def add(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.flush()
        return booking

    def transition(
        self,
        booking: Booking,
        to_status: BookingStatus,
        **values,
    ) -> bool:
        """
        Move a booking out of its current status with a conditional UPDATE.

        Returns False when another request already moved it, in which case
        nothing is written. Only the caller that gets True may touch the
        booking's inventory reservation.
        """
        from_status = booking.status
        BookingStateMachine.validate_transition(from_status, to_status)

        stmt = (
            update(Booking)
            .where(Booking.id == booking.id)
            .where(Booking.status == from_status)
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.refresh(booking)
        return result.rowcount == 1

    def update_fees(
        self,
        booking: Booking,
        platform_fee: int,
    ) -> None:

        booking.platform_fee = platform_fee

    def list_recomputable(self) -> list[Booking]:
        """Bookings whose platform fee still feeds an undisbursed payout."""
        stmt = (
            select(Booking)
            .join(Show, Show.id == Booking.show_id)
            .where(Show.is_disbursed.is_(False))
            .where(
                Booking.status.in_(
                    {
                        BookingStatus.PENDING,
                        BookingStatus.CONFIRMED,
                        BookingStatus.CONFIRMED_UNPAID,
                    }
                )
            )
            .options(selectinload(Booking.show).selectinload(Show.creator))
        )
        return list(self.db.execute(stmt).scalars().all())
