# comedy_connect/infrastructure/repositories/inventory_ledger.py

from dataclasses import dataclass
import logging

from sqlalchemy.orm import Session
from sqlalchemy import select, update

from comedy_connect.infrastructure.db.models import TicketInventory
from comedy_connect.domain.exceptions import (
    InsufficientInventoryError,
    InventoryIntegrityError,
    NotFoundError,
    ValidationError,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationHandle:
    show_id: str
    quantity: int


@dataclass(frozen=True)
class InventorySnapshot:
    show_id: str
    available: int
    locked: int


class InventoryLedger:
    """
    Ticket inventory for a show.

    Every mutation is one conditional UPDATE against the inventory row, run
    inside the caller's transaction. The WHERE guard is what keeps counts
    from going negative when several workers hit the same show at once.

    Handles are not tracked individually: commit and release only check
    the show's total locked count, so a handle settled twice goes
    unnoticed while other reservations hold enough tickets. Settling each
    booking once is the job of its conditional status change (see
    BookingRepository.transition).
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, show_id: str, total_tickets: int) -> TicketInventory:
        inventory = TicketInventory(
            show_id=show_id,
            available=total_tickets,
            locked=0,
        )
        self.db.add(inventory)
        return inventory

    def get(self, show_id: str) -> InventorySnapshot | None:
        row = self.db.execute(
            select(
                TicketInventory.available,
                TicketInventory.locked,
            ).where(TicketInventory.show_id == show_id)
        ).one_or_none()

        if row is None:
            return None

        return InventorySnapshot(
            show_id=show_id,
            available=row.available,
            locked=row.locked,
        )

    def reserve(self, show_id: str, quantity: int) -> ReservationHandle:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        stmt = (
            update(TicketInventory)
            .where(TicketInventory.show_id == show_id)
            .where(TicketInventory.available >= quantity)
            .values(
                available=TicketInventory.available - quantity,
                locked=TicketInventory.locked + quantity,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount == 1:
            logger.debug("Reserved %s ticket(s) for show %s", quantity, show_id)
            return ReservationHandle(show_id=show_id, quantity=quantity)

        self._ensure_exists(show_id)
        raise InsufficientInventoryError(
            f"Not enough tickets available for show {show_id}"
        )

    def commit(self, handle: ReservationHandle) -> None:
        """Held tickets become sold; available was already reduced at reserve time."""
        stmt = (
            update(TicketInventory)
            .where(TicketInventory.show_id == handle.show_id)
            .where(TicketInventory.locked >= handle.quantity)
            .values(locked=TicketInventory.locked - handle.quantity)
            .execution_options(synchronize_session=False)
        )
        self._apply(stmt, handle, "commit")

    def release(self, handle: ReservationHandle) -> None:
        stmt = (
            update(TicketInventory)
            .where(TicketInventory.show_id == handle.show_id)
            .where(TicketInventory.locked >= handle.quantity)
            .values(
                available=TicketInventory.available + handle.quantity,
                locked=TicketInventory.locked - handle.quantity,
            )
            .execution_options(synchronize_session=False)
        )
        self._apply(stmt, handle, "release")

    def adjust_capacity(self, show_id: str, delta: int) -> None:
        """
        Grow or shrink sellable capacity when a show's total changes.
        Shrinking never eats into sold or held tickets.
        """
        if delta == 0:
            return

        stmt = (
            update(TicketInventory)
            .where(TicketInventory.show_id == show_id)
            .where(TicketInventory.available + delta >= 0)
            .values(available=TicketInventory.available + delta)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount == 1:
            return

        self._ensure_exists(show_id)
        raise ValidationError(
            "Cannot reduce capacity below tickets already sold or held"
        )

    def _apply(self, stmt, handle: ReservationHandle, operation: str) -> None:
        result = self.db.execute(stmt)
        if result.rowcount == 1:
            return

        self._ensure_exists(handle.show_id)
        logger.error(
            "Inventory %s of %s ticket(s) for show %s found too few locked tickets",
            operation,
            handle.quantity,
            handle.show_id,
        )
        raise InventoryIntegrityError(
            f"Cannot {operation} {handle.quantity} ticket(s) for show "
            f"{handle.show_id}: not enough locked tickets"
        )

    def _ensure_exists(self, show_id: str) -> None:
        exists = self.db.execute(
            select(TicketInventory.id).where(TicketInventory.show_id == show_id)
        ).scalar_one_or_none()

        if exists is None:
            raise NotFoundError("Ticket inventory")
