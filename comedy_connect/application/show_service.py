# comedy_connect/application/show_service.py

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable
import logging

from sqlalchemy.orm import Session

from comedy_connect.domain.exceptions import (
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from comedy_connect.domain.fee_engine import validate_fee_percent
from comedy_connect.domain.publication_guard import (
    ensure_publishable,
    ensure_unpublishable,
)
from comedy_connect.domain.state_machine import BookingStatus
from comedy_connect.infrastructure.db.models import Show
from comedy_connect.infrastructure.identity.session_identity import CurrentUser
from comedy_connect.infrastructure.repositories.booking_repository import BookingRepository
from comedy_connect.infrastructure.repositories.inventory_ledger import InventoryLedger
from comedy_connect.infrastructure.repositories.show_repository import ShowRepository


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # Naive datetimes from clients are taken as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


_EDITABLE_FIELDS = ("title", "description", "date", "venue")


class ShowService:
    """
    Show drafting and publication.

    A show is created as a draft together with its inventory row. Publish
    and unpublish take a row lock on the show, so they serialize with
    each other and with capacity edits.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.show_repository = ShowRepository(db)
        self.booking_repository = BookingRepository(db)
        self.ledger = InventoryLedger(db)

    def create_show(
        self,
        user: CurrentUser,
        title: str,
        date: datetime,
        venue: str,
        ticket_price: int,
        total_tickets: int,
        description: str | None = None,
        comedian_ids: list[str] | None = None,
        custom_platform_fee: Decimal | None = None,
    ) -> Show:
        if not (user.role.is_creator or user.is_admin):
            raise ForbiddenError("Only organizers, comedians and admins can create shows")

        date = as_utc(date)
        problems = self._field_problems(
            date=date,
            ticket_price=ticket_price,
            total_tickets=total_tickets,
        )
        if custom_platform_fee is not None:
            if not user.is_admin:
                raise ForbiddenError("Only admins can set a custom platform fee")
            problems.extend(validate_fee_percent(custom_platform_fee, "custom_platform_fee"))
        if problems:
            raise ValidationError("Invalid show", details=problems)

        linked = list(dict.fromkeys(comedian_ids or []))
        if user.role.is_comedian:
            profile = self.show_repository.comedian_profile_for(user.id)
            if profile is not None and profile.id not in linked:
                linked.insert(0, profile.id)
        self._ensure_comedians_exist(linked)

        show = Show(
            title=title,
            description=description,
            date=date,
            venue=venue,
            ticket_price=ticket_price,
            total_tickets=total_tickets,
            is_published=False,
            is_disbursed=False,
            custom_platform_fee=custom_platform_fee,
            created_by=user.id,
        )
        self.show_repository.add(show)
        self.ledger.create(show.id, total_tickets)
        self.show_repository.link_comedians(show, linked)
        self.db.flush()

        logger.info(
            "Show %s created by %s: capacity=%s price=%s comedians=%s",
            show.id,
            user.id,
            total_tickets,
            ticket_price,
            len(linked),
        )
        return show

    def get_show(self, show_id: str, user: CurrentUser | None = None) -> Show:
        show = self.show_repository.get_by_id(show_id)
        if not show:
            raise NotFoundError("Show")

        # Drafts are invisible to everyone but their owner and admins.
        if not show.is_published and not self._can_manage(show, user):
            raise NotFoundError("Show")
        return show

    def list_upcoming(self) -> list[Show]:
        """Published shows that have not started yet, soonest first."""
        return self.show_repository.list_published_upcoming(self.clock())

    def update_show(self, show_id: str, user: CurrentUser, changes: dict) -> Show:
        show = self._lock_for_manage(show_id, user)

        if "custom_platform_fee" in changes and not user.is_admin:
            raise ForbiddenError("Only admins can set a custom platform fee")

        changes = dict(changes)
        if changes.get("date") is not None:
            changes["date"] = as_utc(changes["date"])

        has_bookings = self.booking_repository.count_for_show(show.id) > 0
        locked_in = show.is_published and has_bookings

        problems = self._field_problems(
            date=changes.get("date"),
            ticket_price=changes.get("ticket_price"),
            total_tickets=changes.get("total_tickets"),
        )
        if changes.get("custom_platform_fee") is not None:
            problems.extend(
                validate_fee_percent(changes["custom_platform_fee"], "custom_platform_fee")
            )

        if locked_in:
            new_price = changes.get("ticket_price")
            if new_price is not None and new_price != show.ticket_price:
                problems.append("Cannot change ticket price for a published show with bookings")
            new_total = changes.get("total_tickets")
            if new_total is not None and new_total > show.total_tickets:
                problems.append("Cannot increase capacity for a published show with bookings")
            if "comedian_ids" in changes:
                current = {link.comedian_id for link in show.show_comedians}
                if not current.issubset(set(changes["comedian_ids"] or [])):
                    problems.append("Cannot remove comedians from a published show with bookings")

        if problems:
            raise ValidationError("Invalid show update", details=problems)

        for field in _EDITABLE_FIELDS:
            if changes.get(field) is not None:
                setattr(show, field, changes[field])

        if changes.get("ticket_price") is not None:
            show.ticket_price = changes["ticket_price"]

        if "custom_platform_fee" in changes:
            show.custom_platform_fee = changes["custom_platform_fee"]

        new_total = changes.get("total_tickets")
        if new_total is not None and new_total != show.total_tickets:
            self.ledger.adjust_capacity(show.id, new_total - show.total_tickets)
            show.total_tickets = new_total

        if "comedian_ids" in changes:
            linked = list(dict.fromkeys(changes["comedian_ids"] or []))
            self._ensure_comedians_exist(linked)
            self.show_repository.link_comedians(show, linked)

        self.db.flush()
        logger.info("Show %s updated by %s", show.id, user.id)
        return show

    def publish_show(self, show_id: str, user: CurrentUser) -> Show:
        show = self._lock_for_manage(show_id, user)

        if not user.is_admin and not user.role.is_verified:
            raise ForbiddenError("Your account must be verified before you can publish shows")

        ensure_publishable(
            is_published=show.is_published,
            show_date=show.date,
            total_tickets=show.total_tickets,
            comedian_count=self.show_repository.count_comedians(show.id),
            now=self.clock(),
        )

        show.is_published = True
        self.db.flush()
        logger.info("Show %s published by %s", show.id, user.id)
        return show

    def unpublish_show(self, show_id: str, user: CurrentUser) -> Show:
        show = self._lock_for_manage(show_id, user)

        ensure_unpublishable(
            is_published=show.is_published,
            pending_bookings=self.booking_repository.count_by_status(
                show.id, {BookingStatus.PENDING}
            ),
        )

        show.is_published = False
        self.db.flush()
        logger.info("Show %s unpublished by %s", show.id, user.id)
        return show

    def _lock_for_manage(self, show_id: str, user: CurrentUser) -> Show:
        show = self.show_repository.lock(show_id)
        if not show:
            raise NotFoundError("Show")
        if not self._can_manage(show, user):
            raise ForbiddenError("You don't have permission to manage this show")
        return show

    @staticmethod
    def _can_manage(show: Show, user: CurrentUser | None) -> bool:
        if user is None:
            return False
        return user.is_admin or show.created_by == user.id

    def _field_problems(
        self,
        date: datetime | None,
        ticket_price: int | None,
        total_tickets: int | None,
    ) -> list[str]:
        problems: list[str] = []
        if date is not None and date <= self.clock():
            problems.append("Show date must be in the future")
        if ticket_price is not None and (
            isinstance(ticket_price, bool)
            or not isinstance(ticket_price, int)
            or ticket_price <= 0
        ):
            problems.append("Ticket price must be a positive integer")
        if total_tickets is not None and total_tickets <= 0:
            problems.append("Total tickets must be greater than 0")
        return problems

    def _ensure_comedians_exist(self, comedian_ids: list[str]) -> None:
        missing = set(comedian_ids) - self.show_repository.existing_comedian_ids(comedian_ids)
        if missing:
            raise ValidationError(
                "Unknown comedian",
                details=[f"comedian {comedian_id} not found" for comedian_id in sorted(missing)],
            )
