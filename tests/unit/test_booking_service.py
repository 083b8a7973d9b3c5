from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import threading

import pytest
from sqlalchemy import func, select

from conftest import make_show, make_user
from comedy_connect.application.account_service import AccountService
from comedy_connect.application.booking_service import BookingService
from comedy_connect.application.fee_service import FeeService
from comedy_connect.domain.exceptions import (
    BookingError,
    ForbiddenError,
    NotFoundError,
    PaymentGatewayError,
    SoldOutError,
    ValidationError,
)
from comedy_connect.domain.fee_engine import FeeSlab
from comedy_connect.domain.state_machine import BookingStatus
from comedy_connect.infrastructure.db.models import PlatformConfig
from comedy_connect.infrastructure.identity.session_identity import CurrentUser
from comedy_connect.infrastructure.repositories.inventory_ledger import InventoryLedger
from comedy_connect.infrastructure.repositories.platform_config_repository import (
    PlatformConfigRepository,
)


def current(user) -> CurrentUser:
    return CurrentUser(id=user.id, email=user.email, role=user.role)


def counts(db, show_id):
    db.expire_all()
    snapshot = InventoryLedger(db).get(show_id)
    return snapshot.available, snapshot.locked


@pytest.fixture
def service(db, settings, gateway):
    return BookingService(db, settings=settings, gateway=gateway)


# ---------------------
# CREATION
# ---------------------

def test_create_booking_prices_and_holds_tickets(db, service, organizer, audience):
    show = make_show(db, organizer[0], ticket_price=250, total_tickets=10)

    booking = service.create_booking(audience[0].id, show.id, 2)
    db.commit()

    assert booking.status == BookingStatus.PENDING
    assert booking.total_amount == 500
    # Default slabs put 250 in the 200..400 band at 8%.
    assert booking.platform_fee == 40
    assert booking.booking_fee == 10
    assert booking.reserved_until > datetime.now(timezone.utc)
    assert counts(db, show.id) == (8, 2)


def test_show_override_sets_platform_fee(db, service, organizer, audience):
    show = make_show(db, organizer[0], ticket_price=250, custom_platform_fee=Decimal("0.05"))

    booking = service.create_booking(audience[0].id, show.id, 2)

    assert booking.platform_fee == 25


def test_creator_fee_applies_below_show_override(db, service, organizer, admin, audience):
    AccountService(db).set_creator_fee(organizer[0].id, admin[0].id, Decimal("0.05"))
    db.commit()
    plain = make_show(db, organizer[0], ticket_price=250)
    overridden = make_show(db, organizer[0], ticket_price=250, custom_platform_fee=Decimal("0.03"))

    assert service.create_booking(audience[0].id, plain.id, 2).platform_fee == 25
    assert service.create_booking(audience[0].id, overridden.id, 2).platform_fee == 15


@pytest.mark.parametrize("quantity", [0, 11])
def test_quantity_bounds(db, service, organizer, audience, quantity):
    show = make_show(db, organizer[0])

    with pytest.raises(ValidationError):
        service.create_booking(audience[0].id, show.id, quantity)


def test_unknown_show(service, audience):
    with pytest.raises(NotFoundError):
        service.create_booking(audience[0].id, "missing", 1)


@pytest.mark.parametrize(
    "published,days_ahead",
    [(False, 7), (True, -1)],
)
def test_show_must_be_published_and_upcoming(
    db, service, organizer, audience, published, days_ahead
):
    show = make_show(db, organizer[0], published=published, days_ahead=days_ahead)

    with pytest.raises(BookingError) as exc:
        service.create_booking(audience[0].id, show.id, 1)

    assert exc.value.code == "SHOW_NOT_BOOKABLE"


def test_one_pending_booking_per_user_and_show(db, service, organizer, audience):
    show = make_show(db, organizer[0])
    service.create_booking(audience[0].id, show.id, 1)
    db.commit()

    with pytest.raises(BookingError) as exc:
        service.create_booking(audience[0].id, show.id, 1)

    assert exc.value.code == "DUPLICATE_BOOKING"


def test_sold_out_is_distinct_from_validation(db, service, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=1)

    with pytest.raises(SoldOutError) as exc:
        service.create_booking(audience[0].id, show.id, 2)

    assert exc.value.code == "SOLD_OUT"
    assert exc.value.message == "sold out"


def test_one_winner_for_last_ticket(session_factory, db, settings, organizer):
    show = make_show(db, organizer[0], total_tickets=1)
    FeeService(db, settings=settings).get_config()
    db.commit()
    users = [make_user(db)[0].id for _ in range(2)]
    show_id = show.id

    def attempt(user_id):
        session = session_factory()
        try:
            BookingService(session, settings=settings).create_booking(user_id, show_id, 1)
            session.commit()
            return "booked"
        except SoldOutError:
            session.rollback()
            return "sold out"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = sorted(pool.map(attempt, users))

    assert results == ["booked", "sold out"]
    assert counts(db, show_id) == (0, 1)


def test_first_bookings_share_one_default_fee_config(session_factory, db, settings, organizer, monkeypatch):
    show_ids = [make_show(db, organizer[0]).id for _ in range(2)]
    users = [make_user(db)[0].id for _ in range(2)]
    both_missed = threading.Barrier(2, timeout=10)
    seen = threading.local()
    original_get = PlatformConfigRepository.get

    def get_after_both_miss(self):
        config = original_get(self)
        if not getattr(seen, "waited", False):
            seen.waited = True
            both_missed.wait()
        return config

    monkeypatch.setattr(PlatformConfigRepository, "get", get_after_both_miss)

    def attempt(args):
        user_id, show_id = args
        session = session_factory()
        try:
            BookingService(session, settings=settings).create_booking(user_id, show_id, 1)
            session.commit()
            return "booked"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(attempt, zip(users, show_ids)))

    assert results == ["booked", "booked"]
    assert db.execute(select(func.count(PlatformConfig.id))).scalar_one() == 1


# ---------------------
# PAYMENT ORDER
# ---------------------

def test_payment_order_charges_tickets_plus_booking_fee(db, service, gateway, organizer, audience):
    show = make_show(db, organizer[0], ticket_price=250)
    booking = service.create_booking(audience[0].id, show.id, 2)

    service.open_payment_order(booking)

    assert booking.order_id == "order_test_1"
    assert gateway.orders == [{"id": "order_test_1", "amount": 510, "receipt": booking.id}]


def test_gateway_failure_fails_booking_and_releases(db, service, gateway, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=5)
    booking = service.create_booking(audience[0].id, show.id, 2)
    gateway.fail_orders = True

    with pytest.raises(PaymentGatewayError):
        service.open_payment_order(booking)
    db.commit()

    assert booking.status == BookingStatus.FAILED
    assert counts(db, show.id) == (5, 0)


def test_payments_disabled_confirms_unpaid(db, settings, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=5)
    service = BookingService(db, settings=replace(settings, payments_enabled=False))
    booking = service.create_booking(audience[0].id, show.id, 2)

    service.open_payment_order(booking)
    db.commit()

    assert booking.status == BookingStatus.CONFIRMED_UNPAID
    assert counts(db, show.id) == (3, 0)


# ---------------------
# PAYMENT OUTCOMES
# ---------------------

def _paid_booking(db, service, show, user):
    booking = service.create_booking(user.id, show.id, 2)
    service.open_payment_order(booking)
    db.commit()
    return booking


def test_payment_success_is_idempotent(db, service, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=10)
    booking = _paid_booking(db, service, show, audience[0])

    first = service.process_payment_success(booking.order_id, "pay_1")
    second = service.process_payment_success(booking.order_id, "pay_1")
    db.commit()

    assert first.applied is True
    assert second.applied is False
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment_id == "pay_1"
    assert counts(db, show.id) == (8, 0)


def test_failure_after_confirmation_is_noop(db, service, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=10)
    booking = _paid_booking(db, service, show, audience[0])
    service.process_payment_success(booking.order_id, "pay_1")

    settlement = service.process_payment_failure(booking.order_id)
    db.commit()

    assert settlement.applied is False
    assert booking.status == BookingStatus.CONFIRMED
    assert counts(db, show.id) == (8, 0)


def test_payment_failure_releases(db, service, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=10)
    booking = _paid_booking(db, service, show, audience[0])

    settlement = service.process_payment_failure(booking.order_id)
    db.commit()

    assert settlement.applied is True
    assert booking.status == BookingStatus.FAILED
    assert counts(db, show.id) == (10, 0)


def test_payment_for_unknown_order(service):
    with pytest.raises(NotFoundError):
        service.process_payment_success("order_unknown", "pay_x")


# ---------------------
# CANCELLATION AND EXPIRY
# ---------------------

def test_owner_cancels_pending_booking(db, service, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=4)
    booking = service.create_booking(audience[0].id, show.id, 2)
    db.commit()

    service.cancel_booking(booking.id, current(audience[0]))
    db.commit()

    assert booking.status == BookingStatus.CANCELLED
    assert counts(db, show.id) == (4, 0)

    with pytest.raises(BookingError) as exc:
        service.cancel_booking(booking.id, current(audience[0]))
    assert exc.value.code == "NOT_CANCELLABLE"


def test_other_user_cannot_touch_booking(db, service, organizer, audience):
    show = make_show(db, organizer[0])
    booking = service.create_booking(audience[0].id, show.id, 1)
    db.commit()
    stranger, _ = make_user(db)

    with pytest.raises(ForbiddenError):
        service.cancel_booking(booking.id, current(stranger))


def test_admin_can_read_any_booking(db, service, organizer, audience, admin):
    show = make_show(db, organizer[0])
    booking = service.create_booking(audience[0].id, show.id, 1)
    db.commit()

    assert service.get_booking(booking.id, current(admin[0])).id == booking.id


def test_sweep_expires_abandoned_reservations(db, settings, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=6)
    start = datetime.now(timezone.utc)
    service = BookingService(db, settings=settings, clock=lambda: start)
    booking = service.create_booking(audience[0].id, show.id, 3)
    db.commit()

    assert service.expire_stale_bookings(now=start + timedelta(minutes=5)) == 0
    assert counts(db, show.id) == (3, 3)

    expired = service.expire_stale_bookings(now=start + timedelta(minutes=16))
    db.commit()

    assert expired == 1
    assert booking.status == BookingStatus.CANCELLED
    assert counts(db, show.id) == (6, 0)


def test_expiry_does_not_touch_confirmed_booking(db, service, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=6)
    booking = _paid_booking(db, service, show, audience[0])
    service.process_payment_success(booking.order_id, "pay_1")
    db.commit()

    later = datetime.now(timezone.utc) + timedelta(hours=1)
    assert service.expire_booking(booking.id, now=later) is False
    assert counts(db, show.id) == (4, 0)


# ---------------------
# FEE RECOMPUTE
# ---------------------

def test_recompute_updates_platform_fee_of_undisbursed_shows(db, settings, service, organizer, audience):
    open_show = make_show(db, organizer[0], ticket_price=250)
    paid_out = make_show(db, organizer[0], ticket_price=250)
    open_booking = service.create_booking(audience[0].id, open_show.id, 2)
    closed_booking = service.create_booking(audience[0].id, paid_out.id, 2)
    paid_out.is_disbursed = True
    db.commit()

    FeeService(db, settings=settings).replace_slabs(
        [FeeSlab(min_price=0, max_price=None, fee_percent=Decimal("0.10"))]
    )
    updated = service.recompute_platform_fees()
    db.commit()

    assert updated == 1
    assert open_booking.platform_fee == 50
    assert open_booking.booking_fee == 10
    assert closed_booking.platform_fee == 40


def test_recompute_applies_creator_fee(db, service, organizer, admin, audience):
    show = make_show(db, organizer[0], ticket_price=250)
    booking = service.create_booking(audience[0].id, show.id, 2)
    db.commit()
    assert booking.platform_fee == 40

    AccountService(db).set_creator_fee(organizer[0].id, admin[0].id, Decimal("0.10"))
    updated = service.recompute_platform_fees()
    db.commit()

    assert updated == 1
    assert booking.platform_fee == 50


def test_settled_booking_never_releases_twice(db, service, organizer, audience):
    show = make_show(db, organizer[0], total_tickets=5)
    other = make_user(db)[0]
    mine = service.create_booking(audience[0].id, show.id, 2)
    service.open_payment_order(mine)
    service.create_booking(other.id, show.id, 2)
    db.commit()

    service.cancel_booking(mine.id, current(audience[0]))
    service.process_payment_failure(mine.order_id)
    later = datetime.now(timezone.utc) + timedelta(hours=1)
    assert service.expire_booking(mine.id, now=later) is False
    db.commit()

    # The other user's two tickets stay held.
    assert counts(db, show.id) == (3, 2)
