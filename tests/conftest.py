import os

# Settings are read once at import time, so the test environment is fixed
# before anything from comedy_connect is imported.
os.environ["DATABASE_URL"] = "sqlite:///./comedy_connect_test.db"
os.environ["PAYMENTS_ENABLED"] = "true"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"
os.environ["DEFAULT_PLATFORM_FEE_PERCENT"] = "0.08"
os.environ["DEFAULT_BOOKING_FEE_PERCENT"] = "0.02"

from dataclasses import replace
from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import itertools
import json
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from comedy_connect.api.dependencies import get_app_settings, get_payment_gateway
from comedy_connect.application.fee_service import fee_schedule_cache
from comedy_connect.domain.exceptions import PaymentGatewayError
from comedy_connect.domain.roles import UserRole
from comedy_connect.infrastructure.db.models import (
    Base,
    Comedian,
    Show,
    ShowComedian,
    TicketInventory,
    User,
    UserSession,
)
from comedy_connect.infrastructure.db.session import build_engine, get_db
from comedy_connect.infrastructure.payments.razorpay_gateway import RazorpayGateway
from comedy_connect.main import app
from comedy_connect.settings import get_settings


WEBHOOK_SECRET = "whsec_test"


class FakeGateway(RazorpayGateway):
    """Razorpay gateway with order creation stubbed; signature checks stay real."""

    def __init__(self):
        super().__init__(
            key_id="rzp_test_key",
            key_secret="rzp_test_secret",
            webhook_secret=WEBHOOK_SECRET,
        )
        self.fail_orders = False
        self.orders: list[dict] = []
        self._counter = itertools.count(1)

    def create_order(self, amount: int, receipt: str) -> str:
        if self.fail_orders:
            raise PaymentGatewayError("Could not create payment order")
        order_id = f"order_test_{next(self._counter)}"
        self.orders.append({"id": order_id, "amount": amount, "receipt": receipt})
        return order_id


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def payment_event(event: str, order_id: str, payment_id: str) -> bytes:
    payload = {
        "entity": "event",
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": order_id,
                    "status": "captured" if event == "payment.captured" else "failed",
                }
            }
        },
    }
    return json.dumps(payload).encode("utf-8")


@pytest.fixture(autouse=True)
def clear_fee_cache():
    fee_schedule_cache.clear()
    yield
    fee_schedule_cache.clear()


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'comedy_connect.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings():
    return replace(get_settings(), payments_enabled=True, reservation_timeout_seconds=900)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, gateway, settings):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_app_settings] = lambda: settings

    yield TestClient(app)

    app.dependency_overrides.clear()


def make_user(db, role: UserRole = UserRole.AUDIENCE) -> tuple[User, str]:
    user = User(email=f"{uuid4().hex}@example.com", name=role.value.title(), role=role)
    db.add(user)
    db.flush()

    token = uuid4().hex
    db.add(
        UserSession(
            session_token=token,
            user_id=user.id,
            expires=datetime.now(timezone.utc) + timedelta(days=1),
        )
    )
    db.commit()
    return user, token


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_show(
    db,
    creator: User,
    ticket_price: int = 250,
    total_tickets: int = 10,
    published: bool = True,
    days_ahead: int = 7,
    custom_platform_fee=None,
    with_comedian: bool = True,
) -> Show:
    show = Show(
        title="Friday Night Stand-up",
        venue="The Habitat, Mumbai",
        date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
        ticket_price=ticket_price,
        total_tickets=total_tickets,
        is_published=published,
        custom_platform_fee=custom_platform_fee,
        created_by=creator.id,
    )
    db.add(show)
    db.flush()
    db.add(TicketInventory(show_id=show.id, available=total_tickets, locked=0))

    if with_comedian:
        comedian = Comedian(name="Anu Menon", created_by=creator.id)
        db.add(comedian)
        db.flush()
        db.add(ShowComedian(show_id=show.id, comedian_id=comedian.id, order=0))

    db.commit()
    return show


@pytest.fixture
def organizer(db):
    return make_user(db, UserRole.ORGANIZER_VERIFIED)


@pytest.fixture
def admin(db):
    return make_user(db, UserRole.ADMIN)


@pytest.fixture
def audience(db):
    return make_user(db, UserRole.AUDIENCE)
