# comedy_connect/api/dependencies.py

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from comedy_connect.domain.exceptions import ForbiddenError, UnauthorizedError
from comedy_connect.infrastructure.db.session import get_db
from comedy_connect.infrastructure.identity.session_identity import (
    CurrentUser,
    SessionIdentityProvider,
)
from comedy_connect.infrastructure.payments.razorpay_gateway import RazorpayGateway
from comedy_connect.settings import Settings, get_settings


session_bearer = HTTPBearer(auto_error=False)


def get_app_settings() -> Settings:
    return get_settings()


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(session_bearer),
    session_token: str | None = Cookie(default=None),
    db: Session = Depends(get_db),
) -> CurrentUser | None:
    token = credentials.credentials if credentials else session_token
    return SessionIdentityProvider(db).lookup(token)


def require_user(
    user: CurrentUser | None = Depends(get_current_user),
) -> CurrentUser:
    if user is None:
        raise UnauthorizedError()
    return user


def require_admin(user: CurrentUser = Depends(require_user)) -> CurrentUser:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user


def get_payment_gateway(
    settings: Settings = Depends(get_app_settings),
) -> RazorpayGateway:
    return RazorpayGateway.from_settings(settings)


def get_order_gateway(
    settings: Settings = Depends(get_app_settings),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
) -> RazorpayGateway | None:
    # None switches bookings to pay-at-venue confirmation.
    if not settings.payments_enabled:
        return None
    return gateway
