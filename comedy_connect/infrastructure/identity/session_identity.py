# comedy_connect/infrastructure/identity/session_identity.py

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session
from sqlalchemy import select

from comedy_connect.infrastructure.db.models import User, UserSession
from comedy_connect.domain.roles import UserRole


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin


class SessionIdentityProvider:
    """
    Resolves a session token issued by the identity provider to a user.
    Expired or unknown tokens resolve to None.
    """

    def __init__(self, db: Session):
        self.db = db

    def lookup(self, session_token: str | None) -> CurrentUser | None:
        if not session_token:
            return None

        now = datetime.now(timezone.utc)
        stmt = (
            select(User)
            .join(UserSession, UserSession.user_id == User.id)
            .where(UserSession.session_token == session_token)
            .where(UserSession.expires > now)
        )
        user = self.db.execute(stmt).scalar_one_or_none()
        if user is None:
            return None

        return CurrentUser(id=user.id, email=user.email, role=user.role)
