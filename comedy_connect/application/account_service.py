# comedy_connect/application/account_service.py

from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from comedy_connect.domain.exceptions import NotFoundError, ValidationError
from comedy_connect.domain.fee_engine import validate_fee_percent
from comedy_connect.domain.roles import UNVERIFIED_ROLES, VERIFIED_ROLES
from comedy_connect.infrastructure.db.models import User
from comedy_connect.infrastructure.repositories.user_repository import UserRepository


logger = logging.getLogger(__name__)


class AccountService:
    """
    Admin review of organizer and comedian accounts.

    Only verified creators may publish shows. Rejecting a verified
    account revokes that; shows it already published stay on sale.
    """

    def __init__(self, db: Session):
        self.db = db
        self.user_repository = UserRepository(db)

    def approve_creator(self, user_id: str, admin_id: str) -> User:
        user = self._lock_creator(user_id)
        user.role = VERIFIED_ROLES[user.role]
        self.db.flush()

        logger.info("Creator %s approved by admin %s (role %s)", user.id, admin_id, user.role.value)
        return user

    def reject_creator(self, user_id: str, admin_id: str) -> User:
        user = self._lock_creator(user_id)
        user.role = UNVERIFIED_ROLES[user.role]
        self.db.flush()

        logger.info("Creator %s rejected by admin %s (role %s)", user.id, admin_id, user.role.value)
        return user

    def set_creator_fee(
        self,
        user_id: str,
        admin_id: str,
        custom_platform_fee: Decimal | None,
    ) -> User:
        """Set or clear the creator's account-wide platform fee rate."""
        if custom_platform_fee is not None:
            problems = validate_fee_percent(custom_platform_fee, "custom_platform_fee")
            if problems:
                raise ValidationError("Invalid creator fee", details=problems)

        user = self._lock_creator(user_id)
        user.custom_platform_fee = custom_platform_fee
        self.db.flush()

        logger.info(
            "Creator %s platform fee set to %s by admin %s",
            user.id,
            custom_platform_fee,
            admin_id,
        )
        return user

    def _lock_creator(self, user_id: str) -> User:
        user = self.user_repository.lock(user_id)
        if not user:
            raise NotFoundError("User")
        if not user.role.is_creator:
            raise ValidationError(
                f"User {user.id} is not an organizer or comedian account"
            )
        return user
