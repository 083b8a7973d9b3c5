# comedy_connect/infrastructure/repositories/user_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from comedy_connect.infrastructure.db.models import User


class UserRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: str) -> User | None:
        stmt = select(User).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock(self, user_id: str) -> User | None:
        """
        SELECT ... FOR UPDATE
        Serializes admin review of one account.
        """
        stmt = select(User).where(User.id == user_id).with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()
