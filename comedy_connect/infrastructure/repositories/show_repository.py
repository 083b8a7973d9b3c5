# comedy_connect/infrastructure/repositories/show_repository.py

from datetime import datetime

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, select

from comedy_connect.infrastructure.db.models import Comedian, Show, ShowComedian


class ShowRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, show_id: str) -> Show | None:
        stmt = (
            select(Show)
            .where(Show.id == show_id)
            .options(selectinload(Show.show_comedians))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_published_upcoming(self, now: datetime) -> list[Show]:
        stmt = (
            select(Show)
            .where(Show.is_published.is_(True))
            .where(Show.date > now)
            .order_by(Show.date)
            .options(selectinload(Show.show_comedians))
        )
        return list(self.db.execute(stmt).scalars().all())

    def lock(self, show_id: str) -> Show | None:
        """
        SELECT ... FOR UPDATE
        Serializes publish, capacity and disbursal changes on one show.
        """
        stmt = select(Show).where(Show.id == show_id).with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def get_for_booking(self, show_id: str) -> Show | None:
        # Shared lock: bookings may run side by side but wait for an
        # unpublish holding the row.
        stmt = select(Show).where(Show.id == show_id).with_for_update(read=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def add(self, show: Show) -> Show:
        self.db.add(show)
        self.db.flush()
        return show

    def count_comedians(self, show_id: str) -> int:
        stmt = select(func.count(ShowComedian.id)).where(ShowComedian.show_id == show_id)
        return self.db.execute(stmt).scalar_one()

    def existing_comedian_ids(self, comedian_ids: list[str]) -> set[str]:
        if not comedian_ids:
            return set()
        stmt = select(Comedian.id).where(Comedian.id.in_(comedian_ids))
        return set(self.db.execute(stmt).scalars().all())

    def comedian_profile_for(self, user_id: str) -> Comedian | None:
        stmt = select(Comedian).where(Comedian.created_by == user_id)
        return self.db.execute(stmt).scalars().first()

    def link_comedians(self, show: Show, comedian_ids: list[str]) -> None:
        show.show_comedians.clear()
        self.db.flush()
        for index, comedian_id in enumerate(comedian_ids):
            show.show_comedians.append(
                ShowComedian(
                    show_id=show.id,
                    comedian_id=comedian_id,
                    order=index,
                )
            )
