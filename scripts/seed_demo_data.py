from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from comedy_connect.domain.roles import UserRole
from comedy_connect.infrastructure.db.models import (
    Comedian,
    Show,
    ShowComedian,
    TicketInventory,
    User,
    UserSession,
)
from comedy_connect.infrastructure.db.session import SessionLocal


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    ist = timezone(timedelta(hours=5, minutes=30))
    now_ist = datetime.now(ist)
    target = now_ist + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _user(db, email: str, name: str, role: UserRole, token: str) -> User:
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = User(email=email, name=name, role=role)
        db.add(user)
        db.flush()
    else:
        user.role = role

    session = db.execute(
        select(UserSession).where(UserSession.session_token == token)
    ).scalar_one_or_none()
    expires = datetime.now(timezone.utc) + timedelta(days=30)
    if session is None:
        db.add(UserSession(session_token=token, user_id=user.id, expires=expires))
    else:
        session.expires = expires
    return user


def seed_users(db) -> dict[str, User]:
    return {
        "admin": _user(db, "admin@comedyconnect.in", "Admin", UserRole.ADMIN, "demo-admin-token"),
        "organizer": _user(
            db,
            "organizer@comedyconnect.in",
            "Laugh Factory Bengaluru",
            UserRole.ORGANIZER_VERIFIED,
            "demo-organizer-token",
        ),
        "audience": _user(
            db,
            "audience@comedyconnect.in",
            "Priya",
            UserRole.AUDIENCE,
            "demo-audience-token",
        ),
    }


def seed_shows(db, organizer: User) -> None:
    show_defs = [
        {
            "title": "Open Mic Tuesdays",
            "venue": "The Comedy Box, Indiranagar, Bengaluru",
            "date": _dt(days_from_now=5, hour=20, minute=0),
            "ticket_price": 149,
            "total_tickets": 80,
            "comedians": ["Rohan Mehta", "Asha Iyer"],
        },
        {
            "title": "Late Night Roast",
            "venue": "Canvas Laugh Club, Lower Parel, Mumbai",
            "date": _dt(days_from_now=12, hour=21, minute=30),
            "ticket_price": 499,
            "total_tickets": 150,
            "comedians": ["Kabir Shah"],
        },
    ]

    for item in show_defs:
        existing = db.execute(
            select(Show).where(Show.title == item["title"])
        ).scalar_one_or_none()
        if existing:
            # Capacity of a seeded show is left alone once bookings may exist.
            existing.date = item["date"]
            existing.venue = item["venue"]
            continue

        show = Show(
            title=item["title"],
            venue=item["venue"],
            date=item["date"],
            ticket_price=item["ticket_price"],
            total_tickets=item["total_tickets"],
            is_published=True,
            created_by=organizer.id,
        )
        db.add(show)
        db.flush()
        db.add(
            TicketInventory(
                show_id=show.id,
                available=item["total_tickets"],
                locked=0,
            )
        )

        for order, name in enumerate(item["comedians"]):
            comedian = db.execute(
                select(Comedian).where(Comedian.name == name)
            ).scalar_one_or_none()
            if comedian is None:
                comedian = Comedian(name=name, created_by=organizer.id)
                db.add(comedian)
                db.flush()
            db.add(ShowComedian(show_id=show.id, comedian_id=comedian.id, order=order))


def main() -> None:
    db = SessionLocal()
    try:
        users = seed_users(db)
        seed_shows(db, users["organizer"])
        db.commit()
        print(
            "Seed complete: admin, organizer and audience sessions "
            "(demo-*-token), two published comedy shows."
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
