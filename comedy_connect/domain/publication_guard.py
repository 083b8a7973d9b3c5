# comedy_connect/domain/publication_guard.py

from datetime import datetime

from comedy_connect.domain.exceptions import ValidationError


def publish_problems(
    is_published: bool,
    show_date: datetime,
    total_tickets: int,
    comedian_count: int,
    now: datetime,
) -> list[str]:
    """Readiness checks a draft must pass before it goes on sale."""
    problems: list[str] = []

    if is_published:
        problems.append("Show is already published")
    if comedian_count < 1:
        problems.append("Show must have at least one comedian")
    if show_date <= now:
        problems.append("Show date must be in the future")
    if total_tickets <= 0:
        problems.append("Show must have at least 1 ticket")

    return problems


def ensure_publishable(
    is_published: bool,
    show_date: datetime,
    total_tickets: int,
    comedian_count: int,
    now: datetime,
) -> None:
    problems = publish_problems(
        is_published=is_published,
        show_date=show_date,
        total_tickets=total_tickets,
        comedian_count=comedian_count,
        now=now,
    )
    if problems:
        raise ValidationError("Show cannot be published", details=problems)


def ensure_unpublishable(is_published: bool, pending_bookings: int) -> None:
    if not is_published:
        raise ValidationError("Show is already unpublished")
    if pending_bookings > 0:
        raise ValidationError(
            "Cannot unpublish a show while bookings are awaiting payment",
            details=[f"{pending_bookings} pending booking(s)"],
        )
