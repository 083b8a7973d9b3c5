# comedy_connect/application/booking_tasks.py

import logging

from sqlalchemy.orm import sessionmaker

from comedy_connect.application.booking_service import BookingService
from comedy_connect.infrastructure.db.session import SessionLocal, get_db_session
from comedy_connect.settings import Settings
from comedy_connect.worker import celery_app


logger = logging.getLogger(__name__)


def sweep_stale_bookings(
    session_factory: sessionmaker,
    batch_size: int = 100,
    settings: Settings | None = None,
) -> int:
    """
    Cancel one batch of PENDING bookings whose reservation window has
    passed and hand their tickets back, in a transaction of its own.

    Overlapping sweeps are harmless: the conditional status change lets
    only one of them release a booking's tickets.
    """
    with get_db_session(session_factory) as db:
        expired = BookingService(db, settings=settings).expire_stale_bookings(
            batch_size=batch_size,
        )
    if expired:
        logger.info("Expired %s stale booking(s)", expired)
    return expired


@celery_app.task
def expire_stale_bookings(batch_size: int = 100) -> int:
    """Periodic task scheduled by Celery beat (see comedy_connect.worker)."""
    try:
        return sweep_stale_bookings(SessionLocal, batch_size=batch_size)
    except Exception:
        logger.exception("Booking sweep failed")
        raise
