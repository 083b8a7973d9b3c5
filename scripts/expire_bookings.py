"""
Cancel PENDING bookings whose reservation window has passed.

Runs the same pass as the Celery beat task, for one-off use or cron
where no worker is deployed.
"""

import argparse
import logging

from comedy_connect.application.booking_tasks import sweep_stale_bookings
from comedy_connect.infrastructure.db.session import SessionLocal
from comedy_connect.settings import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="maximum bookings to expire per pass",
    )
    parser.add_argument(
        "--until-empty",
        action="store_true",
        help="repeat passes until no stale booking is left",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    total = 0
    while True:
        expired = sweep_stale_bookings(
            SessionLocal,
            batch_size=args.batch_size,
            settings=settings,
        )
        total += expired
        if not args.until_empty or expired < args.batch_size:
            break

    print(f"Expired {total} booking(s).")


if __name__ == "__main__":
    main()
