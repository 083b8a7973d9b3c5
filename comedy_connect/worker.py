"""
Celery application for periodic booking maintenance.

Run a worker and the beat scheduler next to the API:

    celery -A comedy_connect.worker worker --loglevel=info
    celery -A comedy_connect.worker beat --loglevel=info
"""

from celery import Celery

from comedy_connect.settings import get_settings


settings = get_settings()

celery_app = Celery(
    "comedy_connect",
    broker=settings.celery_broker_url,
    include=["comedy_connect.application.booking_tasks"],
)

celery_app.conf.beat_schedule = {
    # Hand abandoned reservations back to their shows
    "expire-stale-bookings": {
        "task": "comedy_connect.application.booking_tasks.expire_stale_bookings",
        "schedule": settings.booking_sweep_interval_seconds,
        "options": {"expires": settings.booking_sweep_interval_seconds},
    },
}

celery_app.conf.update(
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)
