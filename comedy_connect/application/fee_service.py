# comedy_connect/application/fee_service.py

from decimal import Decimal
from threading import Lock
import logging
import time

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from comedy_connect.domain.exceptions import ValidationError
from comedy_connect.domain.fee_engine import (
    FeeSchedule,
    FeeSlab,
    validate_fee_percent,
    validate_slabs,
)
from comedy_connect.infrastructure.db.models import PlatformConfig
from comedy_connect.infrastructure.repositories.platform_config_repository import (
    PlatformConfigRepository,
    to_schedule,
)
from comedy_connect.settings import Settings, get_settings


logger = logging.getLogger(__name__)


class FeeScheduleCache:
    """
    Process-local cache of the fee schedule with a short TTL.

    Writes in this process clear it immediately; other workers see a new
    schedule once their entry expires.
    """

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._schedule: FeeSchedule | None = None
        self._loaded_at = 0.0
        self._lock = Lock()

    def get(self) -> FeeSchedule | None:
        with self._lock:
            if self._schedule is None:
                return None
            if time.monotonic() - self._loaded_at > self.ttl_seconds:
                self._schedule = None
                return None
            return self._schedule

    def set(self, schedule: FeeSchedule) -> None:
        with self._lock:
            self._schedule = schedule
            self._loaded_at = time.monotonic()

    def clear(self) -> None:
        with self._lock:
            self._schedule = None


fee_schedule_cache = FeeScheduleCache(
    ttl_seconds=get_settings().fee_config_cache_ttl_seconds,
)


class FeeService:
    """Reads and replaces the platform fee configuration."""

    def __init__(
        self,
        db: Session,
        settings: Settings | None = None,
        cache: FeeScheduleCache = fee_schedule_cache,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.cache = cache
        self.repository = PlatformConfigRepository(db)

    def get_config(self) -> PlatformConfig:
        config = self.repository.get()
        if config is not None:
            return config

        # Another worker may insert the default first; its row wins.
        try:
            with self.db.begin_nested():
                config = self.repository.create_default(
                    platform_fee_percent=self.settings.default_platform_fee_percent,
                    booking_fee_percent=self.settings.default_booking_fee_percent,
                )
        except IntegrityError:
            config = self.repository.get()
            if config is None:
                raise
            logger.info("Default platform fee configuration created concurrently")
            return config

        logger.info("Created default platform fee configuration")
        return config

    def load_schedule(self) -> FeeSchedule:
        schedule = to_schedule(self.get_config())
        self.cache.set(schedule)
        return schedule

    def current_schedule(self) -> FeeSchedule:
        cached = self.cache.get()
        if cached is not None:
            return cached
        return self.load_schedule()

    def replace_slabs(
        self,
        slabs: list[FeeSlab],
        platform_fee_percent: Decimal | None = None,
        booking_fee_percent: Decimal | None = None,
        updated_by: str | None = None,
    ) -> PlatformConfig:
        """
        Validate and atomically swap the whole slab set.
        Nothing is written when validation fails.
        """
        problems: list[str] = []
        try:
            ordered = validate_slabs(slabs)
        except ValidationError as exc:
            problems.extend(exc.details)
            ordered = ()

        if platform_fee_percent is not None:
            problems.extend(
                validate_fee_percent(platform_fee_percent, "platform_fee_percent")
            )
        if booking_fee_percent is not None:
            problems.extend(
                validate_fee_percent(booking_fee_percent, "booking_fee_percent")
            )

        if problems:
            raise ValidationError("Invalid fee configuration", details=problems)

        self.get_config()
        config = self.repository.lock()

        config = self.repository.replace(
            config,
            slabs=ordered,
            platform_fee_percent=(
                platform_fee_percent
                if platform_fee_percent is not None
                else Decimal(config.platform_fee_percent)
            ),
            booking_fee_percent=(
                booking_fee_percent
                if booking_fee_percent is not None
                else Decimal(config.booking_fee_percent)
            ),
            updated_by=updated_by,
        )
        self.cache.clear()

        logger.info(
            "Fee configuration replaced: version=%s slabs=%s updated_by=%s",
            config.version,
            len(ordered),
            updated_by,
        )
        return config
