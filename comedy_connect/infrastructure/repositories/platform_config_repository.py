# comedy_connect/infrastructure/repositories/platform_config_repository.py

from decimal import Decimal

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select

from comedy_connect.infrastructure.db.models import FeeSlabRecord, PlatformConfig
from comedy_connect.domain.fee_engine import FeeSchedule, FeeSlab


PLATFORM_FEES_KEY = "PLATFORM_FEES"

DEFAULT_SLABS = (
    FeeSlab(min_price=0, max_price=199, fee_percent=Decimal("0.07")),
    FeeSlab(min_price=200, max_price=400, fee_percent=Decimal("0.08")),
    FeeSlab(min_price=401, max_price=None, fee_percent=Decimal("0.09")),
)


def to_schedule(config: PlatformConfig) -> FeeSchedule:
    return FeeSchedule(
        slabs=tuple(
            FeeSlab(
                min_price=record.min_price,
                max_price=record.max_price,
                fee_percent=Decimal(record.fee_percent),
            )
            for record in config.slabs
        ),
        platform_fee_percent=Decimal(config.platform_fee_percent),
        booking_fee_percent=Decimal(config.booking_fee_percent),
        version=config.version,
    )


class PlatformConfigRepository:
    """
    The singleton fee configuration row and its slabs.
    Callers validate slabs before calling replace().
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self) -> PlatformConfig | None:
        stmt = (
            select(PlatformConfig)
            .where(PlatformConfig.key == PLATFORM_FEES_KEY)
            .options(selectinload(PlatformConfig.slabs))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def lock(self) -> PlatformConfig | None:
        stmt = (
            select(PlatformConfig)
            .where(PlatformConfig.key == PLATFORM_FEES_KEY)
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_default(
        self,
        platform_fee_percent: Decimal,
        booking_fee_percent: Decimal,
    ) -> PlatformConfig:
        config = PlatformConfig(
            key=PLATFORM_FEES_KEY,
            version=1,
            platform_fee_percent=platform_fee_percent,
            booking_fee_percent=booking_fee_percent,
        )
        config.slabs = [
            FeeSlabRecord(
                position=index,
                min_price=slab.min_price,
                max_price=slab.max_price,
                fee_percent=slab.fee_percent,
            )
            for index, slab in enumerate(DEFAULT_SLABS)
        ]
        self.db.add(config)
        self.db.flush()
        return config

    def replace(
        self,
        config: PlatformConfig,
        slabs: tuple[FeeSlab, ...],
        platform_fee_percent: Decimal,
        booking_fee_percent: Decimal,
        updated_by: str | None,
    ) -> PlatformConfig:
        config.slabs.clear()
        self.db.flush()

        config.slabs.extend(
            FeeSlabRecord(
                position=index,
                min_price=slab.min_price,
                max_price=slab.max_price,
                fee_percent=slab.fee_percent,
            )
            for index, slab in enumerate(slabs)
        )
        config.platform_fee_percent = platform_fee_percent
        config.booking_fee_percent = booking_fee_percent
        config.updated_by = updated_by
        config.version += 1
        self.db.flush()
        return config
