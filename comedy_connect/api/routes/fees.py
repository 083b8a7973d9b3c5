from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from comedy_connect.api.dependencies import get_app_settings, require_admin
from comedy_connect.api.schemas.schemas import (
    FeeConfigEnvelope,
    FeeConfigRequest,
    FeeConfigResponse,
)
from comedy_connect.application.booking_service import BookingService
from comedy_connect.application.fee_service import FeeService
from comedy_connect.domain.fee_engine import FeeSlab
from comedy_connect.infrastructure.db.models import PlatformConfig
from comedy_connect.infrastructure.db.session import get_db
from comedy_connect.infrastructure.identity.session_identity import CurrentUser
from comedy_connect.settings import Settings


router = APIRouter(prefix="/admin/fees", tags=["Admin"])


def fee_config_response(config: PlatformConfig) -> FeeConfigResponse:
    return FeeConfigResponse(
        version=config.version,
        platform_fee_percent=str(config.platform_fee_percent),
        booking_fee_percent=str(config.booking_fee_percent),
        slabs=[
            {
                "min_price": slab.min_price,
                "max_price": slab.max_price,
                "fee_percent": str(slab.fee_percent),
            }
            for slab in config.slabs
        ],
        updated_by=config.updated_by,
        updated_at=config.updated_at.isoformat() if config.updated_at else None,
    )


@router.get("", response_model=FeeConfigEnvelope)
def get_fee_config(
    admin: CurrentUser = Depends(require_admin),
    settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
):
    config = FeeService(db, settings=settings).get_config()
    return FeeConfigEnvelope(fee_config=fee_config_response(config))


@router.api_route("", methods=["POST", "PUT"], response_model=FeeConfigEnvelope)
def replace_fee_config(
    request: FeeConfigRequest,
    admin: CurrentUser = Depends(require_admin),
    settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
):
    config = FeeService(db, settings=settings).replace_slabs(
        slabs=[
            FeeSlab(
                min_price=slab.min_price,
                max_price=slab.max_price,
                fee_percent=slab.fee_percent,
            )
            for slab in request.slabs
        ],
        platform_fee_percent=request.platform_fee_percent,
        booking_fee_percent=request.booking_fee_percent,
        updated_by=admin.id,
    )

    recomputed = None
    if request.recompute:
        recomputed = BookingService(db, settings=settings).recompute_platform_fees()

    db.refresh(config)
    return FeeConfigEnvelope(
        fee_config=fee_config_response(config),
        recomputed=recomputed,
    )
