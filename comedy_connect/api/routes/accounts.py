from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from comedy_connect.api.dependencies import get_app_settings, require_admin
from comedy_connect.api.schemas.schemas import CreatorAccountResponse, CreatorFeeRequest
from comedy_connect.application.account_service import AccountService
from comedy_connect.application.booking_service import BookingService
from comedy_connect.infrastructure.db.models import User
from comedy_connect.infrastructure.db.session import get_db
from comedy_connect.infrastructure.identity.session_identity import CurrentUser
from comedy_connect.settings import Settings


router = APIRouter(prefix="/admin/users", tags=["Admin"])


def account_response(user: User, recomputed: int | None = None) -> CreatorAccountResponse:
    return CreatorAccountResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        custom_platform_fee=(
            str(user.custom_platform_fee)
            if user.custom_platform_fee is not None
            else None
        ),
        recomputed=recomputed,
    )


@router.post("/{user_id}/approve", response_model=CreatorAccountResponse)
def approve_creator(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return account_response(AccountService(db).approve_creator(user_id, admin.id))


@router.post("/{user_id}/reject", response_model=CreatorAccountResponse)
def reject_creator(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return account_response(AccountService(db).reject_creator(user_id, admin.id))


@router.put("/{user_id}/fee", response_model=CreatorAccountResponse)
def set_creator_fee(
    user_id: str,
    request: CreatorFeeRequest,
    admin: CurrentUser = Depends(require_admin),
    settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
):
    user = AccountService(db).set_creator_fee(
        user_id,
        admin.id,
        request.custom_platform_fee,
    )

    recomputed = None
    if request.recompute:
        recomputed = BookingService(db, settings=settings).recompute_platform_fees()

    return account_response(user, recomputed=recomputed)
