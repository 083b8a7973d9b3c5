from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from comedy_connect.api.dependencies import require_admin
from comedy_connect.api.schemas.schemas import PayoutResponse
from comedy_connect.application.payout_service import PayoutService, PayoutSummary
from comedy_connect.infrastructure.db.session import get_db
from comedy_connect.infrastructure.identity.session_identity import CurrentUser


router = APIRouter(prefix="/admin/shows", tags=["Admin"])


def payout_response(summary: PayoutSummary) -> PayoutResponse:
    return PayoutResponse(
        show_id=summary.show_id,
        bookings=summary.bookings,
        tickets_sold=summary.tickets_sold,
        gross_revenue=summary.gross_revenue,
        platform_fees=summary.platform_fees,
        booking_fees=summary.booking_fees,
        net_payout=summary.net_payout,
        pending_bookings=summary.pending_bookings,
        is_disbursed=summary.is_disbursed,
    )


@router.get("/{show_id}/payout", response_model=PayoutResponse)
def get_payout(
    show_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return payout_response(PayoutService(db).summarize(show_id))


@router.post("/{show_id}/disburse", response_model=PayoutResponse)
def disburse_payout(
    show_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return payout_response(PayoutService(db).disburse(show_id, admin.id))
