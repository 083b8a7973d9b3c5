from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from comedy_connect.api.dependencies import get_current_user, require_user
from comedy_connect.api.schemas.schemas import ShowCreate, ShowResponse, ShowUpdate
from comedy_connect.application.show_service import ShowService
from comedy_connect.infrastructure.db.models import Show
from comedy_connect.infrastructure.db.session import get_db
from comedy_connect.infrastructure.identity.session_identity import CurrentUser
from comedy_connect.infrastructure.repositories.inventory_ledger import InventoryLedger


router = APIRouter(prefix="/shows", tags=["Shows"])


def show_response(db: Session, show: Show) -> ShowResponse:
    inventory = InventoryLedger(db).get(show.id)
    return ShowResponse(
        id=show.id,
        title=show.title,
        description=show.description,
        date=show.date.isoformat(),
        venue=show.venue,
        ticket_price=show.ticket_price,
        total_tickets=show.total_tickets,
        available_tickets=inventory.available if inventory else None,
        is_published=show.is_published,
        is_disbursed=show.is_disbursed,
        custom_platform_fee=(
            str(show.custom_platform_fee)
            if show.custom_platform_fee is not None
            else None
        ),
        comedian_ids=[link.comedian_id for link in show.show_comedians],
        created_by=show.created_by,
    )


@router.post("", response_model=ShowResponse)
def create_show(
    request: ShowCreate,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    show = ShowService(db).create_show(
        user=user,
        title=request.title,
        description=request.description,
        date=request.date,
        venue=request.venue,
        ticket_price=request.ticket_price,
        total_tickets=request.total_tickets,
        comedian_ids=request.comedian_ids,
        custom_platform_fee=request.custom_platform_fee,
    )
    return show_response(db, show)


@router.get("", response_model=list[ShowResponse])
def list_shows(db: Session = Depends(get_db)):
    return [show_response(db, show) for show in ShowService(db).list_upcoming()]


@router.get("/{show_id}", response_model=ShowResponse)
def get_show(
    show_id: str,
    user: CurrentUser | None = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    show = ShowService(db).get_show(show_id, user)
    return show_response(db, show)


@router.patch("/{show_id}", response_model=ShowResponse)
def update_show(
    show_id: str,
    request: ShowUpdate,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    changes = request.model_dump(exclude_unset=True)
    show = ShowService(db).update_show(show_id, user, changes)
    return show_response(db, show)


@router.post("/{show_id}/publish", response_model=ShowResponse)
def publish_show(
    show_id: str,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    show = ShowService(db).publish_show(show_id, user)
    return show_response(db, show)


@router.post("/{show_id}/unpublish", response_model=ShowResponse)
def unpublish_show(
    show_id: str,
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    show = ShowService(db).unpublish_show(show_id, user)
    return show_response(db, show)
