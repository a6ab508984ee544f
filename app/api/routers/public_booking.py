"""
Публичная запись студентов по ссылке.

Эндпоинты:
- GET /links/{public_id}/slots?identity= — свободные слоты (только для допущенных)
- POST /links/{public_id}/slots/{slot_id}/claim — записаться на слот
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_db
from app.api.schemas.booking_requests import SlotResponse, SlotsListResponse
from app.api.schemas.public_links import ClaimRequest, StudentBookingResponse
from app.services.public_link_service import PublicLinkService
from app.services.reservation_service import ReservationService

router = APIRouter(prefix="/links/{public_id}")


@router.get("/slots", response_model=SlotsListResponse)
async def list_available_slots(
    public_id: str,
    identity: str = Query(min_length=1, description="Email или studentId из allow-list"),
    db: AsyncSession = Depends(get_db),
):
    slots = await PublicLinkService(db).list_available_slots(public_id, identity)
    return SlotsListResponse(slots=[SlotResponse.from_model(s) for s in slots], total=len(slots))


@router.post(
    "/slots/{slot_id}/claim",
    response_model=StudentBookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def claim_slot(
    public_id: str,
    slot_id: str,
    data: ClaimRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Записаться на слот.
    При 409 slot_unavailable нужно перезапросить список слотов и выбрать другой.
    """
    booking = await ReservationService(db).claim_slot(public_id, slot_id, data.identity, data.name)
    return StudentBookingResponse.from_model(booking)
