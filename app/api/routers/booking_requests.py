"""
API для запросов на бронирование (админ).

Эндпоинты:
- POST /admin/booking-requests — создать запрос и пригласить интервьюеров
- GET /admin/booking-requests — список запросов
- GET /admin/booking-requests/{id} — запрос с приглашёнными и статусом отправок
- POST /admin/booking-requests/{id}/invite — дослать приглашения
- POST /admin/booking-requests/{id}/collect — перевести в AvailabilityCollected вручную
- POST /admin/booking-requests/{id}/close — закрыть запрос
- GET /admin/booking-requests/{id}/availability — доступность всех интервьюеров
- DELETE /admin/booking-requests/{id}/submissions/{interviewer_id} — сбросить отправку
- POST /admin/booking-requests/{id}/materialize — нарезать слоты
- GET /admin/booking-requests/{id}/slots — слоты запроса
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_db
from db.models import SlotState
from db.repositories.slots import SlotRepository
from app.api.deps import AdminUser
from app.api.schemas.booking_requests import (
    BookingRequestCreate, BookingRequestResponse, BookingRequestDetailsResponse,
    BookingRequestsListResponse, InvitationResponse, InviteRequest, InviteResponse,
    AvailabilityListResponse, InterviewerAvailabilityResponse,
    MaterializeRequest, SlotResponse, SlotsListResponse,
)
from app.services.availability_service import AvailabilityService
from app.services.booking_request_service import BookingRequestService
from app.services.slot_service import SlotService

router = APIRouter(prefix="/admin/booking-requests")


async def _details(service: BookingRequestService, booking_request_id: int) -> BookingRequestDetailsResponse:
    details = await service.details(booking_request_id)
    base = BookingRequestResponse.from_model(details.booking_request)
    return BookingRequestDetailsResponse(
        **base.model_dump(),
        invitations=[InvitationResponse.from_model(inv) for inv in details.invitations],
        submitted_count=sum(1 for inv in details.invitations if inv.submitted_at),
    )


@router.post("", response_model=BookingRequestDetailsResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_request(
    data: BookingRequestCreate,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    service = BookingRequestService(db)
    booking_request = await service.create(
        data.booking_date,
        data.interviewer_ids,
        domain=data.domain,
        slot_duration_minutes=data.slot_duration_minutes,
        created_by=admin.id,
    )
    return await _details(service, booking_request.id)


@router.get("", response_model=BookingRequestsListResponse)
async def list_booking_requests(
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    items = await BookingRequestService(db).list_all()
    return BookingRequestsListResponse(
        booking_requests=[BookingRequestResponse.from_model(br) for br in items],
        total=len(items),
    )


@router.get("/{booking_request_id}", response_model=BookingRequestDetailsResponse)
async def get_booking_request(
    booking_request_id: int,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    return await _details(BookingRequestService(db), booking_request_id)


@router.post("/{booking_request_id}/invite", response_model=InviteResponse)
async def invite_interviewers(
    booking_request_id: int,
    data: InviteRequest,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    invited = await BookingRequestService(db).invite(booking_request_id, data.interviewer_ids)
    return InviteResponse(invited=invited)


@router.post("/{booking_request_id}/collect", response_model=BookingRequestResponse)
async def mark_availability_collected(
    booking_request_id: int,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    booking_request = await BookingRequestService(db).mark_availability_collected(booking_request_id)
    return BookingRequestResponse.from_model(booking_request)


@router.post("/{booking_request_id}/close", response_model=BookingRequestResponse)
async def close_booking_request(
    booking_request_id: int,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Закрыть запрос: запись по всем его ссылкам замораживается, чтение работает"""
    booking_request = await BookingRequestService(db).close(booking_request_id)
    return BookingRequestResponse.from_model(booking_request)


@router.get("/{booking_request_id}/availability", response_model=AvailabilityListResponse)
async def get_availability(
    booking_request_id: int,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    items = await AvailabilityService(db).get_availability(booking_request_id)
    return AvailabilityListResponse(
        booking_request_id=booking_request_id,
        interviewers=[InterviewerAvailabilityResponse.from_result(item) for item in items],
    )


@router.delete("/{booking_request_id}/submissions/{interviewer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_submission(
    booking_request_id: int,
    interviewer_id: int,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    await AvailabilityService(db).reset_submission(booking_request_id, interviewer_id)


@router.post("/{booking_request_id}/materialize", response_model=SlotsListResponse)
async def materialize_slots(
    booking_request_id: int,
    admin: AdminUser,
    data: Optional[MaterializeRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    duration = data.slot_duration_minutes if data else None
    slots = await SlotService(db).materialize(booking_request_id, duration)
    return SlotsListResponse(slots=[SlotResponse.from_model(s) for s in slots], total=len(slots))


@router.get("/{booking_request_id}/slots", response_model=SlotsListResponse)
async def list_slots(
    booking_request_id: int,
    admin: AdminUser,
    state: Optional[List[SlotState]] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    await BookingRequestService(db).get(booking_request_id)
    slots = await SlotRepository(db).list_for_request(booking_request_id, state)
    return SlotsListResponse(slots=[SlotResponse.from_model(s) for s in slots], total=len(slots))
