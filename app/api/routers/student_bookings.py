"""
API записей студентов (админ).

Эндпоинты:
- GET /admin/bookings/pipeline — допущенные студенты и их записи
- GET /admin/bookings/host-emails — email хостов встреч
- GET /admin/bookings/feed?since= — лента подтверждений/отмен для Main Sheet
- GET /admin/bookings/{id} — запись
- PATCH /admin/bookings/{id} — хост и название встречи
- POST /admin/bookings/{id}/cancel — отменить запись
- POST /admin/bookings/{id}/meet-link — получить Meet-ссылку
"""
from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_db
from app.api.deps import AdminUser
from app.api.schemas.bookings import (
    CancelBookingRequest, StudentBookingUpdate,
    PipelineResponse, PipelineRowResponse, HostEmailsResponse, FeedResponse,
)
from app.api.schemas.public_links import StudentBookingResponse
from app.services.booking_feed_service import BookingFeedService
from app.services.reservation_service import ReservationService
from app.services.student_booking_service import StudentBookingService

router = APIRouter(prefix="/admin/bookings")


@router.get("/pipeline", response_model=PipelineResponse)
async def get_student_pipeline(
    admin: AdminUser,
    public_id: Optional[str] = Query(default=None),
    booking_date: Optional[date_type] = Query(default=None, alias="date"),
    domain: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    rows = await StudentBookingService(db).pipeline(public_id, booking_date, domain)
    return PipelineResponse(
        rows=[PipelineRowResponse.from_result(row) for row in rows],
        total=len(rows),
        booked=sum(1 for row in rows if row.booking),
    )


@router.get("/host-emails", response_model=HostEmailsResponse)
async def list_host_emails(
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    return HostEmailsResponse(host_emails=await StudentBookingService(db).host_emails())


@router.get("/feed", response_model=FeedResponse)
async def list_bookings_feed(
    admin: AdminUser,
    since: int = Query(default=0, ge=0, description="Курсор: id последнего обработанного события"),
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    items, next_cursor = await BookingFeedService(db).list_bookings(since, limit)
    return FeedResponse(items=items, next_cursor=next_cursor)


@router.get("/{booking_id}", response_model=StudentBookingResponse)
async def get_booking(
    booking_id: int,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    return StudentBookingResponse.from_model(await StudentBookingService(db).get(booking_id))


@router.patch("/{booking_id}", response_model=StudentBookingResponse)
async def update_booking(
    booking_id: int,
    data: StudentBookingUpdate,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    booking = await StudentBookingService(db).update(booking_id, data.host_email, data.event_title)
    return StudentBookingResponse.from_model(booking)


@router.post("/{booking_id}/cancel", response_model=StudentBookingResponse)
async def cancel_booking(
    booking_id: int,
    data: CancelBookingRequest,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Повторная отмена не ошибка — возвращается текущее состояние"""
    booking = await ReservationService(db).cancel_booking(booking_id, data.release_slot)
    return StudentBookingResponse.from_model(booking)


@router.post("/{booking_id}/meet-link", response_model=StudentBookingResponse)
async def generate_meet_link(
    booking_id: int,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    booking = await StudentBookingService(db).generate_meet_link(booking_id)
    return StudentBookingResponse.from_model(booking)
