"""
API публичных ссылок (админ).

Эндпоинты:
- POST /admin/links — опубликовать ссылку на слоты запроса
- GET /admin/links — обзор ссылок (фильтр ?booking_request_id=)
- GET /admin/links/{public_id} — слоты, allow-list и записи ссылки
- POST /admin/links/{public_id}/allow-list — добавить студентов
- DELETE /admin/links/{public_id}/allow-list?identity= — убрать студента
- POST /admin/links/{public_id}/reminders — напомнить незаписавшимся
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_db
from app.api.deps import AdminUser
from app.api.schemas.booking_requests import SlotResponse
from app.api.schemas.public_links import (
    PublicLinkCreate, PublicLinkResponse, PublicLinkDetailsResponse,
    PublicLinkOverviewResponse, PublicLinksListResponse,
    AllowListExtend, AllowListSizeResponse, AllowListEntryResponse,
    StudentBookingResponse, RemindersResponse,
)
from app.services.public_link_service import PublicLinkService

router = APIRouter(prefix="/admin/links")


@router.post("", response_model=PublicLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_public_link(
    data: PublicLinkCreate,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    link = await PublicLinkService(db).create_public_link(
        data.booking_request_id,
        [entry.model_dump() for entry in data.allow_list],
        slot_ids=data.slot_ids,
        created_by=admin.id,
    )
    return PublicLinkResponse.from_model(link)


@router.get("", response_model=PublicLinksListResponse)
async def list_public_links(
    admin: AdminUser,
    booking_request_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    items = await PublicLinkService(db).list_public_links(booking_request_id)
    links = [
        PublicLinkOverviewResponse(
            **PublicLinkResponse.from_model(item.link).model_dump(),
            slot_count=item.slot_count,
            interviewer_count=item.interviewer_count,
            student_count=item.student_count,
            confirmed_count=item.confirmed_count,
        )
        for item in items
    ]
    return PublicLinksListResponse(links=links, total=len(links))


@router.get("/{public_id}", response_model=PublicLinkDetailsResponse)
async def get_public_link(
    public_id: str,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    details = await PublicLinkService(db).get_public_link(public_id)
    return PublicLinkDetailsResponse(
        **PublicLinkResponse.from_model(details.link).model_dump(),
        slots=[SlotResponse.from_model(s) for s in details.slots],
        allow_list=[AllowListEntryResponse.from_model(e) for e in details.allow_list],
        bookings=[StudentBookingResponse.from_model(b) for b in details.bookings],
    )


@router.post("/{public_id}/allow-list", response_model=AllowListSizeResponse)
async def extend_allow_list(
    public_id: str,
    data: AllowListExtend,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Объединение множеств: уже допущенные студенты не меняются, никто не удаляется"""
    size = await PublicLinkService(db).extend_allow_list(public_id, [e.model_dump() for e in data.entries])
    return AllowListSizeResponse(public_id=public_id, size=size)


@router.delete("/{public_id}/allow-list", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_allow_list(
    public_id: str,
    admin: AdminUser,
    identity: str = Query(min_length=1),
    db: AsyncSession = Depends(get_db),
):
    await PublicLinkService(db).remove_from_allow_list(public_id, identity)


@router.post("/{public_id}/reminders", response_model=RemindersResponse)
async def send_reminders(
    public_id: str,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    queued = await PublicLinkService(db).send_reminders(public_id)
    return RemindersResponse(public_id=public_id, queued=queued)
