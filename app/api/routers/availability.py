"""
API доступности для интервьюера.

Эндпоинты:
- GET /booking-requests/{id}/availability/{interviewer_id} — мои текущие окна
- PUT /booking-requests/{id}/availability/{interviewer_id} — отправить окна (заменяет прошлые)
- GET/PUT/DELETE /booking-requests/{id}/availability/{interviewer_id}/draft — черновик в Redis
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from db.session import get_db
from app.core.redis import get_redis
from app.api.schemas.booking_requests import (
    AvailabilitySubmit, InterviewerAvailabilityResponse,
    DraftSave, DraftResponse,
)
from app.services.availability_service import AvailabilityService
from app.services.draft_service import DraftService

router = APIRouter(prefix="/booking-requests/{booking_request_id}/availability/{interviewer_id}")


@router.get("", response_model=InterviewerAvailabilityResponse)
async def get_my_availability(
    booking_request_id: int,
    interviewer_id: int,
    db: AsyncSession = Depends(get_db),
):
    result = await AvailabilityService(db).get_my_availability(interviewer_id, booking_request_id)
    return InterviewerAvailabilityResponse.from_result(result)


@router.put("", response_model=InterviewerAvailabilityResponse)
async def submit_availability(
    booking_request_id: int,
    interviewer_id: int,
    data: AvailabilitySubmit,
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """
    Отправить доступность.
    Повторная отправка заменяет прошлую, пустой список снимает доступность.
    """
    service = AvailabilityService(db, drafts=DraftService(redis_client))
    await service.submit(interviewer_id, booking_request_id, [w.to_window() for w in data.windows])
    result = await service.get_my_availability(interviewer_id, booking_request_id)
    return InterviewerAvailabilityResponse.from_result(result)


# === Черновики ===

@router.get("/draft", response_model=DraftResponse)
async def get_draft(
    booking_request_id: int,
    interviewer_id: int,
    redis_client: redis.Redis = Depends(get_redis),
):
    draft = await DraftService(redis_client).get_draft(interviewer_id, booking_request_id)
    return DraftResponse.from_draft(draft)


@router.put("/draft", response_model=DraftResponse)
async def save_draft(
    booking_request_id: int,
    interviewer_id: int,
    data: DraftSave,
    redis_client: redis.Redis = Depends(get_redis),
):
    draft = await DraftService(redis_client).save_draft(interviewer_id, booking_request_id, data.windows)
    return DraftResponse.from_draft(draft)


@router.delete("/draft", status_code=status.HTTP_204_NO_CONTENT)
async def delete_draft(
    booking_request_id: int,
    interviewer_id: int,
    redis_client: redis.Redis = Depends(get_redis),
):
    await DraftService(redis_client).delete_draft(interviewer_id, booking_request_id)
