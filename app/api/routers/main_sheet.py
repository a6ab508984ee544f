"""
API для Main Sheet (выгрузка записей в Google таблицу).

Эндпоинты:
- PUT /admin/main-sheet/sheet-url — сохранить ссылку на таблицу
- GET /admin/main-sheet/sheet-url — текущая ссылка
- POST /admin/main-sheet/sync — догнать таблицу по ленте записей
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
import redis.asyncio as redis

from db.session import get_db
from app.core.redis import get_redis
from app.api.deps import AdminUser
from app.api.schemas.bookings import MainSheetSyncRequest, MainSheetSyncResponse
from app.services.booking_feed_service import BookingFeedService, MAIN_SHEET_URL_KEY

router = APIRouter(prefix="/admin/main-sheet")


class SetSheetUrlRequest(BaseModel):
    """Запрос на установку ссылки на Google таблицу"""
    sheet_url: str = Field(..., min_length=1, description="URL Google таблицы")


class SheetUrlResponse(BaseModel):
    sheet_url: str | None = None


@router.put("/sheet-url", response_model=SheetUrlResponse)
async def set_sheet_url(
    data: SetSheetUrlRequest,
    admin: AdminUser,
    redis_client: redis.Redis = Depends(get_redis),
):
    sheet_url = data.sheet_url.strip()
    await redis_client.set(MAIN_SHEET_URL_KEY, sheet_url)
    return SheetUrlResponse(sheet_url=sheet_url)


@router.get("/sheet-url", response_model=SheetUrlResponse)
async def get_sheet_url(
    admin: AdminUser,
    redis_client: redis.Redis = Depends(get_redis),
):
    return SheetUrlResponse(sheet_url=await redis_client.get(MAIN_SHEET_URL_KEY))


@router.post("/sync", response_model=MainSheetSyncResponse)
async def sync_main_sheet(
    admin: AdminUser,
    data: MainSheetSyncRequest = MainSheetSyncRequest(),
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """Выгрузить в таблицу подтверждения и отмены, появившиеся после прошлой синхронизации"""
    sheet_url = data.sheet_url or await redis_client.get(MAIN_SHEET_URL_KEY)
    if not sheet_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ссылка на Google таблицу не настроена. Сначала установите ссылку."
        )

    result = await BookingFeedService(db).sync_main_sheet(redis_client, sheet_url)
    return MainSheetSyncResponse(**result)
