"""
Общие зависимости роутеров: идентификация админа по telegram_id.
"""
from typing import Annotated

from fastapi import Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.models import Administrator
from db.session import get_db


def get_telegram_id(
    telegram_id: int | None = Query(default=None)
) -> int:
    """Получить telegram_id из query параметров"""
    if telegram_id is not None:
        return telegram_id
    if settings.is_dev:
        return settings.dev_telegram_id
    raise HTTPException(status_code=400, detail="telegram_id обязателен")


TelegramId = Annotated[int, Depends(get_telegram_id)]


async def verify_admin(
    telegram_id: TelegramId,
    db: AsyncSession = Depends(get_db),
) -> Administrator:
    """Проверить что пользователь - активный админ или суперадмин"""

    # Суперадмин не обязан быть в таблице — создаём "виртуального" админа
    if settings.is_super_admin(telegram_id):
        result = await db.execute(select(Administrator).where(Administrator.telegram_id == telegram_id))
        return result.scalars().first() or Administrator(telegram_id=telegram_id, is_active=True)

    result = await db.execute(
        select(Administrator).where(
            Administrator.telegram_id == telegram_id,
            Administrator.is_active == True
        )
    )
    admin = result.scalars().first()

    if not admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Эта функция доступна только администраторам"
        )

    return admin


AdminUser = Annotated[Administrator, Depends(verify_admin)]
