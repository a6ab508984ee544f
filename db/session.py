from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from db.engine import async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency. Сессия на запрос; незакоммиченное откатывается при ошибке."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
