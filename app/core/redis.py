import logging
from typing import AsyncGenerator

import redis.asyncio as redis

from config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Асинхронный клиент Redis: черновики доступности и курсор Main Sheet"""

    def __init__(self):
        self._pool: redis.ConnectionPool | None = None
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Создать пул соединений"""
        self._pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            health_check_interval=30,
        )
        self._client = redis.Redis(connection_pool=self._pool)

    async def disconnect(self) -> None:
        """Закрыть соединения"""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.aclose()
            self._pool = None

    @property
    def client(self) -> redis.Redis:
        if not self._client:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client


# Глобальный экземпляр
redis_client = RedisClient()


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Dependency для получения Redis клиента в роутах"""
    yield redis_client.client


async def ping(client: redis.Redis) -> bool:
    """Redis не источник истины, поэтому его недоступность только отражается в health check"""
    try:
        return bool(await client.ping())
    except redis.RedisError as e:
        logger.warning(f"Redis недоступен: {e}")
        return False
