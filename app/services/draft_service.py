"""
Черновики доступности интервьюера в Redis.

Черновик — это окна, которые интервьюер набирает в форме, но ещё не отправил.
Валидации нет (окно может быть заполнено наполовину), но от каждого окна
остаются только поля date/start/end строками. Отправка доступности удаляет черновик.

Ключ: draft:availability:{booking_request_id}:{interviewer_id} — hash с полями windows, updated_at.
"""
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

import redis.asyncio as redis

from config import settings

WINDOW_FIELDS = ("date", "start", "end")


@dataclass
class AvailabilityDraft:
    windows: list[dict[str, str]]
    updated_at: str
    ttl_seconds: int


def draft_windows(raw: Iterable[dict[str, Any]]) -> list[dict[str, str]]:
    """Оставить от окон только date/start/end; полностью пустые окна выбрасываются"""
    result = []
    for window in raw:
        cleaned = {
            key: str(window[key]).strip()
            for key in WINDOW_FIELDS
            if window.get(key) is not None and str(window[key]).strip()
        }
        if cleaned:
            result.append(cleaned)
    return result


class DraftService:
    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client
        self.ttl = settings.redis_draft_ttl

    @staticmethod
    def _key(interviewer_id: int, booking_request_id: int) -> str:
        return f"draft:availability:{booking_request_id}:{interviewer_id}"

    async def save_draft(
        self,
        interviewer_id: int,
        booking_request_id: int,
        windows: Iterable[dict[str, Any]],
    ) -> AvailabilityDraft:
        """Перезаписать черновик целиком и продлить TTL"""
        key = self._key(interviewer_id, booking_request_id)
        draft = AvailabilityDraft(
            windows=draft_windows(windows),
            updated_at=datetime.now(timezone.utc).isoformat(),
            ttl_seconds=self.ttl,
        )
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping={"windows": json.dumps(draft.windows), "updated_at": draft.updated_at})
            pipe.expire(key, self.ttl)
            await pipe.execute()
        return draft

    async def get_draft(self, interviewer_id: int, booking_request_id: int) -> AvailabilityDraft | None:
        key = self._key(interviewer_id, booking_request_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hgetall(key)
            pipe.ttl(key)
            data, ttl = await pipe.execute()
        if not data:
            return None
        return AvailabilityDraft(
            windows=json.loads(data.get("windows") or "[]"),
            updated_at=data.get("updated_at", ""),
            ttl_seconds=ttl,
        )

    async def delete_draft(self, interviewer_id: int, booking_request_id: int) -> bool:
        """True если черновик был"""
        return await self.redis.delete(self._key(interviewer_id, booking_request_id)) > 0
