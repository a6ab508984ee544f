"""
Материализация слотов из текущих окон доступности.

Идемпотентна: id слота — хеш (интервьюер, дата, начало, конец), вставка
INSERT ... ON CONFLICT DO NOTHING, уже существующие слоты сохраняют состояние.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.domain.slots import SlotSpec, Window, slice_window
from db.models import BookingRequest, BookingRequestState, Slot, SlotState
from db.repositories.booking_requests import BookingRequestRepository
from db.repositories.slots import SlotRepository

logger = logging.getLogger(__name__)


def _overlaps(spec: SlotSpec, slot: Slot) -> bool:
    return (
        spec.interviewer_id == slot.interviewer_id
        and spec.date == slot.date
        and spec.start < slot.end_time
        and slot.start_time < spec.end
    )


class SlotService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.requests = BookingRequestRepository(db)
        self.slots = SlotRepository(db)

    async def materialize(
        self,
        booking_request_id: int,
        slot_duration_minutes: int | None = None,
    ) -> list[Slot]:
        """
        Явная длительность запоминается в запросе: последующие материализации
        (в том числе при создании ссылки) режут окна так же.
        """
        booking_request = await self.requests.get_by_id(booking_request_id, for_update=True)
        if not booking_request:
            raise NotFoundError("Запрос на бронирование не найден")

        result = await self.materialize_for(booking_request, slot_duration_minutes)
        if slot_duration_minutes is not None:
            booking_request.slot_duration_minutes = slot_duration_minutes
        await self.db.commit()
        return result

    async def materialize_for(
        self,
        booking_request: BookingRequest,
        slot_duration_minutes: int | None = None,
    ) -> list[Slot]:
        """
        Нарезать текущие окна на слоты без коммита (вызывается и при создании ссылки).

        Длительность: аргумент, иначе настройка запроса, иначе слот на всё окно.
        Available-слоты, чьих окон больше нет, снимаются с пометкой availability_removed;
        если окно вернулось, такие слоты снова становятся Available. Снятые админом не возвращаются.
        Слоты, пересекающиеся с подтверждённым слотом того же интервьюера, не создаются и не возвращаются.

        Returns:
            Слоты текущих окон, кроме снятых
        """
        if booking_request.state == BookingRequestState.CLOSED:
            raise ValidationError("Нельзя материализовать слоты закрытого запроса")

        duration = (
            slot_duration_minutes if slot_duration_minutes is not None
            else booking_request.slot_duration_minutes
        )
        if duration is not None and duration <= 0:
            raise ValidationError("Длительность слота должна быть положительной")

        windows = await self.requests.current_windows(booking_request.id)
        specs: list[SlotSpec] = []
        for w in windows:
            specs.extend(slice_window(
                w.interviewer_id,
                Window(date=w.date, start=w.start_time, end=w.end_time),
                duration,
            ))

        existing = {s.id: s for s in await self.slots.list_for_request(booking_request.id)}
        confirmed = [s for s in existing.values() if s.state == SlotState.CONFIRMED]
        specs = [
            spec for spec in specs
            if not any(c.id != spec.id and _overlaps(spec, c) for c in confirmed)
        ]

        inserted = await self.slots.insert_missing([
            {
                "id": spec.id,
                "booking_request_id": booking_request.id,
                "interviewer_id": spec.interviewer_id,
                "date": spec.date,
                "start_time": spec.start,
                "end_time": spec.end,
                "state": SlotState.AVAILABLE,
                "version": 1,
            }
            for spec in specs
        ])

        spec_ids = {spec.id for spec in specs}
        restored = await self.slots.restore_released([
            slot_id for slot_id in spec_ids
            if slot_id in existing and existing[slot_id].state == SlotState.RELEASED
        ])
        stale = [s.id for s in existing.values() if s.state == SlotState.AVAILABLE and s.id not in spec_ids]
        released = await self.slots.release_stale(stale)

        logger.info(
            f"Материализация: request={booking_request.id} duration={duration} "
            f"окон={len(windows)} слотов={len(spec_ids)} новых={len(inserted)} "
            f"возвращено={restored} снято={released}"
        )

        slots = await self.slots.get_many(list(spec_ids))
        return [s for s in slots if s.state != SlotState.RELEASED]
