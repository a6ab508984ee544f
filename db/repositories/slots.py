from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from db.models import Slot, SlotReleaseReason, SlotState, PublicLinkSlot
from db.repositories.base import insert_ignore


class SlotRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, slot_id: str) -> Optional[Slot]:
        q = select(Slot).where(Slot.id == slot_id)
        res = await self.db.execute(q.execution_options(populate_existing=True))
        return res.scalars().first()

    async def get_many(self, slot_ids: Sequence[str]) -> list[Slot]:
        if not slot_ids:
            return []
        q = select(Slot).where(Slot.id.in_(list(slot_ids))).order_by(Slot.date, Slot.start_time, Slot.interviewer_id)
        res = await self.db.execute(q.execution_options(populate_existing=True))
        return list(res.scalars().all())

    async def list_for_request(
        self,
        booking_request_id: int,
        states: Sequence[SlotState] | None = None,
    ) -> list[Slot]:
        q = select(Slot).where(Slot.booking_request_id == booking_request_id)
        if states:
            q = q.where(Slot.state.in_(list(states)))
        q = q.order_by(Slot.date, Slot.start_time, Slot.interviewer_id)
        res = await self.db.execute(q.execution_options(populate_existing=True))
        return list(res.scalars().all())

    async def list_for_link(
        self,
        public_link_id: int,
        states: Sequence[SlotState] | None = None,
    ) -> list[Slot]:
        q = (
            select(Slot)
            .join(PublicLinkSlot, PublicLinkSlot.slot_id == Slot.id)
            .where(PublicLinkSlot.public_link_id == public_link_id)
        )
        if states:
            q = q.where(Slot.state.in_(list(states)))
        q = q.order_by(Slot.date, Slot.start_time, Slot.interviewer_id)
        res = await self.db.execute(q.execution_options(populate_existing=True))
        return list(res.scalars().all())

    async def insert_missing(self, rows: Sequence[dict]) -> list[str]:
        """Вставить слоты, которых ещё нет; существующие не трогаются (их состояние сохраняется)"""
        return await insert_ignore(self.db, Slot, rows, index_elements=["id"], returning=Slot.id)

    async def compare_and_set_state(
        self,
        slot_id: str,
        expected: SlotState,
        new_state: SlotState,
        release_reason: SlotReleaseReason | None = None,
    ) -> bool:
        """
        Атомарный переход состояния слота (оптимистичная блокировка).

        UPDATE ... WHERE state = :expected — из конкурентов строку меняет только один.
        release_reason записывается вместе с состоянием и сбрасывается при любом другом переходе.

        Returns:
            True если переход выполнен, False если слот уже не в состоянии expected
        """
        result = await self.db.execute(
            update(Slot)
            .where(Slot.id == slot_id, Slot.state == expected)
            .values(state=new_state, release_reason=release_reason, version=Slot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_stale(self, slot_ids: Sequence[str]) -> int:
        """Available-слоты, чьих окон больше нет, снимаются с пометкой availability_removed"""
        if not slot_ids:
            return 0
        result = await self.db.execute(
            update(Slot)
            .where(Slot.id.in_(list(slot_ids)), Slot.state == SlotState.AVAILABLE)
            .values(
                state=SlotState.RELEASED,
                release_reason=SlotReleaseReason.AVAILABILITY_REMOVED,
                version=Slot.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    async def restore_released(self, slot_ids: Sequence[str]) -> int:
        """Вернуть в пул слоты, снятые из-за исчезнувшего окна. Снятые админом не трогаются."""
        if not slot_ids:
            return 0
        result = await self.db.execute(
            update(Slot)
            .where(
                Slot.id.in_(list(slot_ids)),
                Slot.state == SlotState.RELEASED,
                Slot.release_reason == SlotReleaseReason.AVAILABILITY_REMOVED,
            )
            .values(state=SlotState.AVAILABLE, release_reason=None, version=Slot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
