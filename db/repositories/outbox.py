from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_, func

from db.models import OutboxEvent, OutboxEventType, OutboxStatus


class OutboxRepository:
    """
    Durable outbox. add() вызывается внутри транзакции, меняющей состояние,
    чтобы событие записалось атомарно вместе с переходом.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        event: OutboxEventType,
        *,
        student_booking_id: Optional[int] = None,
        slot_id: Optional[str] = None,
        student_identity: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> OutboxEvent:
        entry = OutboxEvent(
            event=event,
            student_booking_id=student_booking_id,
            slot_id=slot_id,
            student_identity=student_identity,
            payload=payload or {},
            status=OutboxStatus.PENDING,
            attempts=0,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def get_by_id(self, outbox_id: int) -> Optional[OutboxEvent]:
        q = select(OutboxEvent).where(OutboxEvent.id == outbox_id)
        res = await self.db.execute(q.execution_options(populate_existing=True))
        return res.scalars().first()

    async def claim_batch(self, batch_size: int, lock_timeout: timedelta) -> list[OutboxEvent]:
        """
        Забрать пачку готовых к отправке событий и пометить их locked_at.
        Залипшие блокировки (упавший воркер) переподхватываются после lock_timeout.
        """
        now = datetime.now(timezone.utc)
        stale_before = now - lock_timeout
        q = (
            select(OutboxEvent)
            .where(
                OutboxEvent.status == OutboxStatus.PENDING,
                or_(
                    OutboxEvent.next_retry_at.is_(None),
                    OutboxEvent.next_retry_at <= now,
                ),
                or_(
                    OutboxEvent.locked_at.is_(None),
                    OutboxEvent.locked_at <= stale_before,
                ),
            )
            .order_by(OutboxEvent.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        rows = list((await self.db.execute(q.execution_options(populate_existing=True))).scalars().all())
        for row in rows:
            row.locked_at = now
        if rows:
            await self.db.flush()
        return rows

    async def mark_sent(self, outbox_id: int) -> None:
        await self.db.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == outbox_id)
            .values(
                status=OutboxStatus.SENT,
                attempts=OutboxEvent.attempts + 1,
                locked_at=None,
                next_retry_at=None,
                last_error=None,
                sent_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )

    async def mark_failed_attempt(
        self,
        outbox_id: int,
        *,
        attempts: int,
        error: str,
        next_retry_at: Optional[datetime],
    ) -> None:
        """next_retry_at=None означает, что попытки исчерпаны — событие уходит в failed"""
        values: dict[str, Any] = {
            "attempts": attempts,
            "last_error": error[:2000],
            "locked_at": None,
            "next_retry_at": next_retry_at,
        }
        if next_retry_at is None:
            values["status"] = OutboxStatus.FAILED
        await self.db.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == outbox_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )

    async def queue_depth(self) -> int:
        q = select(func.count(OutboxEvent.id)).where(OutboxEvent.status == OutboxStatus.PENDING)
        res = await self.db.execute(q)
        return res.scalar() or 0

    async def count_by_status(self) -> dict[str, int]:
        q = select(OutboxEvent.status, func.count(OutboxEvent.id)).group_by(OutboxEvent.status)
        res = await self.db.execute(q)
        return {status.value: count for status, count in res.all()}

    async def feed_after(
        self,
        cursor: int,
        events: Sequence[OutboxEventType],
        limit: int,
    ) -> list[OutboxEvent]:
        """Лента событий для проекций: всё, что записано после cursor"""
        q = (
            select(OutboxEvent)
            .where(OutboxEvent.id > cursor, OutboxEvent.event.in_(list(events)))
            .order_by(OutboxEvent.id.asc())
            .limit(limit)
        )
        res = await self.db.execute(q)
        return list(res.scalars().all())
