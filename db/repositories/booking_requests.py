from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from db.models import (
    BookingRequest, BookingRequestInterviewer, AvailabilityWindow, Interviewer
)
from db.repositories.base import insert_ignore


class BookingRequestRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, booking_request_id: int, for_update: bool = False) -> Optional[BookingRequest]:
        q = select(BookingRequest).where(BookingRequest.id == booking_request_id)
        if for_update:
            q = q.with_for_update()
        res = await self.db.execute(q)
        return res.scalars().first()

    async def list_all(self) -> list[BookingRequest]:
        q = select(BookingRequest).order_by(BookingRequest.booking_date.desc(), BookingRequest.id.desc())
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def create(self, **kwargs) -> BookingRequest:
        booking_request = BookingRequest(**kwargs)
        self.db.add(booking_request)
        await self.db.flush()
        return booking_request

    # === Приглашения ===

    async def add_invitations(self, booking_request_id: int, interviewer_ids: Sequence[int]) -> list[int]:
        """Пригласить интервьюеров; возвращает id тех, кто приглашён впервые"""
        rows = [
            {"booking_request_id": booking_request_id, "interviewer_id": interviewer_id}
            for interviewer_id in dict.fromkeys(interviewer_ids)
        ]
        return await insert_ignore(
            self.db, BookingRequestInterviewer, rows,
            index_elements=["booking_request_id", "interviewer_id"],
            returning=BookingRequestInterviewer.interviewer_id,
        )

    async def get_invitation(self, booking_request_id: int, interviewer_id: int) -> Optional[BookingRequestInterviewer]:
        q = select(BookingRequestInterviewer).where(
            BookingRequestInterviewer.booking_request_id == booking_request_id,
            BookingRequestInterviewer.interviewer_id == interviewer_id,
        )
        res = await self.db.execute(q)
        return res.scalars().first()

    async def list_invitations(self, booking_request_id: int) -> list[BookingRequestInterviewer]:
        q = (
            select(BookingRequestInterviewer)
            .join(Interviewer, BookingRequestInterviewer.interviewer_id == Interviewer.id)
            .where(BookingRequestInterviewer.booking_request_id == booking_request_id)
            .order_by(Interviewer.full_name)
        )
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def count_submissions(self, booking_request_id: int) -> int:
        q = select(func.count(BookingRequestInterviewer.id)).where(
            BookingRequestInterviewer.booking_request_id == booking_request_id,
            BookingRequestInterviewer.submitted_at.is_not(None),
        )
        res = await self.db.execute(q)
        return res.scalar() or 0

    # === Окна доступности ===

    async def current_windows(
        self,
        booking_request_id: int,
        interviewer_id: int | None = None,
    ) -> list[AvailabilityWindow]:
        q = select(AvailabilityWindow).where(
            AvailabilityWindow.booking_request_id == booking_request_id,
            AvailabilityWindow.superseded_at.is_(None),
        )
        if interviewer_id is not None:
            q = q.where(AvailabilityWindow.interviewer_id == interviewer_id)
        q = q.order_by(AvailabilityWindow.date, AvailabilityWindow.start_time, AvailabilityWindow.interviewer_id)
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def supersede_windows(self, booking_request_id: int, interviewer_id: int) -> int:
        """Пометить текущие окна интервьюера заменёнными (история сохраняется)"""
        result = await self.db.execute(
            update(AvailabilityWindow)
            .where(
                AvailabilityWindow.booking_request_id == booking_request_id,
                AvailabilityWindow.interviewer_id == interviewer_id,
                AvailabilityWindow.superseded_at.is_(None),
            )
            .values(superseded_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    async def add_windows(self, windows: Sequence[AvailabilityWindow]) -> None:
        self.db.add_all(list(windows))
        await self.db.flush()
