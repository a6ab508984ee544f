from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from db.models import StudentBooking, StudentBookingState


class StudentBookingRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, booking_id: int, for_update: bool = False) -> Optional[StudentBooking]:
        q = select(StudentBooking).where(StudentBooking.id == booking_id)
        if for_update:
            q = q.with_for_update(of=StudentBooking)
        res = await self.db.execute(q.execution_options(populate_existing=True))
        return res.scalars().first()

    async def get_many(self, booking_ids: Sequence[int]) -> list[StudentBooking]:
        if not booking_ids:
            return []
        q = select(StudentBooking).where(StudentBooking.id.in_(list(booking_ids)))
        res = await self.db.execute(q.execution_options(populate_existing=True))
        return list(res.scalars().all())

    async def get_confirmed_for_identity(self, public_link_id: int, identity: str) -> Optional[StudentBooking]:
        q = select(StudentBooking).where(
            StudentBooking.public_link_id == public_link_id,
            StudentBooking.student_identity == identity,
            StudentBooking.state == StudentBookingState.CONFIRMED,
        )
        res = await self.db.execute(q)
        return res.scalars().first()

    async def list_for_link(
        self,
        public_link_id: int,
        states: Sequence[StudentBookingState] | None = None,
    ) -> list[StudentBooking]:
        q = select(StudentBooking).where(StudentBooking.public_link_id == public_link_id)
        if states:
            q = q.where(StudentBooking.state.in_(list(states)))
        q = q.order_by(StudentBooking.id)
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def count_confirmed_for_link(self, public_link_id: int) -> int:
        q = select(func.count(StudentBooking.id)).where(
            StudentBooking.public_link_id == public_link_id,
            StudentBooking.state == StudentBookingState.CONFIRMED,
        )
        res = await self.db.execute(q)
        return res.scalar() or 0

    async def confirmed_identities(self, public_link_id: int) -> set[str]:
        q = select(StudentBooking.student_identity).where(
            StudentBooking.public_link_id == public_link_id,
            StudentBooking.state == StudentBookingState.CONFIRMED,
        )
        res = await self.db.execute(q)
        return set(res.scalars().all())

    async def distinct_host_emails(self) -> list[str]:
        q = (
            select(StudentBooking.host_email)
            .where(StudentBooking.host_email.is_not(None))
            .distinct()
            .order_by(StudentBooking.host_email)
        )
        res = await self.db.execute(q)
        return [email for email in res.scalars().all() if email]

    async def create(self, **kwargs) -> StudentBooking:
        booking = StudentBooking(**kwargs)
        self.db.add(booking)
        await self.db.flush()
        return booking
