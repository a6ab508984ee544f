from datetime import date
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, and_, or_

from db.models import (
    PublicLink, PublicLinkSlot, AllowListEntry, BookingRequest, StudentBooking, StudentBookingState
)
from db.repositories.base import insert_ignore


class PublicLinkRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_public_id(self, public_id: str) -> Optional[PublicLink]:
        q = select(PublicLink).where(PublicLink.public_id == public_id)
        res = await self.db.execute(q)
        return res.scalars().first()

    async def list_all(self, booking_request_id: int | None = None) -> list[PublicLink]:
        q = select(PublicLink).order_by(PublicLink.created_at.desc(), PublicLink.id.desc())
        if booking_request_id is not None:
            q = q.where(PublicLink.booking_request_id == booking_request_id)
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def create(self, slot_ids: Sequence[str], **kwargs) -> PublicLink:
        link = PublicLink(**kwargs)
        self.db.add(link)
        await self.db.flush()
        self.db.add_all([PublicLinkSlot(public_link_id=link.id, slot_id=slot_id) for slot_id in slot_ids])
        await self.db.flush()
        return link

    async def slot_ids(self, public_link_id: int) -> list[str]:
        q = select(PublicLinkSlot.slot_id).where(PublicLinkSlot.public_link_id == public_link_id)
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def contains_slot(self, public_link_id: int, slot_id: str) -> bool:
        q = select(func.count()).select_from(PublicLinkSlot).where(
            PublicLinkSlot.public_link_id == public_link_id,
            PublicLinkSlot.slot_id == slot_id,
        )
        res = await self.db.execute(q)
        return (res.scalar() or 0) > 0

    # === Allow-list ===

    async def add_to_allow_list(self, public_link_id: int, entries: Sequence[dict]) -> list[str]:
        """
        Объединение множеств: уже существующие идентичности не меняются.

        Returns:
            Идентичности, добавленные этим вызовом
        """
        rows = [{**entry, "public_link_id": public_link_id} for entry in entries]
        return await insert_ignore(
            self.db, AllowListEntry, rows,
            index_elements=["public_link_id", "identity"],
            returning=AllowListEntry.identity,
        )

    async def remove_from_allow_list(self, public_link_id: int, identity: str) -> bool:
        result = await self.db.execute(
            delete(AllowListEntry).where(
                AllowListEntry.public_link_id == public_link_id,
                AllowListEntry.identity == identity,
            )
        )
        return (result.rowcount or 0) > 0

    async def get_allow_list_entry(self, public_link_id: int, identity: str) -> Optional[AllowListEntry]:
        q = select(AllowListEntry).where(
            AllowListEntry.public_link_id == public_link_id,
            AllowListEntry.identity == identity,
        )
        res = await self.db.execute(q)
        return res.scalars().first()

    async def is_allowed(self, public_link_id: int, identity: str) -> bool:
        return await self.get_allow_list_entry(public_link_id, identity) is not None

    async def allow_list(self, public_link_id: int) -> list[AllowListEntry]:
        q = (
            select(AllowListEntry)
            .where(AllowListEntry.public_link_id == public_link_id)
            .order_by(AllowListEntry.added_at, AllowListEntry.id)
        )
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def allow_list_size(self, public_link_id: int) -> int:
        q = select(func.count(AllowListEntry.id)).where(AllowListEntry.public_link_id == public_link_id)
        res = await self.db.execute(q)
        return res.scalar() or 0

    async def pipeline(
        self,
        public_link_id: int | None = None,
        booking_date: date | None = None,
        domain: str | None = None,
    ) -> list[tuple[AllowListEntry, PublicLink, Optional[StudentBooking]]]:
        """Допущенные студенты вместе с их подтверждённой записью (если есть)"""
        q = (
            select(AllowListEntry, PublicLink, StudentBooking)
            .join(PublicLink, PublicLink.id == AllowListEntry.public_link_id)
            .join(BookingRequest, BookingRequest.id == PublicLink.booking_request_id)
            .outerjoin(
                StudentBooking,
                and_(
                    StudentBooking.public_link_id == AllowListEntry.public_link_id,
                    StudentBooking.student_identity == AllowListEntry.identity,
                    StudentBooking.state == StudentBookingState.CONFIRMED,
                ),
            )
        )
        if public_link_id is not None:
            q = q.where(AllowListEntry.public_link_id == public_link_id)
        if booking_date is not None:
            q = q.where(BookingRequest.booking_date == booking_date)
        if domain:
            q = q.where(or_(AllowListEntry.domain == domain, BookingRequest.domain == domain))
        q = q.order_by(BookingRequest.booking_date.desc(), AllowListEntry.public_link_id, AllowListEntry.identity)
        res = await self.db.execute(q)
        return [tuple(row) for row in res.all()]
