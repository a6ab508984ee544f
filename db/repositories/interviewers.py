from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from db.models import Interviewer, InterviewerStatus


class InterviewerRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, interviewer_id: int) -> Optional[Interviewer]:
        q = select(Interviewer).where(Interviewer.id == interviewer_id)
        res = await self.db.execute(q)
        return res.scalars().first()

    async def get_by_email(self, email: str) -> Optional[Interviewer]:
        q = select(Interviewer).where(Interviewer.email == email.strip().lower())
        res = await self.db.execute(q)
        return res.scalars().first()

    async def get_many(self, interviewer_ids: Sequence[int]) -> list[Interviewer]:
        if not interviewer_ids:
            return []
        q = select(Interviewer).where(Interviewer.id.in_(list(interviewer_ids)))
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def list_all(self, statuses: Sequence[InterviewerStatus] | None = None) -> list[Interviewer]:
        q = select(Interviewer).order_by(Interviewer.full_name)
        if statuses:
            q = q.where(Interviewer.status.in_(list(statuses)))
        res = await self.db.execute(q)
        return list(res.scalars().all())

    async def create(self, **kwargs) -> Interviewer:
        interviewer = Interviewer(**kwargs)
        self.db.add(interviewer)
        await self.db.flush()
        return interviewer

    async def update(self, interviewer: Interviewer, **kwargs) -> Interviewer:
        for k, v in kwargs.items():
            setattr(interviewer, k, v)
        await self.db.flush()
        return interviewer
