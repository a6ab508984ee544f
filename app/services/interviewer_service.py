"""
Минимальный онбординг интервьюеров: создание, список, смена статуса/доменов.
Интервьюеры не удаляются — только деактивируются.
"""
import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from db.models import Interviewer, InterviewerStatus
from db.repositories.interviewers import InterviewerRepository

logger = logging.getLogger(__name__)


class InterviewerService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.interviewers = InterviewerRepository(db)

    async def create(
        self,
        full_name: str,
        email: str,
        domains: Sequence[str] = (),
        status: InterviewerStatus = InterviewerStatus.ACTIVE,
        telegram_id: int | None = None,
    ) -> Interviewer:
        email = email.strip().lower()
        if await self.interviewers.get_by_email(email):
            raise ValidationError(f"Интервьюер с email {email} уже существует")

        interviewer = await self.interviewers.create(
            full_name=full_name.strip(),
            email=email,
            domains=list(dict.fromkeys(d.strip() for d in domains if d.strip())),
            status=status,
            telegram_id=telegram_id,
        )
        await self.db.commit()
        logger.info(f"Интервьюер создан: id={interviewer.id} status={interviewer.status.value}")
        return interviewer

    async def get(self, interviewer_id: int) -> Interviewer:
        interviewer = await self.interviewers.get_by_id(interviewer_id)
        if not interviewer:
            raise NotFoundError("Интервьюер не найден")
        return interviewer

    async def list_all(self, statuses: Sequence[InterviewerStatus] | None = None) -> list[Interviewer]:
        return await self.interviewers.list_all(statuses)

    async def update(self, interviewer_id: int, **changes) -> Interviewer:
        interviewer = await self.get(interviewer_id)
        changes = {k: v for k, v in changes.items() if v is not None}
        if "domains" in changes:
            changes["domains"] = list(dict.fromkeys(d.strip() for d in changes["domains"] if d.strip()))
        if "full_name" in changes:
            changes["full_name"] = changes["full_name"].strip()

        await self.interviewers.update(interviewer, **changes)
        await self.db.commit()
        logger.info(f"Интервьюер обновлён: id={interviewer.id} поля={sorted(changes)}")
        return interviewer
