"""
Схемы для онбординга интервьюеров.
"""
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, EmailStr, Field

from db.models import Interviewer, InterviewerStatus


class InterviewerCreate(BaseModel):
    """Создание интервьюера (админ)"""
    full_name: str = Field(min_length=1, max_length=150)
    email: EmailStr
    domains: List[str] = Field(default_factory=list, description="Теги доменов: MERN, Python, ...")
    status: InterviewerStatus = InterviewerStatus.ACTIVE
    telegram_id: Optional[int] = None


class InterviewerUpdate(BaseModel):
    """Обновление интервьюера. Удаления нет — только status=inactive."""
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    status: Optional[InterviewerStatus] = None
    domains: Optional[List[str]] = None
    telegram_id: Optional[int] = None


class InterviewerResponse(BaseModel):
    id: int
    full_name: str
    email: str
    status: InterviewerStatus
    domains: List[str]
    telegram_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, interviewer: Interviewer) -> "InterviewerResponse":
        return cls(
            id=interviewer.id,
            full_name=interviewer.full_name,
            email=interviewer.email,
            status=interviewer.status,
            domains=interviewer.domains or [],
            telegram_id=interviewer.telegram_id,
            created_at=interviewer.created_at,
        )


class InterviewersListResponse(BaseModel):
    interviewers: List[InterviewerResponse]
    total: int
