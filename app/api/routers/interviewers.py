"""
API для онбординга интервьюеров (админ).

Эндпоинты:
- POST /admin/interviewers — создать интервьюера
- GET /admin/interviewers — список (фильтр ?status=)
- GET /admin/interviewers/{interviewer_id} — карточка
- PATCH /admin/interviewers/{interviewer_id} — статус, домены, имя
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_db
from db.models import InterviewerStatus
from app.api.deps import AdminUser
from app.api.schemas.interviewers import (
    InterviewerCreate, InterviewerUpdate,
    InterviewerResponse, InterviewersListResponse
)
from app.services.interviewer_service import InterviewerService

router = APIRouter(prefix="/admin/interviewers")


@router.post("", response_model=InterviewerResponse, status_code=status.HTTP_201_CREATED)
async def create_interviewer(
    data: InterviewerCreate,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    interviewer = await InterviewerService(db).create(
        full_name=data.full_name,
        email=data.email,
        domains=data.domains,
        status=data.status,
        telegram_id=data.telegram_id,
    )
    return InterviewerResponse.from_model(interviewer)


@router.get("", response_model=InterviewersListResponse)
async def list_interviewers(
    admin: AdminUser,
    status_filter: Optional[List[InterviewerStatus]] = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    interviewers = await InterviewerService(db).list_all(status_filter)
    return InterviewersListResponse(
        interviewers=[InterviewerResponse.from_model(i) for i in interviewers],
        total=len(interviewers),
    )


@router.get("/{interviewer_id}", response_model=InterviewerResponse)
async def get_interviewer(
    interviewer_id: int,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    return InterviewerResponse.from_model(await InterviewerService(db).get(interviewer_id))


@router.patch("/{interviewer_id}", response_model=InterviewerResponse)
async def update_interviewer(
    interviewer_id: int,
    data: InterviewerUpdate,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    """Интервьюеры не удаляются: для вывода из пула status=inactive"""
    interviewer = await InterviewerService(db).update(interviewer_id, **data.model_dump(exclude_unset=True))
    return InterviewerResponse.from_model(interviewer)
