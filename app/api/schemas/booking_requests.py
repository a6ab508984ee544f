"""
Схемы для запросов на бронирование, доступности и слотов.
"""
from datetime import date as date_type, datetime, time
from typing import Optional, List

from pydantic import BaseModel, Field

from app.api.schemas.interviewers import InterviewerResponse
from app.domain.slots import Window
from app.services.availability_service import InterviewerAvailability
from app.services.draft_service import AvailabilityDraft
from db.models import (
    AvailabilityWindow, BookingRequest, BookingRequestInterviewer,
    BookingRequestState, Slot, SlotState,
)


# === Запрос на бронирование ===

class BookingRequestCreate(BaseModel):
    """Создание запроса на бронирование (админ)"""
    booking_date: date_type = Field(description="Дата собеседований")
    interviewer_ids: List[int] = Field(default_factory=list)
    domain: Optional[str] = Field(default=None, max_length=100, description="Тег домена, без проверок")
    slot_duration_minutes: Optional[int] = Field(default=None, ge=5, le=24 * 60, description="Пусто = слот на всё окно")


class InviteRequest(BaseModel):
    interviewer_ids: List[int] = Field(min_length=1)


class InviteResponse(BaseModel):
    invited: List[int] = Field(description="Интервьюеры, приглашённые впервые")


class BookingRequestResponse(BaseModel):
    id: int
    booking_date: date_type
    state: BookingRequestState
    domain: Optional[str] = None
    slot_duration_minutes: Optional[int] = None
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, br: BookingRequest) -> "BookingRequestResponse":
        return cls(
            id=br.id,
            booking_date=br.booking_date,
            state=br.state,
            domain=br.domain,
            slot_duration_minutes=br.slot_duration_minutes,
            created_at=br.created_at,
            closed_at=br.closed_at,
        )


class InvitationResponse(BaseModel):
    interviewer: InterviewerResponse
    submitted_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, invitation: BookingRequestInterviewer) -> "InvitationResponse":
        return cls(
            interviewer=InterviewerResponse.from_model(invitation.interviewer),
            submitted_at=invitation.submitted_at,
        )


class BookingRequestDetailsResponse(BookingRequestResponse):
    invitations: List[InvitationResponse] = Field(default_factory=list)
    submitted_count: int = 0


class BookingRequestsListResponse(BaseModel):
    booking_requests: List[BookingRequestResponse]
    total: int


# === Доступность ===

class WindowIn(BaseModel):
    """Окно доступности; время в формате HH:MM"""
    date: date_type
    start: time
    end: time

    def to_window(self) -> Window:
        return Window(date=self.date, start=self.start, end=self.end)


class AvailabilitySubmit(BaseModel):
    windows: List[WindowIn] = Field(default_factory=list, description="Пустой список снимает доступность")


class WindowResponse(BaseModel):
    date: date_type
    start: str = Field(description="Время в формате HH:MM")
    end: str = Field(description="Время в формате HH:MM")

    @classmethod
    def from_model(cls, w: AvailabilityWindow) -> "WindowResponse":
        return cls(date=w.date, start=w.start_time.strftime("%H:%M"), end=w.end_time.strftime("%H:%M"))


class InterviewerAvailabilityResponse(BaseModel):
    interviewer_id: int
    interviewer_name: str
    submitted_at: Optional[datetime] = None
    windows: List[WindowResponse]

    @classmethod
    def from_result(cls, item: InterviewerAvailability) -> "InterviewerAvailabilityResponse":
        return cls(
            interviewer_id=item.interviewer.id,
            interviewer_name=item.interviewer.full_name,
            submitted_at=item.submitted_at,
            windows=[WindowResponse.from_model(w) for w in item.windows],
        )


class AvailabilityListResponse(BaseModel):
    booking_request_id: int
    interviewers: List[InterviewerAvailabilityResponse]


class DraftSave(BaseModel):
    """Черновик: окна без валидации времени, лишние поля отбрасываются"""
    windows: List[dict] = Field(default_factory=list)


class DraftResponse(BaseModel):
    windows: List[dict] = Field(default_factory=list)
    updated_at: Optional[str] = None
    ttl_seconds: Optional[int] = None

    @classmethod
    def from_draft(cls, draft: AvailabilityDraft | None) -> "DraftResponse":
        if draft is None:
            return cls()
        return cls(windows=draft.windows, updated_at=draft.updated_at, ttl_seconds=draft.ttl_seconds)


# === Слоты ===

class MaterializeRequest(BaseModel):
    slot_duration_minutes: Optional[int] = Field(default=None, ge=5, le=24 * 60)


class SlotResponse(BaseModel):
    id: str
    interviewer_id: int
    interviewer_name: str
    date: date_type
    start: str = Field(description="Время в формате HH:MM")
    end: str = Field(description="Время в формате HH:MM")
    state: SlotState

    @classmethod
    def from_model(cls, slot: Slot) -> "SlotResponse":
        return cls(
            id=slot.id,
            interviewer_id=slot.interviewer_id,
            interviewer_name=slot.interviewer.full_name,
            date=slot.date,
            start=slot.start_time.strftime("%H:%M"),
            end=slot.end_time.strftime("%H:%M"),
            state=slot.state,
        )


class SlotsListResponse(BaseModel):
    slots: List[SlotResponse]
    total: int
