"""
Схемы для админки записей студентов и ленты Main Sheet.
"""
from typing import Optional, List, Any

from pydantic import BaseModel, EmailStr, Field

from app.api.schemas.public_links import AllowListEntryResponse, StudentBookingResponse
from app.services.student_booking_service import PipelineRow


class CancelBookingRequest(BaseModel):
    release_slot: bool = Field(description="true — слот возвращается в пул, false — снимается навсегда")


class StudentBookingUpdate(BaseModel):
    host_email: Optional[EmailStr] = None
    event_title: Optional[str] = Field(default=None, max_length=255)


class PipelineRowResponse(BaseModel):
    public_id: str
    booking_date: str
    student: AllowListEntryResponse
    booking: Optional[StudentBookingResponse] = None

    @classmethod
    def from_result(cls, row: PipelineRow) -> "PipelineRowResponse":
        return cls(
            public_id=row.link.public_id,
            booking_date=row.link.booking_request.booking_date.isoformat(),
            student=AllowListEntryResponse.from_model(row.entry),
            booking=StudentBookingResponse.from_model(row.booking) if row.booking else None,
        )


class PipelineResponse(BaseModel):
    rows: List[PipelineRowResponse]
    total: int
    booked: int


class HostEmailsResponse(BaseModel):
    host_emails: List[str]


class FeedResponse(BaseModel):
    """Переходы записей после курсора; next_cursor передаётся в следующий запрос"""
    items: List[dict[str, Any]]
    next_cursor: int


class MainSheetSyncRequest(BaseModel):
    sheet_url: Optional[str] = Field(default=None, description="Пусто = сохранённая ссылка на Main Sheet")


class MainSheetSyncResponse(BaseModel):
    synced: int
    cursor: int
