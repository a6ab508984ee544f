"""
Схемы для публичных ссылок, allow-list и записи студентов.
"""
from datetime import date as date_type, datetime
from typing import Optional, List

from pydantic import BaseModel, Field

from app.api.schemas.booking_requests import SlotResponse
from config import settings
from db.models import AllowListEntry, PublicLink, StudentBooking, StudentBookingState


class AllowListEntryIn(BaseModel):
    """Студент для allow-list: email или studentId плюс необязательный профиль"""
    identity: str = Field(min_length=1, max_length=255)
    full_name: Optional[str] = Field(default=None, max_length=150)
    hiring_name: Optional[str] = Field(default=None, max_length=150)
    domain: Optional[str] = Field(default=None, max_length=100)
    user_id: Optional[str] = Field(default=None, max_length=100)
    mobile_number: Optional[str] = Field(default=None, max_length=30)
    resume_link: Optional[str] = Field(default=None, max_length=512)


class PublicLinkCreate(BaseModel):
    booking_request_id: int
    allow_list: List[AllowListEntryIn] = Field(default_factory=list)
    slot_ids: Optional[List[str]] = Field(default=None, description="Пусто = все доступные слоты запроса")


class AllowListExtend(BaseModel):
    entries: List[AllowListEntryIn] = Field(min_length=1)


class AllowListSizeResponse(BaseModel):
    public_id: str
    size: int


class AllowListEntryResponse(BaseModel):
    identity: str
    full_name: Optional[str] = None
    hiring_name: Optional[str] = None
    domain: Optional[str] = None
    user_id: Optional[str] = None
    mobile_number: Optional[str] = None
    resume_link: Optional[str] = None
    added_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, entry: AllowListEntry) -> "AllowListEntryResponse":
        return cls(
            identity=entry.identity,
            full_name=entry.full_name,
            hiring_name=entry.hiring_name,
            domain=entry.domain,
            user_id=entry.user_id,
            mobile_number=entry.mobile_number,
            resume_link=entry.resume_link,
            added_at=entry.added_at,
        )


class PublicLinkResponse(BaseModel):
    public_id: str
    url: str
    booking_request_id: int
    booking_date: date_type
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, link: PublicLink) -> "PublicLinkResponse":
        return cls(
            public_id=link.public_id,
            url=settings.public_link_url(link.public_id),
            booking_request_id=link.booking_request_id,
            booking_date=link.booking_request.booking_date,
            created_at=link.created_at,
        )


class PublicLinkOverviewResponse(PublicLinkResponse):
    slot_count: int
    interviewer_count: int
    student_count: int
    confirmed_count: int


class PublicLinksListResponse(BaseModel):
    links: List[PublicLinkOverviewResponse]
    total: int


class StudentBookingResponse(BaseModel):
    id: int
    public_id: str
    slot: SlotResponse
    student_identity: str
    student_name: Optional[str] = None
    state: StudentBookingState
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    host_email: Optional[str] = None
    event_title: Optional[str] = None
    meet_link: Optional[str] = None

    @classmethod
    def from_model(cls, booking: StudentBooking) -> "StudentBookingResponse":
        return cls(
            id=booking.id,
            public_id=booking.public_link.public_id,
            slot=SlotResponse.from_model(booking.slot),
            student_identity=booking.student_identity,
            student_name=booking.student_name,
            state=booking.state,
            confirmed_at=booking.confirmed_at,
            cancelled_at=booking.cancelled_at,
            host_email=booking.host_email,
            event_title=booking.event_title,
            meet_link=booking.meet_link,
        )


class PublicLinkDetailsResponse(PublicLinkResponse):
    slots: List[SlotResponse]
    allow_list: List[AllowListEntryResponse]
    bookings: List[StudentBookingResponse]


class RemindersResponse(BaseModel):
    public_id: str
    queued: int


# === Публичная часть (студент) ===

class ClaimRequest(BaseModel):
    identity: str = Field(min_length=1, max_length=255, description="Email или studentId из allow-list")
    name: Optional[str] = Field(default=None, max_length=150)
