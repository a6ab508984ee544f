"""
Админка записей студентов: правка хоста/названия встречи, Meet-ссылки, пайплайн.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ExternalServiceError, NotFoundError, ValidationError
from app.services.meet_link_service import MeetLinkError, MeetLinkService, meet_link_service
from config import settings
from db.models import AllowListEntry, PublicLink, Slot, StudentBooking, StudentBookingState
from db.repositories.public_links import PublicLinkRepository
from db.repositories.student_bookings import StudentBookingRepository

logger = logging.getLogger(__name__)


def slot_bounds(slot: Slot) -> tuple[datetime, datetime]:
    return datetime.combine(slot.date, slot.start_time), datetime.combine(slot.date, slot.end_time)


def slot_label(slot: Slot) -> str:
    return f"{slot.date.isoformat()} {slot.start_time:%H:%M}-{slot.end_time:%H:%M}"


def default_event_title(booking: StudentBooking) -> str:
    student = booking.student_name or booking.student_identity
    return f"Interview: {student} / {booking.slot.interviewer.full_name}"


@dataclass
class PipelineRow:
    entry: AllowListEntry
    link: PublicLink
    booking: StudentBooking | None


class StudentBookingService:
    def __init__(self, db: AsyncSession, meet_links: MeetLinkService | None = None):
        self.db = db
        self.meet_links = meet_links or meet_link_service
        self.bookings = StudentBookingRepository(db)
        self.links = PublicLinkRepository(db)

    async def get(self, student_booking_id: int, for_update: bool = False) -> StudentBooking:
        booking = await self.bookings.get_by_id(student_booking_id, for_update=for_update)
        if not booking:
            raise NotFoundError("Запись не найдена")
        return booking

    async def update(
        self,
        student_booking_id: int,
        host_email: str | None = None,
        event_title: str | None = None,
    ) -> StudentBooking:
        """Поля, нужные для Meet-ссылки. Пустая строка сбрасывает значение к умолчанию."""
        booking = await self.get(student_booking_id, for_update=True)
        if host_email is not None:
            booking.host_email = host_email.strip().lower() or None
        if event_title is not None:
            booking.event_title = event_title.strip() or None
        await self.db.commit()
        logger.info(f"Запись обновлена: booking={booking.id} host={booking.host_email}")
        return booking

    async def generate_meet_link(self, student_booking_id: int) -> StudentBooking:
        """
        Синхронно получить Meet-ссылку для подтверждённой записи.
        Нужны email студента, интервьюера и хоста, а также название встречи.
        """
        booking = await self.get(student_booking_id, for_update=True)
        if booking.state != StudentBookingState.CONFIRMED:
            raise ValidationError("Ссылку можно создать только для подтверждённой записи")

        if "@" not in booking.student_identity:
            raise ValidationError("У студента нет email")
        interviewer_email = booking.slot.interviewer.email
        host_email = booking.host_email or settings.default_host_email
        if not host_email:
            raise ValidationError("Не указан email хоста")
        title = booking.event_title or default_event_title(booking)

        start, end = slot_bounds(booking.slot)
        try:
            link = await self.meet_links.create_meet_link(
                title, start, end, host_email, [booking.student_identity, interviewer_email]
            )
        except MeetLinkError as e:
            logger.error(f"Не удалось создать Meet-ссылку для записи {booking.id}: {e}")
            raise ExternalServiceError(str(e)) from e

        booking.meet_link = link
        booking.host_email = host_email
        booking.event_title = title
        await self.db.commit()
        logger.info(f"Meet-ссылка сохранена: booking={booking.id}")
        return booking

    async def host_emails(self) -> list[str]:
        emails = await self.bookings.distinct_host_emails()
        if settings.default_host_email and settings.default_host_email not in emails:
            emails.append(settings.default_host_email)
        return emails

    async def pipeline(
        self,
        public_id: str | None = None,
        booking_date: date | None = None,
        domain: str | None = None,
    ) -> list[PipelineRow]:
        """Допущенные студенты и их подтверждённые записи"""
        public_link_id = None
        if public_id is not None:
            link = await self.links.get_by_public_id(public_id)
            if not link:
                raise NotFoundError("Ссылка не найдена")
            public_link_id = link.id

        rows = await self.links.pipeline(public_link_id, booking_date, domain)
        return [PipelineRow(entry=entry, link=link, booking=booking) for entry, link, booking in rows]
