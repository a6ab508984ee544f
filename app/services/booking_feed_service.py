"""
Лента записей для Main Sheet.

Проекция не получает push: она сама забирает переходы confirmed/cancelled
из outbox начиная с курсора (id последнего обработанного события).
"""
import asyncio
import logging
from typing import Any

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ExternalServiceError
from app.services.google_sheets_service import GoogleSheetsService, google_sheets_service
from db.models import FEED_EVENTS, OutboxEventType, StudentBookingState
from db.repositories.outbox import OutboxRepository
from db.repositories.public_links import PublicLinkRepository
from db.repositories.student_bookings import StudentBookingRepository

logger = logging.getLogger(__name__)

MAIN_SHEET_CURSOR_KEY = "main_sheet:cursor"
MAIN_SHEET_URL_KEY = "main_sheet:url"
FEED_PAGE_SIZE = 500

_EVENT_STATES = {
    OutboxEventType.SLOT_CONFIRMED: StudentBookingState.CONFIRMED,
    OutboxEventType.BOOKING_CANCELLED: StudentBookingState.CANCELLED,
}


class BookingFeedService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.outbox = OutboxRepository(db)
        self.bookings = StudentBookingRepository(db)
        self.links = PublicLinkRepository(db)

    async def list_bookings(self, since_cursor: int = 0, limit: int = 100) -> tuple[list[dict[str, Any]], int]:
        """
        Переходы записей после since_cursor в порядке записи.

        Returns:
            (события, новый курсор); при пустой ленте курсор не меняется
        """
        events = await self.outbox.feed_after(since_cursor, FEED_EVENTS, limit)
        if not events:
            return [], since_cursor

        bookings = {
            b.id: b
            for b in await self.bookings.get_many([e.student_booking_id for e in events if e.student_booking_id])
        }

        items = []
        for event in events:
            booking = bookings.get(event.student_booking_id)
            if booking is None:
                continue
            slot = booking.slot
            profile = await self.links.get_allow_list_entry(booking.public_link_id, booking.student_identity)
            items.append({
                "cursor": event.id,
                "event": event.event.value,
                "booking_id": booking.id,
                "state": _EVENT_STATES[event.event].value,
                "slot_id": booking.slot_id,
                "student_identity": booking.student_identity,
                "student_name": booking.student_name,
                "full_name": profile.full_name if profile else None,
                "hiring_name": profile.hiring_name if profile else None,
                "domain": (profile.domain if profile else None) or booking.public_link.booking_request.domain,
                "mobile_number": profile.mobile_number if profile else None,
                "resume_link": profile.resume_link if profile else None,
                "date": slot.date.isoformat(),
                "start": slot.start_time.strftime("%H:%M"),
                "end": slot.end_time.strftime("%H:%M"),
                "interviewer_name": slot.interviewer.full_name,
                "interviewer_email": slot.interviewer.email,
                "meet_link": booking.meet_link,
                "public_id": booking.public_link.public_id,
                "occurred_at": event.created_at.isoformat() if event.created_at else None,
            })

        return items, events[-1].id

    async def sync_main_sheet(
        self,
        redis_client: redis.Redis,
        sheet_url: str,
        sheets: GoogleSheetsService | None = None,
    ) -> dict[str, Any]:
        """
        Догнать Main Sheet по ленте от сохранённого в Redis курсора.
        Курсор сдвигается только после успешной записи в таблицу.
        """
        sheets = sheets or google_sheets_service
        cursor = int(await redis_client.get(MAIN_SHEET_CURSOR_KEY) or 0)

        # Последнее событие по записи определяет её строку
        latest: dict[int, dict[str, Any]] = {}
        next_cursor = cursor
        while True:
            items, page_cursor = await self.list_bookings(next_cursor, FEED_PAGE_SIZE)
            for item in items:
                latest[item["booking_id"]] = item
            if page_cursor == next_cursor:
                break
            next_cursor = page_cursor

        if not latest:
            return {"synced": 0, "cursor": cursor}

        result = await asyncio.to_thread(sheets.upsert_bookings, sheet_url, list(latest.values()))
        if not result["success"]:
            raise ExternalServiceError(result["error"])

        await redis_client.set(MAIN_SHEET_CURSOR_KEY, next_cursor)
        logger.info(f"Main Sheet синхронизирован: записей={len(latest)} курсор {cursor} -> {next_cursor}")
        return {"synced": len(latest), "cursor": next_cursor}
