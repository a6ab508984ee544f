"""
Публичные ссылки и allow-list студентов.

Allow-list только растёт: добавление — атомарное объединение множеств в БД
(INSERT ... ON CONFLICT DO NOTHING), удалить запись может только админ явно.
Чтение allow-list всегда идёт в БД, без кешей.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    LinkClosedError, NotAuthorizedError, NotFoundError, ValidationError,
)
from app.domain.slots import normalize_identity
from app.domain.states import BookingRequestEvent, can_publish, next_booking_request_state
from app.services.slot_service import SlotService
from config import settings
from db.models import (
    AllowListEntry, BookingRequestState, OutboxEventType, PublicLink,
    Slot, SlotState, StudentBooking,
)
from db.repositories.booking_requests import BookingRequestRepository
from db.repositories.outbox import OutboxRepository
from db.repositories.public_links import PublicLinkRepository
from db.repositories.slots import SlotRepository
from db.repositories.student_bookings import StudentBookingRepository

logger = logging.getLogger(__name__)

# Поля профиля студента, которые можно передать вместе с идентичностью
PROFILE_FIELDS = ("full_name", "hiring_name", "domain", "user_id", "mobile_number", "resume_link")


@dataclass
class PublicLinkDetails:
    link: PublicLink
    slots: list[Slot]
    allow_list: list[AllowListEntry]
    bookings: list[StudentBooking]


@dataclass
class PublicLinkOverview:
    link: PublicLink
    slot_count: int
    interviewer_count: int
    student_count: int
    confirmed_count: int


def normalize_entries(entries: Sequence[str | dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Привести вход allow-list к строкам таблицы.
    Принимает идентичности строками или словари {"identity": ..., "full_name": ...}.
    Дубликаты внутри одного вызова схлопываются (побеждает первый).
    """
    result: dict[str, dict[str, Any]] = {}
    for entry in entries:
        if isinstance(entry, str):
            entry = {"identity": entry}
        identity = normalize_identity(entry.get("identity", ""))
        if identity in result:
            continue
        row = {"identity": identity}
        for key in PROFILE_FIELDS:
            value = entry.get(key)
            row[key] = value.strip() if isinstance(value, str) and value.strip() else None
        result[identity] = row
    return list(result.values())


class PublicLinkService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.links = PublicLinkRepository(db)
        self.requests = BookingRequestRepository(db)
        self.slots = SlotRepository(db)
        self.bookings = StudentBookingRepository(db)
        self.outbox = OutboxRepository(db)

    async def get_link(self, public_id: str) -> PublicLink:
        link = await self.links.get_by_public_id(public_id)
        if not link:
            raise NotFoundError("Ссылка не найдена")
        return link

    async def _enqueue_invites(self, link: PublicLink, rows: list[dict[str, Any]], added: Sequence[str]) -> None:
        by_identity = {row["identity"]: row for row in rows}
        for identity in added:
            await self.outbox.add(
                OutboxEventType.ALLOW_LIST_INVITED,
                student_identity=identity,
                payload={
                    "public_id": link.public_id,
                    "link_url": settings.public_link_url(link.public_id),
                    "booking_date": link.booking_request.booking_date.isoformat(),
                    "full_name": by_identity[identity].get("full_name"),
                },
            )

    async def create_public_link(
        self,
        booking_request_id: int,
        initial_allow_list: Sequence[str | dict[str, Any]] = (),
        slot_ids: Sequence[str] | None = None,
        created_by: int | None = None,
    ) -> PublicLink:
        """
        Опубликовать ссылку на доступные слоты запроса.

        Слоты материализуются (идемпотентно), в ссылку попадает снимок Available-слотов
        или переданное подмножество. Запрос переходит в Published.
        """
        booking_request = await self.requests.get_by_id(booking_request_id, for_update=True)
        if not booking_request:
            raise NotFoundError("Запрос на бронирование не найден")
        if booking_request.state == BookingRequestState.CLOSED:
            raise LinkClosedError("Запрос на бронирование закрыт")
        if not can_publish(booking_request.state):
            raise ValidationError(
                f"Ссылку можно создать только после сбора доступности (сейчас {booking_request.state.value})"
            )

        await SlotService(self.db).materialize_for(booking_request)
        available = await self.slots.list_for_request(booking_request_id, [SlotState.AVAILABLE])
        available_ids = [s.id for s in available]

        if slot_ids is not None:
            requested = list(dict.fromkeys(slot_ids))
            allowed = set(available_ids)
            unknown = [sid for sid in requested if sid not in allowed]
            if unknown:
                raise ValidationError(f"Слоты не принадлежат запросу или уже заняты: {unknown}")
            available_ids = requested

        if not available_ids:
            raise ValidationError("Нет доступных слотов для публикации")

        rows = normalize_entries(initial_allow_list)

        link = await self.links.create(
            available_ids,
            public_id=secrets.token_urlsafe(settings.public_id_bytes),
            booking_request_id=booking_request_id,
            created_by=created_by,
        )
        link.booking_request = booking_request
        added = await self.links.add_to_allow_list(link.id, rows)
        await self._enqueue_invites(link, rows, added)

        booking_request.state = next_booking_request_state(booking_request.state, BookingRequestEvent.PUBLISH)
        await self.db.commit()

        logger.info(
            f"Публичная ссылка создана: public_id={link.public_id} request={booking_request_id} "
            f"слотов={len(available_ids)} студентов={len(added)}"
        )
        return link

    async def extend_allow_list(self, public_id: str, entries: Sequence[str | dict[str, Any]]) -> int:
        """
        Добавить студентов в allow-list (объединение множеств, ничего не удаляет).

        Returns:
            Размер allow-list после добавления
        """
        link = await self.get_link(public_id)
        rows = normalize_entries(entries)

        added = await self.links.add_to_allow_list(link.id, rows)
        await self._enqueue_invites(link, rows, added)
        size = await self.links.allow_list_size(link.id)
        await self.db.commit()

        logger.info(f"Allow-list расширен: public_id={public_id} добавлено={len(added)} всего={size}")
        return size

    async def remove_from_allow_list(self, public_id: str, identity: str) -> None:
        """Явное удаление студента админом. Подтверждённые записи не трогаются."""
        link = await self.get_link(public_id)
        identity = normalize_identity(identity)

        removed = await self.links.remove_from_allow_list(link.id, identity)
        if not removed:
            raise NotFoundError("Студента нет в allow-list")
        await self.db.commit()
        logger.info(f"Студент удалён из allow-list: public_id={public_id} identity={identity}")

    async def list_available_slots(self, public_id: str, requester_identity: str) -> list[Slot]:
        link = await self.get_link(public_id)
        identity = normalize_identity(requester_identity)
        if not await self.links.is_allowed(link.id, identity):
            raise NotAuthorizedError("Студента нет в списке допущенных к записи")
        return await self.slots.list_for_link(link.id, [SlotState.AVAILABLE])

    async def get_public_link(self, public_id: str) -> PublicLinkDetails:
        link = await self.get_link(public_id)
        return PublicLinkDetails(
            link=link,
            slots=await self.slots.list_for_link(link.id),
            allow_list=await self.links.allow_list(link.id),
            bookings=await self.bookings.list_for_link(link.id),
        )

    async def list_public_links(self, booking_request_id: int | None = None) -> list[PublicLinkOverview]:
        result = []
        for link in await self.links.list_all(booking_request_id):
            slots = await self.slots.list_for_link(link.id)
            result.append(PublicLinkOverview(
                link=link,
                slot_count=len(slots),
                interviewer_count=len({s.interviewer_id for s in slots}),
                student_count=await self.links.allow_list_size(link.id),
                confirmed_count=await self.bookings.count_confirmed_for_link(link.id),
            ))
        return result

    async def send_reminders(self, public_id: str) -> int:
        """Напомнить всем допущенным студентам, кто ещё не записался. Возвращает число напоминаний."""
        link = await self.get_link(public_id)
        if link.booking_request.state == BookingRequestState.CLOSED:
            raise LinkClosedError("Запрос на бронирование закрыт")

        booked = await self.bookings.confirmed_identities(link.id)
        pending = [e for e in await self.links.allow_list(link.id) if e.identity not in booked]
        for entry in pending:
            await self.outbox.add(
                OutboxEventType.BOOKING_REMINDER,
                student_identity=entry.identity,
                payload={
                    "public_id": link.public_id,
                    "link_url": settings.public_link_url(link.public_id),
                    "booking_date": link.booking_request.booking_date.isoformat(),
                    "full_name": entry.full_name,
                },
            )
        await self.db.commit()
        logger.info(f"Напоминания поставлены в очередь: public_id={public_id} студентов={len(pending)}")
        return len(pending)
