"""
Запросы на бронирование: админ создаёт запрос на дату и приглашает интервьюеров.

Переходы состояний считаются чистыми функциями из app.domain.states,
здесь только загрузка/сохранение и побочные события в outbox.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.domain.states import BookingRequestEvent, next_booking_request_state
from db.models import (
    BookingRequest, BookingRequestInterviewer, BookingRequestState,
    Interviewer, INVITABLE_STATUSES, OutboxEventType,
)
from db.repositories.booking_requests import BookingRequestRepository
from db.repositories.interviewers import InterviewerRepository
from db.repositories.outbox import OutboxRepository

logger = logging.getLogger(__name__)


@dataclass
class BookingRequestDetails:
    booking_request: BookingRequest
    invitations: list[BookingRequestInterviewer]


class BookingRequestService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.requests = BookingRequestRepository(db)
        self.interviewers = InterviewerRepository(db)
        self.outbox = OutboxRepository(db)

    async def get(self, booking_request_id: int, for_update: bool = False) -> BookingRequest:
        booking_request = await self.requests.get_by_id(booking_request_id, for_update=for_update)
        if not booking_request:
            raise NotFoundError("Запрос на бронирование не найден")
        return booking_request

    async def details(self, booking_request_id: int) -> BookingRequestDetails:
        booking_request = await self.get(booking_request_id)
        invitations = await self.requests.list_invitations(booking_request_id)
        return BookingRequestDetails(booking_request=booking_request, invitations=invitations)

    async def list_all(self) -> list[BookingRequest]:
        return await self.requests.list_all()

    async def _invitable(self, interviewer_ids: Sequence[int]) -> list[Interviewer]:
        """Приглашать можно только существующих интервьюеров в статусе active/on_probation"""
        unique_ids = list(dict.fromkeys(interviewer_ids))
        found = {i.id: i for i in await self.interviewers.get_many(unique_ids)}

        missing = [i for i in unique_ids if i not in found]
        if missing:
            raise NotFoundError(f"Интервьюеры не найдены: {missing}")

        inactive = [i.id for i in found.values() if i.status not in INVITABLE_STATUSES]
        if inactive:
            raise ValidationError(f"Нельзя пригласить неактивных интервьюеров: {inactive}")

        return [found[i] for i in unique_ids]

    async def _invite(self, booking_request: BookingRequest, interviewers: list[Interviewer]) -> list[int]:
        new_ids = await self.requests.add_invitations(booking_request.id, [i.id for i in interviewers])
        by_id = {i.id: i for i in interviewers}
        for interviewer_id in new_ids:
            interviewer = by_id[interviewer_id]
            await self.outbox.add(
                OutboxEventType.BOOKING_REQUEST_INVITED,
                payload={
                    "booking_request_id": booking_request.id,
                    "booking_date": booking_request.booking_date.isoformat(),
                    "interviewer_id": interviewer.id,
                    "interviewer_email": interviewer.email,
                    "interviewer_name": interviewer.full_name,
                },
            )
        if interviewers:
            booking_request.state = next_booking_request_state(booking_request.state, BookingRequestEvent.INVITE)
        return new_ids

    async def create(
        self,
        booking_date: date,
        interviewer_ids: Sequence[int],
        *,
        domain: str | None = None,
        slot_duration_minutes: int | None = None,
        created_by: int | None = None,
    ) -> BookingRequest:
        """
        Создать запрос на бронирование.
        Если интервьюеры переданы, они сразу приглашаются и запрос ждёт доступность.
        """
        if booking_date < date.today():
            raise ValidationError("Нельзя создавать запрос на прошедшую дату")
        if slot_duration_minutes is not None and slot_duration_minutes <= 0:
            raise ValidationError("Длительность слота должна быть положительной")

        interviewers = await self._invitable(interviewer_ids)

        booking_request = await self.requests.create(
            booking_date=booking_date,
            state=BookingRequestState.CREATED,
            domain=domain,
            slot_duration_minutes=slot_duration_minutes,
            created_by=created_by,
        )
        await self._invite(booking_request, interviewers)
        await self.db.commit()

        logger.info(
            f"Запрос на бронирование создан: id={booking_request.id} date={booking_date} "
            f"interviewers={len(interviewers)} state={booking_request.state.value}"
        )
        return booking_request

    async def invite(self, booking_request_id: int, interviewer_ids: Sequence[int]) -> list[int]:
        """Дослать приглашения в незакрытый запрос. Возвращает id впервые приглашённых."""
        booking_request = await self.get(booking_request_id, for_update=True)
        if booking_request.state == BookingRequestState.CLOSED:
            raise ValidationError("Запрос на бронирование закрыт")

        interviewers = await self._invitable(interviewer_ids)
        new_ids = await self._invite(booking_request, interviewers)
        await self.db.commit()
        return new_ids

    async def mark_availability_collected(self, booking_request_id: int) -> BookingRequest:
        """Ручной перевод в AvailabilityCollected (админ не ждёт всех интервьюеров)"""
        booking_request = await self.get(booking_request_id, for_update=True)
        booking_request.state = next_booking_request_state(booking_request.state, BookingRequestEvent.ADMIN_OVERRIDE)
        await self.db.commit()
        return booking_request

    async def close(self, booking_request_id: int) -> BookingRequest:
        """
        Закрыть запрос: новые записи по всем его ссылкам запрещены, чтение работает.
        Повторное закрытие — no-op.
        """
        booking_request = await self.get(booking_request_id, for_update=True)
        if booking_request.state == BookingRequestState.CLOSED:
            return booking_request

        booking_request.state = next_booking_request_state(booking_request.state, BookingRequestEvent.CLOSE)
        booking_request.closed_at = datetime.now(timezone.utc)
        await self.db.commit()
        logger.info(f"Запрос на бронирование закрыт: id={booking_request.id}")
        return booking_request
