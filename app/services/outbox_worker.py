"""
Outbox worker: разгребает outbox_events и выполняет побочные эффекты.

Доставка at-least-once: событие помечается sent только после успешного
обработчика; при ошибке — повтор с экспоненциальной задержкой, после
OUTBOX_MAX_ATTEMPTS попыток событие уходит в failed. Состояние записей
и слотов воркер не меняет (кроме сохранения полученной Meet-ссылки).
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.meet_link_service import MeetLinkError, MeetLinkService, meet_link_service
from app.services.notification_service import NotificationService, notification_service
from app.services.student_booking_service import default_event_title, slot_bounds, slot_label
from config import settings
from db.engine import async_session_maker
from db.models import OutboxEvent, OutboxEventType, StudentBookingState
from db.repositories.outbox import OutboxRepository
from db.repositories.student_bookings import StudentBookingRepository

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Побочный эффект не выполнен, событие нужно повторить"""


def retry_delay(attempts: int) -> timedelta:
    """Задержка перед следующей попыткой: base * 2^(attempts-1)"""
    return timedelta(seconds=settings.outbox_retry_base_seconds * 2 ** (attempts - 1))


class OutboxWorker:
    def __init__(
        self,
        session_maker: async_sessionmaker = async_session_maker,
        notifier: NotificationService | None = None,
        meet_links: MeetLinkService | None = None,
    ):
        self.session_maker = session_maker
        self.notifier = notifier or notification_service
        self.meet_links = meet_links or meet_link_service
        self._handlers: dict[OutboxEventType, Callable[[AsyncSession, OutboxEvent], Awaitable[None]]] = {
            OutboxEventType.SLOT_CONFIRMED: self._handle_slot_confirmed,
            OutboxEventType.BOOKING_CANCELLED: self._handle_booking_cancelled,
            OutboxEventType.MEET_LINK_REQUESTED: self._handle_meet_link_requested,
            OutboxEventType.ALLOW_LIST_INVITED: self._handle_allow_list_invited,
            OutboxEventType.BOOKING_REMINDER: self._handle_booking_reminder,
            OutboxEventType.BOOKING_REQUEST_INVITED: self._handle_booking_request_invited,
        }

    @staticmethod
    def _ensure(delivered: bool, what: str) -> None:
        if not delivered:
            raise DeliveryError(f"{what}: доставка не удалась")

    # === Обработчики ===

    async def _handle_slot_confirmed(self, db: AsyncSession, event: OutboxEvent) -> None:
        booking = await StudentBookingRepository(db).get_by_id(event.student_booking_id)
        if not booking:
            logger.warning(f"Outbox {event.id}: запись {event.student_booking_id} не найдена, пропуск")
            return
        self._ensure(await self.notifier.notify_slot_confirmed(
            booking.student_identity,
            booking.student_name,
            booking.slot.interviewer.full_name,
            slot_label(booking.slot),
        ), "slot.confirmed")

    async def _handle_booking_cancelled(self, db: AsyncSession, event: OutboxEvent) -> None:
        booking = await StudentBookingRepository(db).get_by_id(event.student_booking_id)
        if not booking:
            logger.warning(f"Outbox {event.id}: запись {event.student_booking_id} не найдена, пропуск")
            return
        self._ensure(await self.notifier.notify_booking_cancelled(
            booking.student_identity,
            slot_label(booking.slot),
            bool(event.payload.get("releaseSlot")),
        ), "booking.cancelled")

    async def _handle_meet_link_requested(self, db: AsyncSession, event: OutboxEvent) -> None:
        booking = await StudentBookingRepository(db).get_by_id(event.student_booking_id, for_update=True)
        if not booking or booking.state != StudentBookingState.CONFIRMED or booking.meet_link:
            logger.info(f"Outbox {event.id}: Meet-ссылка не нужна, пропуск")
            return

        host_email = booking.host_email or settings.default_host_email
        if "@" not in booking.student_identity or not host_email:
            logger.warning(f"Outbox {event.id}: нет email студента или хоста, ссылку создаст админ вручную")
            return

        title = booking.event_title or default_event_title(booking)
        start, end = slot_bounds(booking.slot)
        try:
            link = await self.meet_links.create_meet_link(
                title, start, end, host_email, [booking.student_identity, booking.slot.interviewer.email]
            )
        except MeetLinkError as e:
            raise DeliveryError(str(e)) from e

        booking.meet_link = link
        booking.host_email = host_email
        booking.event_title = title
        await db.commit()
        logger.info(f"Outbox {event.id}: Meet-ссылка сохранена для записи {booking.id}")

    async def _handle_allow_list_invited(self, db: AsyncSession, event: OutboxEvent) -> None:
        self._ensure(await self.notifier.notify_allow_list_invited(
            event.student_identity,
            event.payload.get("full_name"),
            event.payload["link_url"],
            event.payload["booking_date"],
        ), "allow_list.invited")

    async def _handle_booking_reminder(self, db: AsyncSession, event: OutboxEvent) -> None:
        self._ensure(await self.notifier.notify_booking_reminder(
            event.student_identity,
            event.payload.get("full_name"),
            event.payload["link_url"],
            event.payload["booking_date"],
        ), "booking.reminder")

    async def _handle_booking_request_invited(self, db: AsyncSession, event: OutboxEvent) -> None:
        payload = event.payload
        self._ensure(await self.notifier.notify_interviewer_invited(
            payload["interviewer_email"],
            payload["interviewer_name"],
            payload["booking_date"],
            settings.availability_url(payload["booking_request_id"], payload["interviewer_id"]),
        ), "booking_request.invited")

    # === Цикл ===

    async def _process(self, event_id: int) -> bool:
        """Каждое событие в своей сессии: сбой одного не задевает остальные"""
        async with self.session_maker() as db:
            repo = OutboxRepository(db)
            event = await repo.get_by_id(event_id)
            if not event:
                return False
            return await self._run_handler(db, repo, event)

    async def _run_handler(self, db: AsyncSession, repo: OutboxRepository, event: OutboxEvent) -> bool:
        event_id, event_type, attempts = event.id, event.event, event.attempts + 1
        try:
            await self._handlers[event_type](db, event)
        except Exception as e:
            # Любая ошибка побочного эффекта — повод повторить, а не уронить воркер
            await db.rollback()
            if attempts >= settings.outbox_max_attempts:
                next_retry_at = None
                logger.error(f"Outbox {event_id} ({event_type.value}) провален окончательно: {e}")
            else:
                next_retry_at = datetime.now(timezone.utc) + retry_delay(attempts)
                logger.warning(
                    f"Outbox {event_id} ({event_type.value}) попытка {attempts} не удалась: {e}; "
                    f"повтор в {next_retry_at:%H:%M:%S}"
                )
            await repo.mark_failed_attempt(event_id, attempts=attempts, error=str(e), next_retry_at=next_retry_at)
            await db.commit()
            return False

        await repo.mark_sent(event_id)
        await db.commit()
        return True

    async def drain_once(self) -> int:
        """Обработать одну пачку. Возвращает число взятых событий."""
        async with self.session_maker() as db:
            repo = OutboxRepository(db)
            events = await repo.claim_batch(
                settings.outbox_batch_size,
                timedelta(seconds=settings.outbox_lock_timeout),
            )
            event_ids = [event.id for event in events]
            await db.commit()

        sent = 0
        for event_id in event_ids:
            sent += await self._process(event_id)

        if event_ids:
            logger.info(f"Outbox: обработано {len(event_ids)}, отправлено {sent}")
        return len(event_ids)

    async def run_forever(self, stop: asyncio.Event | None = None) -> None:
        stop = stop or asyncio.Event()
        logger.info("Outbox worker запущен")
        while not stop.is_set():
            processed = await self.drain_once()
            if processed:
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=settings.outbox_poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Outbox worker остановлен")
