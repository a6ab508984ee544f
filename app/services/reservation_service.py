"""
Журнал резервирований: запись студента на слот и отмена записи админом.

Запись — одна транзакция БД:
  1. UPDATE slots SET state='confirmed' WHERE id=:slot AND state='available'
     (из конкурентов строку меняет только один, проигравший получает rowcount=0);
  2. INSERT подтверждённой StudentBooking (частичные уникальные индексы
     ловят двойную запись, если проверки выше обошла гонка);
  3. INSERT событий в outbox (уведомление, Meet-ссылка).
Никаких внешних вызовов внутри транзакции: побочные эффекты делает outbox worker.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AlreadyBookedError, InternalError, LinkClosedError, NotAuthorizedError,
    NotFoundError, SchedulingError, SlotUnavailableError,
)
from app.domain.slots import normalize_identity
from app.domain.states import (
    SlotEvent, StudentBookingEvent, next_slot_state, next_student_booking_state,
)
from db.models import (
    BookingRequestState, OutboxEventType, PublicLink, SlotReleaseReason, SlotState,
    StudentBooking, StudentBookingState,
)
from db.repositories.outbox import OutboxRepository
from db.repositories.public_links import PublicLinkRepository
from db.repositories.slots import SlotRepository
from db.repositories.student_bookings import StudentBookingRepository

logger = logging.getLogger(__name__)


def notification_payload(event: OutboxEventType, booking: StudentBooking) -> dict:
    """Контракт уведомления: {event, studentBookingId, slotId, studentIdentity}"""
    return {
        "event": event.value,
        "studentBookingId": booking.id,
        "slotId": booking.slot_id,
        "studentIdentity": booking.student_identity,
    }


class ReservationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.links = PublicLinkRepository(db)
        self.slots = SlotRepository(db)
        self.bookings = StudentBookingRepository(db)
        self.outbox = OutboxRepository(db)

    async def _check_preconditions(self, public_id: str, identity: str) -> PublicLink:
        """Проверки 1-3 в фиксированном порядке: первая сработавшая определяет ошибку"""
        link = await self.links.get_by_public_id(public_id)
        if not link:
            raise NotFoundError("Ссылка не найдена")
        if link.booking_request.state == BookingRequestState.CLOSED:
            raise LinkClosedError("Запись по этой ссылке закрыта")

        if not await self.links.is_allowed(link.id, identity):
            raise NotAuthorizedError("Студента нет в списке допущенных к записи")

        existing = await self.bookings.get_confirmed_for_identity(link.id, identity)
        if existing:
            raise AlreadyBookedError("Студент уже записан по этой ссылке", booking_id=existing.id)
        return link

    async def claim_slot(
        self,
        public_id: str,
        slot_id: str,
        student_identity: str,
        student_name: str | None = None,
    ) -> StudentBooking:
        identity = normalize_identity(student_identity)

        try:
            link = await self._check_preconditions(public_id, identity)

            if not await self.links.contains_slot(link.id, slot_id):
                raise SlotUnavailableError("Слот не относится к этой ссылке")

            target = next_slot_state(SlotState.AVAILABLE, SlotEvent.CONFIRM)
            if not await self.slots.compare_and_set_state(slot_id, SlotState.AVAILABLE, target):
                raise SlotUnavailableError("Слот уже занят, выберите другой")

            booking = await self.bookings.create(
                public_link_id=link.id,
                slot_id=slot_id,
                student_identity=identity,
                student_name=student_name,
                state=next_student_booking_state(StudentBookingState.PENDING_CLAIM, StudentBookingEvent.CONFIRM),
                confirmed_at=datetime.now(timezone.utc),
            )
            await self.outbox.add(
                OutboxEventType.SLOT_CONFIRMED,
                student_booking_id=booking.id,
                slot_id=slot_id,
                student_identity=identity,
                payload=notification_payload(OutboxEventType.SLOT_CONFIRMED, booking),
            )
            await self.outbox.add(
                OutboxEventType.MEET_LINK_REQUESTED,
                student_booking_id=booking.id,
                slot_id=slot_id,
                student_identity=identity,
            )
            await self.db.commit()
        except SchedulingError:
            await self.db.rollback()
            raise
        except IntegrityError:
            # Конкурент успел раньше: разбираемся, какой из индексов сработал
            await self.db.rollback()
            link = await self.links.get_by_public_id(public_id)
            existing = await self.bookings.get_confirmed_for_identity(link.id, identity) if link else None
            if existing:
                raise AlreadyBookedError("Студент уже записан по этой ссылке", booking_id=existing.id) from None
            raise SlotUnavailableError("Слот уже занят, выберите другой") from None
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Ошибка хранилища при записи: public_id={public_id} slot={slot_id}")
            raise InternalError("Не удалось записаться, попробуйте ещё раз") from e

        logger.info(f"Запись подтверждена: booking={booking.id} slot={slot_id} identity={identity}")
        return await self.bookings.get_by_id(booking.id)

    async def cancel_booking(self, student_booking_id: int, release_slot: bool) -> StudentBooking:
        """
        Отмена записи админом.

        release_slot=True возвращает слот в пул (Available), иначе слот снимается (Released).
        Повторная отмена возвращает запись как есть, без новых событий.
        """
        booking = await self.bookings.get_by_id(student_booking_id, for_update=True)
        if not booking:
            raise NotFoundError("Запись не найдена")
        if booking.state == StudentBookingState.CANCELLED:
            return booking

        new_state = next_student_booking_state(booking.state, StudentBookingEvent.CANCEL)
        slot_event = SlotEvent.CANCEL_RELEASE if release_slot else SlotEvent.CANCEL_WITHDRAW
        slot_target = next_slot_state(SlotState.CONFIRMED, slot_event)

        moved = await self.slots.compare_and_set_state(
            booking.slot_id,
            SlotState.CONFIRMED,
            slot_target,
            release_reason=None if release_slot else SlotReleaseReason.ADMIN_WITHDRAWN,
        )
        if not moved:
            logger.warning(f"Слот записи {booking.id} не в состоянии confirmed, отменяется только запись")

        booking.state = new_state
        booking.cancelled_at = datetime.now(timezone.utc)
        payload = notification_payload(OutboxEventType.BOOKING_CANCELLED, booking)
        payload["releaseSlot"] = release_slot
        await self.outbox.add(
            OutboxEventType.BOOKING_CANCELLED,
            student_booking_id=booking.id,
            slot_id=booking.slot_id,
            student_identity=booking.student_identity,
            payload=payload,
        )
        await self.db.commit()

        logger.info(
            f"Запись отменена: booking={booking.id} slot={booking.slot_id} "
            f"слот={'возвращён в пул' if release_slot else 'снят'}"
        )
        return await self.bookings.get_by_id(booking.id)
