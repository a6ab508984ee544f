"""
Машины состояний запроса на бронирование, слота и записи студента.

Три независимые сущности, связанные внешними ключами. Переход — чистая
функция (текущее состояние, событие) -> новое состояние, без обращения к БД.
"""
from enum import Enum

from app.core.exceptions import InvalidTransitionError
from db.models import BookingRequestState, SlotState, StudentBookingState


class BookingRequestEvent(str, Enum):
    INVITE = "invite"
    AVAILABILITY_SUBMITTED = "availability_submitted"
    ADMIN_OVERRIDE = "admin_override"
    PUBLISH = "publish"
    CLOSE = "close"


class SlotEvent(str, Enum):
    HOLD = "hold"
    CONFIRM = "confirm"
    EXPIRE = "expire"
    CANCEL_RELEASE = "cancel_release"    # Отмена админом, слот возвращается в пул
    CANCEL_WITHDRAW = "cancel_withdraw"  # Отмена админом, слот снимается навсегда
    WITHDRAW = "withdraw"                # Исходное окно исчезло
    RESTORE = "restore"                  # Окно вернулось; только для слотов, снятых из-за окна


class StudentBookingEvent(str, Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    CANCEL = "cancel"


_BR = BookingRequestState
_BOOKING_REQUEST_TRANSITIONS: dict[tuple[BookingRequestState, BookingRequestEvent], BookingRequestState] = {
    (_BR.CREATED, BookingRequestEvent.INVITE): _BR.AWAITING_AVAILABILITY,
    (_BR.AWAITING_AVAILABILITY, BookingRequestEvent.INVITE): _BR.AWAITING_AVAILABILITY,
    (_BR.AVAILABILITY_COLLECTED, BookingRequestEvent.INVITE): _BR.AVAILABILITY_COLLECTED,
    (_BR.PUBLISHED, BookingRequestEvent.INVITE): _BR.PUBLISHED,
    (_BR.AWAITING_AVAILABILITY, BookingRequestEvent.AVAILABILITY_SUBMITTED): _BR.AVAILABILITY_COLLECTED,
    (_BR.AVAILABILITY_COLLECTED, BookingRequestEvent.AVAILABILITY_SUBMITTED): _BR.AVAILABILITY_COLLECTED,
    (_BR.PUBLISHED, BookingRequestEvent.AVAILABILITY_SUBMITTED): _BR.PUBLISHED,
    (_BR.CREATED, BookingRequestEvent.ADMIN_OVERRIDE): _BR.AVAILABILITY_COLLECTED,
    (_BR.AWAITING_AVAILABILITY, BookingRequestEvent.ADMIN_OVERRIDE): _BR.AVAILABILITY_COLLECTED,
    (_BR.AVAILABILITY_COLLECTED, BookingRequestEvent.ADMIN_OVERRIDE): _BR.AVAILABILITY_COLLECTED,
    (_BR.AVAILABILITY_COLLECTED, BookingRequestEvent.PUBLISH): _BR.PUBLISHED,
    (_BR.PUBLISHED, BookingRequestEvent.PUBLISH): _BR.PUBLISHED,
    (_BR.CREATED, BookingRequestEvent.CLOSE): _BR.CLOSED,
    (_BR.AWAITING_AVAILABILITY, BookingRequestEvent.CLOSE): _BR.CLOSED,
    (_BR.AVAILABILITY_COLLECTED, BookingRequestEvent.CLOSE): _BR.CLOSED,
    (_BR.PUBLISHED, BookingRequestEvent.CLOSE): _BR.CLOSED,
}

_S = SlotState
_SLOT_TRANSITIONS: dict[tuple[SlotState, SlotEvent], SlotState] = {
    (_S.AVAILABLE, SlotEvent.HOLD): _S.RESERVED,
    (_S.AVAILABLE, SlotEvent.CONFIRM): _S.CONFIRMED,
    (_S.RESERVED, SlotEvent.CONFIRM): _S.CONFIRMED,
    (_S.RESERVED, SlotEvent.EXPIRE): _S.AVAILABLE,
    (_S.AVAILABLE, SlotEvent.WITHDRAW): _S.RELEASED,
    (_S.RELEASED, SlotEvent.RESTORE): _S.AVAILABLE,
    (_S.CONFIRMED, SlotEvent.CANCEL_RELEASE): _S.AVAILABLE,
    (_S.CONFIRMED, SlotEvent.CANCEL_WITHDRAW): _S.RELEASED,
}

_SB = StudentBookingState
_STUDENT_BOOKING_TRANSITIONS: dict[tuple[StudentBookingState, StudentBookingEvent], StudentBookingState] = {
    (_SB.PENDING_CLAIM, StudentBookingEvent.CONFIRM): _SB.CONFIRMED,
    (_SB.PENDING_CLAIM, StudentBookingEvent.REJECT): _SB.REJECTED,
    (_SB.CONFIRMED, StudentBookingEvent.CANCEL): _SB.CANCELLED,
    # Повторная отмена — no-op, а не ошибка
    (_SB.CANCELLED, StudentBookingEvent.CANCEL): _SB.CANCELLED,
}


def _apply(table: dict, kind: str, state, event):
    try:
        return table[(state, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"{kind}: переход '{event.value}' недопустим из состояния '{state.value}'"
        ) from None


def next_booking_request_state(state: BookingRequestState, event: BookingRequestEvent) -> BookingRequestState:
    return _apply(_BOOKING_REQUEST_TRANSITIONS, "booking_request", state, event)


def next_slot_state(state: SlotState, event: SlotEvent) -> SlotState:
    return _apply(_SLOT_TRANSITIONS, "slot", state, event)


def next_student_booking_state(state: StudentBookingState, event: StudentBookingEvent) -> StudentBookingState:
    return _apply(_STUDENT_BOOKING_TRANSITIONS, "student_booking", state, event)


def can_publish(state: BookingRequestState) -> bool:
    """Публичную ссылку можно создать только после сбора доступности"""
    return (state, BookingRequestEvent.PUBLISH) in _BOOKING_REQUEST_TRANSITIONS
