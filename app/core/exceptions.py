"""
Ошибки движка записи.

Каждая ошибка несёт стабильный code (его видит клиент) и HTTP статус,
в который её переводит обработчик из app/main.py.
"""


class SchedulingError(Exception):
    """Базовая ошибка движка записи"""
    code = "scheduling_error"
    status_code = 400

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context


class ValidationError(SchedulingError):
    """Некорректный или пересекающийся ввод — исправляется вызывающим"""
    code = "validation_error"
    status_code = 400


class NotAuthorizedError(SchedulingError):
    """Идентичность не в allow-list ссылки"""
    code = "not_authorized"
    status_code = 403


class NotFoundError(SchedulingError):
    """Неизвестный publicId / slotId / запись"""
    code = "not_found"
    status_code = 404


class LinkClosedError(SchedulingError):
    """Запрос на бронирование закрыт — новые записи заморожены"""
    code = "link_closed"
    status_code = 410


class AlreadyBookedError(SchedulingError):
    """У студента уже есть подтверждённая запись по этой ссылке"""
    code = "already_booked"
    status_code = 409

    def __init__(self, message: str = "", booking_id: int | None = None):
        super().__init__(message, booking_id=booking_id)
        self.booking_id = booking_id


class SlotUnavailableError(SchedulingError):
    """Слот занят или проигран в гонке — перезапросить список и выбрать другой"""
    code = "slot_unavailable"
    status_code = 409


class InternalError(SchedulingError):
    """Неожиданная ошибка хранилища; транзакция откатена, это не проигранная гонка"""
    code = "internal_error"
    status_code = 500


class ExternalServiceError(SchedulingError):
    """Внешний сервис (Google Calendar) не ответил; синхронное админ-действие не выполнено"""
    code = "external_service_error"
    status_code = 502


class InvalidTransitionError(ValidationError):
    """Переход состояния недопустим из текущего состояния"""
    code = "invalid_transition"
