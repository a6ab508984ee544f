"""
Нарезка окон доступности на слоты и стабильные id слотов.
"""
import hashlib
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

from app.core.exceptions import ValidationError


@dataclass(frozen=True)
class Window:
    """Окно доступности: [start, end) в пределах одной даты"""
    date: date
    start: time
    end: time


@dataclass(frozen=True)
class SlotSpec:
    """Слот, вычисленный из окна (ещё не сохранён)"""
    id: str
    interviewer_id: int
    date: date
    start: time
    end: time


def slot_id_for(interviewer_id: int, day: date, start: time, end: time) -> str:
    """Стабильный id: один и тот же интервал интервьюера всегда даёт один id"""
    raw = f"{interviewer_id}|{day.isoformat()}|{start.strftime('%H:%M')}|{end.strftime('%H:%M')}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


def slice_window(
    interviewer_id: int,
    window: Window,
    duration_minutes: int | None = None,
) -> list[SlotSpec]:
    """
    Нарезать окно на подряд идущие слоты заданной длительности.

    Без длительности всё окно — один слот. Хвост короче длительности отбрасывается.
    """
    if duration_minutes is not None and duration_minutes <= 0:
        raise ValidationError("Длительность слота должна быть положительной")

    if duration_minutes is None:
        return [SlotSpec(
            id=slot_id_for(interviewer_id, window.date, window.start, window.end),
            interviewer_id=interviewer_id,
            date=window.date,
            start=window.start,
            end=window.end,
        )]

    step = timedelta(minutes=duration_minutes)
    cursor = datetime.combine(window.date, window.start)
    end = datetime.combine(window.date, window.end)
    result = []
    while cursor + step <= end:
        start_t, end_t = cursor.time(), (cursor + step).time()
        result.append(SlotSpec(
            id=slot_id_for(interviewer_id, window.date, start_t, end_t),
            interviewer_id=interviewer_id,
            date=window.date,
            start=start_t,
            end=end_t,
        ))
        cursor += step
    return result


def validate_windows(windows: Iterable[Window], booking_date: date) -> list[Window]:
    """
    Проверить окна одного интервьюера: дата запроса, start < end, без пересечений.
    Соприкасающиеся окна (09:00-10:00 и 10:00-11:00) пересечением не считаются.
    """
    ordered = sorted(windows, key=lambda w: (w.date, w.start))
    for w in ordered:
        if w.date != booking_date:
            raise ValidationError(
                f"Окно {w.start:%H:%M}-{w.end:%H:%M} должно быть на дату запроса {booking_date.isoformat()}"
            )
        if w.start >= w.end:
            raise ValidationError(f"Время начала {w.start:%H:%M} должно быть раньше окончания {w.end:%H:%M}")

    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            raise ValidationError(
                f"Окна {prev.start:%H:%M}-{prev.end:%H:%M} и {cur.start:%H:%M}-{cur.end:%H:%M} пересекаются"
            )
    return ordered


def normalize_identity(identity: str) -> str:
    """Email/studentId сравниваются без учёта регистра и пробелов по краям"""
    value = (identity or "").strip().lower()
    if not value:
        raise ValidationError("Пустая идентичность студента")
    return value
