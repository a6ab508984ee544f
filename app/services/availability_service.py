"""
Сбор доступности интервьюеров по запросу на бронирование.

Повторная отправка заменяет прошлую (не дополняет): старые окна помечаются
superseded_at и остаются в истории, текущими становятся новые.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotAuthorizedError, NotFoundError, ValidationError
from app.domain.slots import Window, validate_windows
from app.domain.states import BookingRequestEvent, next_booking_request_state
from app.services.draft_service import DraftService
from db.models import (
    AvailabilityWindow, BookingRequest, BookingRequestInterviewer,
    BookingRequestState, Interviewer, INVITABLE_STATUSES,
)
from db.repositories.booking_requests import BookingRequestRepository

logger = logging.getLogger(__name__)


@dataclass
class InterviewerAvailability:
    interviewer: Interviewer
    submitted_at: datetime | None
    windows: list[AvailabilityWindow] = field(default_factory=list)


class AvailabilityService:
    def __init__(self, db: AsyncSession, drafts: DraftService | None = None):
        self.db = db
        self.drafts = drafts
        self.requests = BookingRequestRepository(db)

    async def _get_request(self, booking_request_id: int, for_update: bool = False) -> BookingRequest:
        booking_request = await self.requests.get_by_id(booking_request_id, for_update=for_update)
        if not booking_request:
            raise NotFoundError("Запрос на бронирование не найден")
        return booking_request

    async def _get_invitation(self, booking_request_id: int, interviewer_id: int) -> BookingRequestInterviewer:
        invitation = await self.requests.get_invitation(booking_request_id, interviewer_id)
        if not invitation:
            raise NotAuthorizedError("Интервьюер не приглашён в этот запрос")
        return invitation

    async def submit(
        self,
        interviewer_id: int,
        booking_request_id: int,
        windows: list[Window],
    ) -> list[AvailabilityWindow]:
        """
        Отправить доступность.

        Пустой список снимает доступность интервьюера целиком.
        Первая непустая отправка переводит запрос в AvailabilityCollected.
        """
        booking_request = await self._get_request(booking_request_id, for_update=True)
        if booking_request.state == BookingRequestState.CLOSED:
            raise ValidationError("Запрос на бронирование закрыт")

        invitation = await self._get_invitation(booking_request_id, interviewer_id)
        if invitation.interviewer.status not in INVITABLE_STATUSES:
            raise ValidationError("Интервьюер деактивирован")

        ordered = validate_windows(windows, booking_request.booking_date)

        await self.requests.supersede_windows(booking_request_id, interviewer_id)
        rows = [
            AvailabilityWindow(
                booking_request_id=booking_request_id,
                interviewer_id=interviewer_id,
                date=w.date,
                start_time=w.start,
                end_time=w.end,
            )
            for w in ordered
        ]
        await self.requests.add_windows(rows)

        if invitation.submitted_at is None:
            invitation.submitted_at = datetime.now(timezone.utc)

        if rows:
            booking_request.state = next_booking_request_state(
                booking_request.state, BookingRequestEvent.AVAILABILITY_SUBMITTED
            )

        await self.db.commit()
        logger.info(
            f"Доступность отправлена: interviewer={interviewer_id} request={booking_request_id} "
            f"окон={len(rows)} state={booking_request.state.value}"
        )

        if self.drafts:
            await self.drafts.delete_draft(interviewer_id, booking_request_id)
        return rows

    async def get_availability(self, booking_request_id: int) -> list[InterviewerAvailability]:
        """Текущие окна всех приглашённых интервьюеров (вид для админа)"""
        await self._get_request(booking_request_id)
        invitations = await self.requests.list_invitations(booking_request_id)
        windows = await self.requests.current_windows(booking_request_id)

        by_interviewer: dict[int, list[AvailabilityWindow]] = {}
        for w in windows:
            by_interviewer.setdefault(w.interviewer_id, []).append(w)

        return [
            InterviewerAvailability(
                interviewer=inv.interviewer,
                submitted_at=inv.submitted_at,
                windows=by_interviewer.get(inv.interviewer_id, []),
            )
            for inv in invitations
        ]

    async def get_my_availability(self, interviewer_id: int, booking_request_id: int) -> InterviewerAvailability:
        await self._get_request(booking_request_id)
        invitation = await self._get_invitation(booking_request_id, interviewer_id)
        windows = await self.requests.current_windows(booking_request_id, interviewer_id)
        return InterviewerAvailability(
            interviewer=invitation.interviewer,
            submitted_at=invitation.submitted_at,
            windows=windows,
        )

    async def reset_submission(self, booking_request_id: int, interviewer_id: int) -> None:
        """Сбросить отправку интервьюера: окна уходят в историю, можно отправить заново"""
        booking_request = await self._get_request(booking_request_id, for_update=True)
        if booking_request.state == BookingRequestState.CLOSED:
            raise ValidationError("Запрос на бронирование закрыт")

        invitation = await self.requests.get_invitation(booking_request_id, interviewer_id)
        if not invitation:
            raise NotFoundError("Интервьюер не приглашён в этот запрос")

        superseded = await self.requests.supersede_windows(booking_request_id, interviewer_id)
        invitation.submitted_at = None
        await self.db.commit()
        logger.info(
            f"Отправка доступности сброшена: interviewer={interviewer_id} "
            f"request={booking_request_id} окон в истории={superseded}"
        )
