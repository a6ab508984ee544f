"""
Сервис для получения ссылок Google Meet.

Ссылку выдаёт Google Calendar: создаём событие с conferenceData
и забираем hangoutLink. Сами ссылки не генерируем.
"""
import asyncio
import logging
import uuid
from datetime import datetime
from pathlib import Path

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config import settings

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]


class MeetLinkError(Exception):
    """Google Calendar не выдал ссылку"""


class MeetLinkService:
    """Создание событий с Google Meet через сервисный аккаунт"""

    def __init__(self, credentials_path: str | None = None, calendar_id: str | None = None):
        self.credentials_path = Path(credentials_path or settings.google_credentials_path)
        self.calendar_id = calendar_id or settings.google_calendar_id
        self.timezone = settings.interview_timezone

    def _build_service(self, host_email: str | None):
        if not self.credentials_path.exists():
            raise MeetLinkError(
                f"Файл credentials.json не найден по пути: {self.credentials_path.absolute()}"
            )
        credentials = service_account.Credentials.from_service_account_file(
            str(self.credentials_path), scopes=SCOPES
        )
        # Событие создаётся от имени хоста (domain-wide delegation)
        if host_email:
            credentials = credentials.with_subject(host_email)
        return build("calendar", "v3", credentials=credentials, cache_discovery=False)

    def _create_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        host_email: str | None,
        attendees: list[str],
    ) -> str:
        service = self._build_service(host_email)
        event = {
            "summary": title,
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone},
            "attendees": [{"email": email} for email in attendees if email],
            "conferenceData": {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }
        try:
            created = service.events().insert(
                calendarId=self.calendar_id,
                body=event,
                conferenceDataVersion=1,
                sendUpdates="all",
            ).execute()
        except HttpError as e:
            raise MeetLinkError(f"Google Calendar вернул ошибку: {e}") from e

        link = created.get("hangoutLink")
        if not link:
            raise MeetLinkError("Событие создано без ссылки на Meet")
        logger.info(f"Meet-ссылка создана: event={created.get('id')}")
        return link

    async def create_meet_link(
        self,
        title: str,
        start: datetime,
        end: datetime,
        host_email: str | None,
        attendees: list[str],
    ) -> str:
        """
        Создать событие и вернуть ссылку на Meet.

        Raises:
            MeetLinkError: если Google не выдал ссылку
        """
        return await asyncio.to_thread(self._create_event, title, start, end, host_email, attendees)


# Singleton
meet_link_service = MeetLinkService()
