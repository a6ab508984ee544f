"""
Сервис для работы с Google Sheets API.
Выгрузка записей студентов в Main Sheet: одна строка на запись, ключ — ID записи.
"""
import re
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

import gspread
from google.oauth2.service_account import Credentials

from config import settings

logger = logging.getLogger(__name__)

MAIN_SHEET_HEADERS = [
    "ID записи",
    "Статус",
    "Студент",
    "Имя",
    "Hiring name",
    "Домен",
    "Телефон",
    "Резюме",
    "Дата",
    "Начало",
    "Конец",
    "Интервьюер",
    "Email интервьюера",
    "Meet",
    "Ссылка",
    "Обновлено",
]


class GoogleSheetsService:
    """Сервис для работы с Google Sheets"""

    def __init__(self, credentials_path: str | None = None):
        """
        Инициализация сервиса.

        Args:
            credentials_path: Путь к файлу с credentials сервисного аккаунта Google
        """
        self.credentials_path = Path(credentials_path or settings.google_credentials_path)
        self._client: Optional[gspread.Client] = None

    def _get_client(self) -> gspread.Client:
        """Получить клиент Google Sheets (создаёт при первом обращении)"""
        if self._client is None:
            if not self.credentials_path.exists():
                raise FileNotFoundError(
                    f"Файл credentials.json не найден по пути: {self.credentials_path.absolute()}"
                )

            creds = Credentials.from_service_account_file(
                str(self.credentials_path),
                scopes=[
                    'https://www.googleapis.com/auth/spreadsheets',
                    'https://www.googleapis.com/auth/drive'
                ]
            )

            self._client = gspread.authorize(creds)
            logger.info("Google Sheets клиент инициализирован")

        return self._client

    def _extract_spreadsheet_id(self, url: str) -> str:
        """
        Извлечь ID таблицы из URL.

        Args:
            url: URL Google таблицы (например, https://docs.google.com/spreadsheets/d/SPREADSHEET_ID/edit)

        Returns:
            ID таблицы
        """
        if not url:
            raise ValueError("Пустой URL Google таблицы")

        url = url.strip()

        # Опубликованная ссылка /spreadsheets/d/e/... не содержит spreadsheetId
        if re.search(r"/spreadsheets/d/e/", url):
            raise ValueError(
                "Похоже, вы указали опубликованную ссылку Google Sheets (/spreadsheets/d/e/...). "
                "Нужна обычная ссылка на таблицу вида "
                "https://docs.google.com/spreadsheets/d/<SPREADSHEET_ID>/edit"
            )

        match = re.search(r"/spreadsheets/d/([a-zA-Z0-9-_]+)", url)
        if match:
            return match.group(1)

        match = re.search(r"(?:\?|&|^)id=([a-zA-Z0-9-_]+)", url)
        if match:
            return match.group(1)

        # "Чистый" spreadsheetId
        if re.fullmatch(r"[a-zA-Z0-9-_]{25,}", url):
            return url

        raise ValueError(
            f"Не удалось извлечь spreadsheetId из строки: {url}. "
            "Передайте ссылку вида https://docs.google.com/spreadsheets/d/<SPREADSHEET_ID>/edit "
            "или сам <SPREADSHEET_ID>."
        )

    @staticmethod
    def _prepare_row(item: Dict[str, Any]) -> List[Any]:
        """Строка Main Sheet в порядке MAIN_SHEET_HEADERS"""
        return [
            item["booking_id"],
            item["state"],
            item["student_identity"],
            item.get("full_name") or item.get("student_name") or "",
            item.get("hiring_name") or "",
            item.get("domain") or "",
            item.get("mobile_number") or "",
            item.get("resume_link") or "",
            item["date"],
            item["start"],
            item["end"],
            item["interviewer_name"],
            item["interviewer_email"],
            item.get("meet_link") or "",
            item["public_id"],
            item["occurred_at"],
        ]

    def upsert_bookings(self, sheet_url: str, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Обновить строки записей в Main Sheet (существующие переписываются, новые дописываются).

        Returns:
            {'success': bool, 'updated_count': int, 'appended_count': int, 'error': str | None}
        """
        try:
            client = self._get_client()
            spreadsheet = client.open_by_key(self._extract_spreadsheet_id(sheet_url))
            sheet = spreadsheet.sheet1

            values = sheet.get_all_values()
            if not values or values[0] != MAIN_SHEET_HEADERS:
                sheet.update([MAIN_SHEET_HEADERS], "A1")
                logger.info("Заголовки Main Sheet обновлены")
                values = [MAIN_SHEET_HEADERS] + values[1:]

            # ID записи -> номер строки в таблице (1-based, с учётом заголовка)
            row_numbers = {
                row[0].strip(): index
                for index, row in enumerate(values[1:], start=2)
                if row and row[0].strip()
            }

            updates = []
            appends = []
            for item in items:
                row = self._prepare_row(item)
                row_number = row_numbers.get(str(item["booking_id"]))
                if row_number:
                    updates.append({"range": f"A{row_number}", "values": [row]})
                else:
                    appends.append(row)

            if updates:
                sheet.batch_update(updates)
            if appends:
                sheet.append_rows(appends)

            logger.info(f"Main Sheet обновлён: переписано {len(updates)}, добавлено {len(appends)}")
            return {
                'success': True,
                'updated_count': len(updates),
                'appended_count': len(appends),
                'error': None,
            }

        except FileNotFoundError as e:
            error_msg = f"Файл credentials.json не найден: {e}"
            logger.error(error_msg)
            return {'success': False, 'updated_count': 0, 'appended_count': 0, 'error': error_msg}
        except (ValueError, gspread.exceptions.GSpreadException) as e:
            error_msg = f"Ошибка при экспорте в Google Sheets: {e}"
            logger.error(error_msg, exc_info=True)
            return {'success': False, 'updated_count': 0, 'appended_count': 0, 'error': error_msg}


# Singleton
google_sheets_service = GoogleSheetsService()
