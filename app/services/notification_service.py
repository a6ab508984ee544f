"""
Сервис для отправки уведомлений: алерты админам в Telegram и письма через Resend.

Все методы возвращают bool: False означает, что доставка не удалась
и outbox worker повторит попытку позже.
"""
import asyncio
import aiohttp
import logging

import resend

from config import settings

logger = logging.getLogger(__name__)


class NotificationService:
    """Отправка уведомлений через Telegram Bot API и Resend"""

    def __init__(self):
        self.bot_token = settings.telegram_bot_token
        self.api_url = f"https://api.telegram.org/bot{self.bot_token}"
        self.admin_chat_id = settings.admin_chat_id
        resend.api_key = settings.resend_api_key

    async def send_message(self, chat_id: int, text: str, parse_mode: str = "HTML") -> bool:
        """Отправить сообщение в Telegram"""
        if not self.bot_token:
            logger.warning("TELEGRAM_BOT_TOKEN не настроен")
            return False

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{self.api_url}/sendMessage",
                    json={
                        "chat_id": chat_id,
                        "text": text,
                        "parse_mode": parse_mode,
                    }
                ) as response:
                    if response.status == 200:
                        logger.info(f"Уведомление отправлено: chat_id={chat_id}")
                        return True
                    else:
                        error = await response.text()
                        logger.error(f"Ошибка отправки уведомления: {error}")
                        return False
        except aiohttp.ClientError as e:
            logger.error(f"Ошибка отправки уведомления: {e}")
            return False

    async def notify_admins(self, text: str) -> bool:
        """Алерт в админский чат. Если чат не настроен, считаем доставленным."""
        if not self.admin_chat_id:
            logger.debug("ADMIN_CHAT_ID не настроен, алерт пропущен")
            return True
        return await self.send_message(self.admin_chat_id, text)

    async def send_email(self, to: str, subject: str, html: str) -> bool:
        """Письмо через Resend. SDK синхронный, поэтому вызов уходит в поток."""
        if not settings.resend_api_key:
            logger.warning("RESEND_API_KEY не настроен")
            return False

        try:
            response = await asyncio.to_thread(resend.Emails.send, {
                "from": settings.email_from,
                "to": [to],
                "subject": subject,
                "html": html,
            })
            logger.info(f"Письмо отправлено: to={to} id={response.get('id')}")
            return True
        except Exception as e:
            logger.error(f"Ошибка отправки письма {to}: {e}")
            return False

    # === Шаблоны ===

    async def notify_slot_confirmed(
        self,
        student_identity: str,
        student_name: str | None,
        interviewer_name: str,
        slot_label: str,
    ) -> bool:
        """Подтверждение записи: письмо студенту (если идентичность — email) и алерт админам"""
        text = (
            "✅ <b>Новая запись на собеседование</b>\n\n"
            f"Студент: {student_name or student_identity}\n"
            f"Интервьюер: {interviewer_name}\n"
            f"Время: {slot_label}"
        )
        if not await self.notify_admins(text):
            return False

        if "@" not in student_identity:
            return True
        html = (
            f"<p>Здравствуйте{', ' + student_name if student_name else ''}!</p>"
            f"<p>Вы записаны на собеседование: <b>{slot_label}</b>, интервьюер {interviewer_name}.</p>"
            "<p>Приглашение со ссылкой на встречу придёт из Google Calendar.</p>"
        )
        return await self.send_email(student_identity, "Запись на собеседование подтверждена", html)

    async def notify_booking_cancelled(
        self,
        student_identity: str,
        slot_label: str,
        slot_released: bool,
    ) -> bool:
        text = (
            "❌ <b>Запись отменена</b>\n\n"
            f"Студент: {student_identity}\n"
            f"Время: {slot_label}\n"
            f"Слот: {'возвращён в пул' if slot_released else 'снят'}"
        )
        if not await self.notify_admins(text):
            return False

        if "@" not in student_identity:
            return True
        html = (
            f"<p>Ваша запись на собеседование ({slot_label}) отменена администратором.</p>"
            "<p>Если ссылка на запись ещё активна, вы можете выбрать другое время.</p>"
        )
        return await self.send_email(student_identity, "Запись на собеседование отменена", html)

    async def notify_allow_list_invited(
        self,
        student_identity: str,
        full_name: str | None,
        link_url: str,
        booking_date: str,
    ) -> bool:
        """Приглашение записаться. Студентам без email писать некуда — считаем доставленным."""
        if "@" not in student_identity:
            return True
        html = (
            f"<p>Здравствуйте{', ' + full_name if full_name else ''}!</p>"
            f"<p>Вы допущены к собеседованию {booking_date}. Выберите удобное время по ссылке:</p>"
            f'<p><a href="{link_url}">{link_url}</a></p>'
        )
        return await self.send_email(student_identity, "Выберите время собеседования", html)

    async def notify_booking_reminder(
        self,
        student_identity: str,
        full_name: str | None,
        link_url: str,
        booking_date: str,
    ) -> bool:
        if "@" not in student_identity:
            return True
        html = (
            f"<p>Здравствуйте{', ' + full_name if full_name else ''}!</p>"
            f"<p>Напоминаем: вы ещё не выбрали время собеседования на {booking_date}.</p>"
            f'<p><a href="{link_url}">{link_url}</a></p>'
        )
        return await self.send_email(student_identity, "Напоминание: выберите время собеседования", html)

    async def notify_interviewer_invited(
        self,
        interviewer_email: str,
        interviewer_name: str,
        booking_date: str,
        availability_url: str,
    ) -> bool:
        html = (
            f"<p>Здравствуйте, {interviewer_name}!</p>"
            f"<p>Укажите, пожалуйста, свою доступность на {booking_date}:</p>"
            f'<p><a href="{availability_url}">{availability_url}</a></p>'
        )
        return await self.send_email(interviewer_email, f"Доступность на {booking_date}", html)


# Singleton
notification_service = NotificationService()
