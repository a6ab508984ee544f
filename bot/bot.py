"""
Telegram бот — админ-консоль движка записи на интервью.

Функционал:
- Список публичных ссылок и прогресс записи
- Расширение allow-list и отмена записей
- Состояние очереди уведомлений
"""
import asyncio
import logging

from aiogram import Bot, Dispatcher, Router
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandStart
from aiogram.types import BotCommand, Message

from config import settings
from bot.handlers import admin_router

# Логирование
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Роутеры
main_router = Router()

ADMIN_COMMANDS = [
    BotCommand(command="admin", description="Панель управления"),
    BotCommand(command="links", description="Публичные ссылки и прогресс записи"),
    BotCommand(command="allow", description="Допустить студентов к ссылке"),
    BotCommand(command="cancel", description="Отменить запись студента"),
    BotCommand(command="outbox", description="Очередь уведомлений"),
    BotCommand(command="help", description="Список команд"),
]


@main_router.message(CommandStart())
async def cmd_start(message: Message):
    """Команда /start"""
    await message.answer(
        "👋 <b>Бот записи на интервью</b>\n\n"
        "Сюда приходят уведомления о записях и отменах.\n\n"
        "<i>Для администраторов:</i>\n"
        "/admin — Панель управления\n"
        "/help — Список команд",
        parse_mode=ParseMode.HTML
    )


@main_router.message(Command("help"))
async def cmd_help(message: Message):
    """Команда /help"""
    help_text = """
<b>📚 Справка по командам</b>

<b>Для администраторов:</b>
/admin — Панель управления
/links — Публичные ссылки и сколько студентов записалось
/allow <code>public_id email ...</code> — Допустить студентов к ссылке
/cancel <code>booking_id [keep]</code> — Отменить запись (keep — не возвращать слот)
/outbox — Очередь уведомлений
"""
    await message.answer(help_text, parse_mode=ParseMode.HTML)


async def main():
    """Запуск бота"""
    if not settings.telegram_bot_token:
        logger.error("TELEGRAM_BOT_TOKEN не задан!")
        return

    # Создаём бота
    bot = Bot(
        token=settings.telegram_bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )

    # Диспетчер
    dp = Dispatcher()

    # Подключаем роутеры
    dp.include_router(main_router)
    dp.include_router(admin_router)

    # Меню команд в клиенте Telegram
    await bot.set_my_commands(ADMIN_COMMANDS)

    logger.info(f"Бот запускается, env={settings.env}, алерты в чат {settings.admin_chat_id}")

    try:
        await dp.start_polling(bot)
    finally:
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
