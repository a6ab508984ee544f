"""
Команды администратора: ссылки на запись, allow-list, отмены, outbox.
"""
from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.types import Message, CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup
from sqlalchemy import select
from typing import Optional

from config import settings
from app.core.exceptions import SchedulingError
from app.services.public_link_service import PublicLinkService
from app.services.reservation_service import ReservationService
from db.engine import async_session_maker
from db.models import Administrator
from db.repositories.outbox import OutboxRepository

admin_router = Router()


# === Проверка админа ===
async def get_admin(telegram_id: int) -> Optional[Administrator]:
    """Получить объект администратора по telegram_id"""
    async with async_session_maker() as db:
        result = await db.execute(
            select(Administrator).where(
                Administrator.telegram_id == telegram_id,
                Administrator.is_active == True
            )
        )
        return result.scalars().first()


async def is_admin(telegram_id: int) -> bool:
    """Проверить, является ли пользователь администратором"""
    if settings.is_super_admin(telegram_id):
        return True

    admin = await get_admin(telegram_id)
    return admin is not None


def _menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔗 Ссылки на запись", callback_data="admin:links")],
        [InlineKeyboardButton(text="📬 Очередь уведомлений", callback_data="admin:outbox")],
    ])


def _back_keyboard(refresh: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔄 Обновить", callback_data=refresh)],
        [InlineKeyboardButton(text="« Назад", callback_data="admin:back")],
    ])


async def links_text() -> str:
    async with async_session_maker() as db:
        links = await PublicLinkService(db).list_public_links()

    if not links:
        return "🔗 <b>Ссылки на запись</b>\n\nПока ни одной ссылки."

    lines = ["🔗 <b>Ссылки на запись</b>\n"]
    for item in links:
        closed = " 🔒" if item.link.booking_request.closed_at else ""
        lines.append(
            f"• <code>{item.link.public_id}</code>{closed}\n"
            f"  📅 {item.link.booking_request.booking_date.strftime('%d.%m.%Y')}"
            f" | слотов: {item.slot_count}"
            f" | записались: {item.confirmed_count}/{item.student_count}"
        )
    return "\n".join(lines)


async def outbox_text() -> str:
    async with async_session_maker() as db:
        counts = await OutboxRepository(db).count_by_status()

    return (
        "📬 <b>Очередь уведомлений</b>\n\n"
        f"⏳ В очереди: {counts.get('pending', 0)}\n"
        f"✅ Отправлено: {counts.get('sent', 0)}\n"
        f"❌ Не доставлено: {counts.get('failed', 0)}"
    )


# === Команды ===

@admin_router.message(Command("admin"))
async def cmd_admin(message: Message):
    """Панель администратора"""
    if not await is_admin(message.from_user.id):
        await message.answer("⛔ У вас нет прав администратора")
        return

    await message.answer(
        "🔧 <b>Панель администратора</b>\n\n"
        "Выберите раздел:",
        reply_markup=_menu_keyboard()
    )


@admin_router.callback_query(F.data == "admin:back")
async def callback_back(callback: CallbackQuery):
    await callback.message.edit_text(
        "🔧 <b>Панель администратора</b>\n\n"
        "Выберите раздел:",
        reply_markup=_menu_keyboard()
    )
    await callback.answer()


@admin_router.message(Command("links"))
async def cmd_links(message: Message):
    """Список публичных ссылок"""
    if not await is_admin(message.from_user.id):
        await message.answer("⛔ У вас нет прав администратора")
        return

    await message.answer(await links_text())


@admin_router.callback_query(F.data == "admin:links")
async def callback_links(callback: CallbackQuery):
    if not await is_admin(callback.from_user.id):
        await callback.answer("Нет доступа", show_alert=True)
        return

    await callback.message.edit_text(await links_text(), reply_markup=_back_keyboard("admin:links"))
    await callback.answer()


@admin_router.message(Command("allow"))
async def cmd_allow(message: Message, command: CommandObject):
    """
    Допустить студентов к ссылке.
    Формат: /allow <public_id> <email или studentId> [ещё ...]
    """
    if not await is_admin(message.from_user.id):
        await message.answer("⛔ У вас нет прав администратора")
        return

    args = (command.args or "").split()
    if len(args) < 2:
        await message.answer(
            "Формат: <code>/allow public_id email1 email2 ...</code>"
        )
        return

    public_id, identities = args[0], args[1:]
    try:
        async with async_session_maker() as db:
            size = await PublicLinkService(db).extend_allow_list(public_id, identities)
    except SchedulingError as e:
        await message.answer(f"❌ {e.message}")
        return

    await message.answer(
        f"✅ Ссылка <code>{public_id}</code>\n"
        f"Допущено студентов: {size}"
    )


@admin_router.message(Command("cancel"))
async def cmd_cancel(message: Message, command: CommandObject):
    """
    Отменить запись студента.
    Формат: /cancel <booking_id> [keep]; keep снимает слот с публикации
    """
    if not await is_admin(message.from_user.id):
        await message.answer("⛔ У вас нет прав администратора")
        return

    args = (command.args or "").split()
    if not args or not args[0].isdigit():
        await message.answer("Формат: <code>/cancel booking_id [keep]</code>")
        return

    booking_id = int(args[0])
    release_slot = not (len(args) > 1 and args[1].lower() == "keep")
    try:
        async with async_session_maker() as db:
            booking = await ReservationService(db).cancel_booking(booking_id, release_slot)
    except SchedulingError as e:
        await message.answer(f"❌ {e.message}")
        return

    slot_note = "слот снова свободен" if release_slot else "слот снят с публикации"
    await message.answer(
        f"🗑 Запись #{booking.id} ({booking.student_identity}) отменена, {slot_note}"
    )


@admin_router.message(Command("outbox"))
async def cmd_outbox(message: Message):
    """Состояние очереди уведомлений"""
    if not await is_admin(message.from_user.id):
        await message.answer("⛔ У вас нет прав администратора")
        return

    await message.answer(await outbox_text())


@admin_router.callback_query(F.data == "admin:outbox")
async def callback_outbox(callback: CallbackQuery):
    if not await is_admin(callback.from_user.id):
        await callback.answer("Нет доступа", show_alert=True)
        return

    await callback.message.edit_text(await outbox_text(), reply_markup=_back_keyboard("admin:outbox"))
    await callback.answer()
