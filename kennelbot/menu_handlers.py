# kennelbot/menu_handlers.py
from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from kennelbot.care.refresh import format_duration
from kennelbot.care.session import SessionManager
from kennelbot.keyboards import MenuCallbackData, main_menu_keyboard, settings_keyboard
from kennelbot.utils import send_ephemeral_message
from kennelbot.utils.message_gc import (
    CARE_SECTIONS,
    SECTION_MENU,
    SECTION_SETTINGS,
    close_sections,
    get_section_message_id,
    send_section_message,
)
from kennelbot.utils.storage import get_refresh_interval_seconds, set_refresh_interval_seconds

logger = logging.getLogger(__name__)
router = Router()


async def _leave_sections(bot, user_id: int, care_sessions: SessionManager, *, preserve: set[int] | None = None) -> None:
    """Close every open screen and stop the user's daily-care timers."""
    if care_sessions.close(user_id):
        logger.info("Closed daily care session for user_id=%s", user_id)
    await close_sections(bot, user_id, CARE_SECTIONS + (SECTION_SETTINGS,), preserve_message_ids=preserve)


async def _show_menu(*, user_id: int, callback: CallbackQuery | None = None, message: Message | None = None) -> None:
    text = (
        "<b>Kennel care bot</b>\n\n"
        "Choose a section:\n"
        "• <b>Daily care</b>: today's dogs, potty breaks, feeding and notes\n"
        "• <b>Settings</b>: auto-refresh interval\n"
    )
    await send_section_message(
        SECTION_MENU,
        text=text,
        reply_markup=main_menu_keyboard(),
        callback=callback,
        message=message,
        user_id=user_id,
    )


@router.message(F.text.in_({"/start", "/menu"}))
async def cmd_start(message: Message, state: FSMContext, care_sessions: SessionManager) -> None:
    user_id = message.from_user.id
    await state.clear()
    await _leave_sections(message.bot, user_id, care_sessions)
    await _show_menu(user_id=user_id, message=message)


@router.callback_query(MenuCallbackData.filter(F.section == "home"))
async def menu_home(callback: CallbackQuery, state: FSMContext, care_sessions: SessionManager) -> None:
    user_id = callback.from_user.id
    await state.clear()
    await callback.answer()
    await _show_menu(user_id=user_id, callback=callback)
    menu_mid = get_section_message_id(user_id, SECTION_MENU)
    await _leave_sections(
        callback.message.bot,
        user_id,
        care_sessions,
        preserve={int(menu_mid)} if menu_mid is not None else None,
    )


@router.callback_query(MenuCallbackData.filter(F.section == "settings"))
async def menu_settings(callback: CallbackQuery, state: FSMContext, care_sessions: SessionManager) -> None:
    user_id = callback.from_user.id
    await state.clear()
    data = MenuCallbackData.unpack(callback.data)
    default = care_sessions.cfg.auto_refresh_interval_s

    if data.action == "interval":
        try:
            seconds = float(data.extra or "")
        except ValueError:
            await send_ephemeral_message(callback, text="⚠️ Invalid interval.")
            return
        value = set_refresh_interval_seconds(user_id, seconds)
        session = care_sessions.get(user_id)
        if session is not None:
            session.set_refresh_interval(value)
        await send_ephemeral_message(callback, text=f"Auto refresh every {format_duration(value)}")
    else:
        await callback.answer()

    current = get_refresh_interval_seconds(user_id, default=default)
    text = (
        "<b>Settings</b>\n\n"
        f"Daily care auto refresh: every <b>{format_duration(current)}</b>"
    )
    await send_section_message(
        SECTION_SETTINGS,
        text=text,
        reply_markup=settings_keyboard(current),
        callback=callback,
        user_id=user_id,
    )


__all__ = ["router"]
