# kennelbot/sections/care/handlers.py
from __future__ import annotations

import html
import logging

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from kennelbot.care.models import CareCategory
from kennelbot.care.session import DailyCareSession, SessionManager
from kennelbot.care.time_slots import MEAL_SLOTS, TIME_SLOTS
from kennelbot.keyboards import MenuCallbackData
from kennelbot.sections.care.keyboards import (
    CareCallbackData,
    care_list_keyboard,
    dog_card_keyboard,
    group_select_keyboard,
)
from kennelbot.sections.care.logic import (
    format_care_list_text,
    format_dog_card_text,
    format_group_select_text,
)
from kennelbot.states import CareStates
from kennelbot.utils import ChatNotifier, send_ephemeral_message
from kennelbot.utils.message_gc import (
    SECTION_CARE_CARD,
    SECTION_CARE_LIST,
    SECTION_CARE_PROMPT,
    SECTION_MENU,
    delete_section_message,
    get_section_ref,
    render_section,
    send_section_message,
)
from kennelbot.utils.storage import get_refresh_interval_seconds

logger = logging.getLogger(__name__)
router = Router()


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


async def _render_list(session: DailyCareSession, *, bot, chat_id: int) -> None:
    text, items, safe_page, total_pages = format_care_list_text(session, session.page)
    session.page = safe_page
    markup = care_list_keyboard(session, items=items, page=safe_page, total_pages=total_pages)
    await render_section(
        SECTION_CARE_LIST,
        bot=bot,
        chat_id=chat_id,
        user_id=session.user_id,
        text=text,
        reply_markup=markup,
    )


async def _render_dialog(session: DailyCareSession, *, bot, chat_id: int) -> None:
    user_id = session.user_id
    st = session.state
    if st.group_dialog_open:
        await render_section(
            SECTION_CARE_CARD,
            bot=bot,
            chat_id=chat_id,
            user_id=user_id,
            text=format_group_select_text(session),
            reply_markup=group_select_keyboard(session, page=session.page),
        )
        return

    dog = session.find_dog(st.selected_dog_id) if st.is_dialog_open and st.selected_dog_id else None
    if dog is None:
        await delete_section_message(user_id, SECTION_CARE_CARD, bot)
        return
    await render_section(
        SECTION_CARE_CARD,
        bot=bot,
        chat_id=chat_id,
        user_id=user_id,
        text=format_dog_card_text(session, dog),
        reply_markup=dog_card_keyboard(session, dog, page=session.page),
    )


def _rerender_hook(bot, chat_id: int):
    async def _rerender(session: DailyCareSession) -> None:
        if get_section_ref(session.user_id, SECTION_CARE_LIST) is None:
            return
        await _render_list(session, bot=bot, chat_id=chat_id)
        await _render_dialog(session, bot=bot, chat_id=chat_id)

    return _rerender


async def _open_session(care_sessions: SessionManager, *, user_id: int, bot, chat_id: int) -> DailyCareSession:
    interval = get_refresh_interval_seconds(user_id, default=care_sessions.cfg.auto_refresh_interval_s)
    return await care_sessions.open(
        user_id,
        notify=ChatNotifier(bot, chat_id),
        on_refreshed=_rerender_hook(bot, chat_id),
        refresh_interval_s=interval,
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


@router.message(F.text == "/care")
async def cmd_care(message: Message, state: FSMContext, care_sessions: SessionManager) -> None:
    await state.clear()
    session = await _open_session(care_sessions, user_id=message.from_user.id, bot=message.bot, chat_id=message.chat.id)
    await _render_list(session, bot=message.bot, chat_id=message.chat.id)


@router.callback_query(MenuCallbackData.filter(F.section == "care"))
async def menu_care(callback: CallbackQuery, state: FSMContext, care_sessions: SessionManager) -> None:
    await state.clear()
    await callback.answer()
    bot = callback.message.bot
    chat_id = callback.message.chat.id
    session = await _open_session(care_sessions, user_id=callback.from_user.id, bot=bot, chat_id=chat_id)
    await _render_list(session, bot=bot, chat_id=chat_id)
    await delete_section_message(callback.from_user.id, SECTION_MENU, bot)


@router.callback_query(CareCallbackData.filter())
async def care_callbacks(callback: CallbackQuery, state: FSMContext, care_sessions: SessionManager) -> None:
    user_id = callback.from_user.id
    data = CareCallbackData.unpack(callback.data)
    action = (data.action or "").strip()
    bot = callback.message.bot
    chat_id = callback.message.chat.id

    if action in ("noop", ""):
        await callback.answer()
        return

    session = care_sessions.get(user_id)
    if session is None:
        session = await _open_session(care_sessions, user_id=user_id, bot=bot, chat_id=chat_id)

    if data.page is not None:
        session.page = int(data.page)

    if action == "tab":
        try:
            await session.change_category(data.category or "")
        except ValueError:
            await send_ephemeral_message(callback, text="⚠️ Unknown care category.")
            return
        await callback.answer()
        session.page = 0
        await delete_section_message(user_id, SECTION_CARE_CARD, bot)
        await _render_list(session, bot=bot, chat_id=chat_id)
        return

    if action in ("page", "list"):
        await callback.answer()
        session.state.close_dialog()
        await _render_list(session, bot=bot, chat_id=chat_id)
        await delete_section_message(user_id, SECTION_CARE_CARD, bot)
        await delete_section_message(user_id, SECTION_CARE_PROMPT, bot)
        return

    if action == "refresh":
        session.request_refresh()
        await send_ephemeral_message(callback, text="🔄 Refreshing…")
        return

    if action == "dog":
        if session.find_dog(data.dog or "") is None:
            await send_ephemeral_message(callback, text="⚠️ Dog not found. Refresh the list.")
            return
        await callback.answer()
        session.state.open_dialog(data.dog)
        await _render_dialog(session, bot=bot, chat_id=chat_id)
        return

    if action == "cell":
        await _handle_cell(callback, session, data)
        return

    if action == "quick":
        await callback.answer()
        await session.quick_log(data.dog or "")
        return

    if action == "obs":
        await callback.answer()
        session.state.open_observation(data.dog or "")
        await state.set_state(CareStates.observation_note)
        await state.update_data(dog=data.dog)
        await send_section_message(
            SECTION_CARE_PROMPT,
            text=(
                f"<b>Observation for {html.escape(session.dog_name(data.dog or ''))}</b>\n\n"
                "Send the note as one message.\n"
                "Cancel: /cancel"
            ),
            reply_markup=None,
            callback=callback,
            user_id=user_id,
            edit_trigger=False,
        )
        return

    if action == "group":
        await callback.answer()
        session.state.open_group_dialog()
        await _render_dialog(session, bot=bot, chat_id=chat_id)
        return

    if action == "gsel":
        await callback.answer()
        session.state.toggle_group_dog(data.dog or "")
        await _render_dialog(session, bot=bot, chat_id=chat_id)
        return

    if action == "gok":
        if not session.state.group_selection:
            await send_ephemeral_message(callback, text="⚠️ Select at least one dog.")
            return
        session.request_group_potty_break()
        await send_ephemeral_message(callback, text="Logging group potty break…")
        return

    await send_ephemeral_message(callback, text=f"⚠️ Unknown action: {action}")


async def _handle_cell(callback: CallbackQuery, session: DailyCareSession, data: CareCallbackData) -> None:
    category = CareCategory.parse(data.category)
    slots = TIME_SLOTS if category is CareCategory.POTTY else MEAL_SLOTS
    idx = data.slot if data.slot is not None else -1
    if not 0 <= idx < len(slots):
        await send_ephemeral_message(callback, text="⚠️ Unknown time slot.")
        return

    slot = slots[idx]
    result = session.handle_cell_click(data.dog or "", slot, data.category or "")
    if result is None:
        await send_ephemeral_message(callback, text="Not applied, try again in a moment.")
        return

    if category is CareCategory.POTTY:
        await send_ephemeral_message(callback, text=f"{slot}: {'added' if result else 'removed'}")
        await _render_dialog(session, bot=callback.message.bot, chat_id=callback.message.chat.id)
    else:
        await send_ephemeral_message(callback, text=f"{slot} feeding: saving…")


# ---------------------------------------------------------------------------
# Observation notes
# ---------------------------------------------------------------------------


@router.message(F.text == "/cancel")
async def cancel_care_fsm(message: Message, state: FSMContext, care_sessions: SessionManager) -> None:
    st = await state.get_state()
    if st != CareStates.observation_note.state:
        return
    await state.clear()
    session = care_sessions.get(message.from_user.id)
    if session is not None:
        session.state.close_observation()
    await delete_section_message(message.from_user.id, SECTION_CARE_PROMPT, message.bot)
    await send_ephemeral_message(message, text="Ok, cancelled.", ttl=3)


@router.message(CareStates.observation_note)
async def care_observation_text(message: Message, state: FSMContext, care_sessions: SessionManager) -> None:
    user_id = message.from_user.id
    payload = await state.get_data()
    await state.clear()
    await delete_section_message(user_id, SECTION_CARE_PROMPT, message.bot)

    session = care_sessions.get(user_id)
    dog_id = (payload.get("dog") or "").strip()
    if session is None or not dog_id:
        await send_ephemeral_message(message, text="⚠️ Daily care is closed. Open it again from the menu.")
        return

    await session.record_observation(dog_id, message.text or "")


__all__ = ["router"]
