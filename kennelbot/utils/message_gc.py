# kennelbot/utils/message_gc.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message

logger = logging.getLogger(__name__)

NOT_MODIFIED = object()

# One message per "screen".
SECTION_MENU = "menu"
SECTION_SETTINGS = "settings"
SECTION_CARE_LIST = "care_list"
SECTION_CARE_CARD = "care_card"
SECTION_CARE_PROMPT = "care_prompt"

CARE_SECTIONS = (SECTION_CARE_LIST, SECTION_CARE_CARD, SECTION_CARE_PROMPT)
ALL_SECTIONS = (SECTION_MENU, SECTION_SETTINGS) + CARE_SECTIONS


@dataclass(slots=True)
class SectionRef:
    chat_id: int
    message_id: int
    updated_at: datetime


_REGISTRY: dict[tuple[int, str], SectionRef] = {}


def _key(user_id: int, section: str) -> tuple[int, str]:
    return (int(user_id), str(section))


def get_section_ref(user_id: int, section: str) -> SectionRef | None:
    return _REGISTRY.get(_key(user_id, section))


def get_section_message_id(user_id: int, section: str) -> int | None:
    ref = get_section_ref(user_id, section)
    return ref.message_id if ref else None


def remember_section(user_id: int, section: str, chat_id: int, message_id: int) -> None:
    _REGISTRY[_key(user_id, section)] = SectionRef(
        chat_id=int(chat_id),
        message_id=int(message_id),
        updated_at=datetime.now(timezone.utc),
    )


def forget_section(user_id: int, section: str) -> SectionRef | None:
    return _REGISTRY.pop(_key(user_id, section), None)


def _reset_for_tests() -> None:
    _REGISTRY.clear()


async def _safe_delete(bot, chat_id: int, message_id: int) -> bool:
    try:
        await bot.delete_message(chat_id=chat_id, message_id=message_id)
        return True
    except TelegramBadRequest as exc:
        if "not found" in str(exc).lower():
            return True
        logger.warning("Failed to delete message %s/%s: %s", chat_id, message_id, exc)
        return False
    except TelegramForbiddenError as exc:
        logger.warning("Failed to delete message %s/%s: %s", chat_id, message_id, exc)
        return False


async def _safe_edit(
    bot,
    *,
    chat_id: int,
    message_id: int,
    text: str,
    reply_markup: InlineKeyboardMarkup | None,
) -> Optional[Message] | object:
    """editMessageText -> Message / NOT_MODIFIED (edited, nothing new) / None (failed)."""
    try:
        res = await bot.edit_message_text(
            chat_id=chat_id,
            message_id=message_id,
            text=text,
            reply_markup=reply_markup,
            parse_mode="HTML",
            disable_web_page_preview=True,
        )
    except TelegramBadRequest as exc:
        if "message is not modified" in str(exc).lower():
            return NOT_MODIFIED
        logger.info("Edit of %s/%s failed: %s", chat_id, message_id, exc)
        return None
    except TelegramForbiddenError:
        return None
    return res if isinstance(res, Message) else NOT_MODIFIED


async def render_section(
    section: str,
    *,
    bot,
    chat_id: int,
    user_id: int,
    text: str,
    reply_markup: InlineKeyboardMarkup | None = None,
    trigger_message_id: int | None = None,
) -> Message | None:
    """Edit the section's message in place, or send a new one and drop the old.

    With no registered message the trigger message (the one whose button was
    pressed) is edited instead, so navigation does not spam the chat.
    """
    prev = get_section_ref(user_id, section)
    target = None
    if prev is not None and prev.chat_id == int(chat_id):
        target = prev.message_id
    elif trigger_message_id is not None and not _owned_by_other_section(user_id, section, trigger_message_id):
        target = int(trigger_message_id)

    if target is not None:
        edited = await _safe_edit(bot, chat_id=int(chat_id), message_id=target, text=text, reply_markup=reply_markup)
        if edited is not None:
            remember_section(user_id, section, chat_id, target)
            return None if edited is NOT_MODIFIED else edited

    sent = await bot.send_message(
        chat_id=int(chat_id),
        text=text,
        reply_markup=reply_markup,
        parse_mode="HTML",
        disable_web_page_preview=True,
    )
    if prev is not None and prev.message_id != sent.message_id:
        await _safe_delete(bot, prev.chat_id, prev.message_id)
    remember_section(user_id, section, chat_id, sent.message_id)
    logger.debug("Section %s for user_id=%s now at mid=%s", section, user_id, sent.message_id)
    return sent


def _owned_by_other_section(user_id: int, section: str, message_id: int) -> bool:
    for (uid, sec), ref in _REGISTRY.items():
        if uid == int(user_id) and sec != section and ref.message_id == int(message_id):
            return True
    return False


async def send_section_message(
    section: str,
    *,
    text: str,
    reply_markup: InlineKeyboardMarkup | None = None,
    callback: CallbackQuery | None = None,
    message: Message | None = None,
    user_id: int | None = None,
    edit_trigger: bool = True,
) -> Message | None:
    source = callback.message if callback is not None else message
    if source is None:
        return None
    if user_id is None:
        sender = callback.from_user if callback is not None else message.from_user
        if sender is None:
            return None
        user_id = sender.id

    trigger = source.message_id if (callback is not None and edit_trigger) else None
    try:
        return await render_section(
            section,
            bot=source.bot,
            chat_id=source.chat.id,
            user_id=int(user_id),
            text=text,
            reply_markup=reply_markup,
            trigger_message_id=trigger,
        )
    except (TelegramBadRequest, TelegramForbiddenError):
        logger.exception("Failed to render section=%s user_id=%s", section, user_id)
        return None


async def delete_section_message(
    user_id: int,
    section: str,
    bot,
    *,
    preserve_message_ids: Iterable[int] | None = None,
) -> bool:
    ref = get_section_ref(user_id, section)
    if ref is None:
        return False
    if preserve_message_ids and ref.message_id in {int(m) for m in preserve_message_ids}:
        forget_section(user_id, section)
        return True
    ok = await _safe_delete(bot, ref.chat_id, ref.message_id)
    # Dropped either way: a message we cannot delete is not ours to edit later.
    forget_section(user_id, section)
    logger.info("Deleted section=%s user_id=%s mid=%s ok=%s", section, user_id, ref.message_id, ok)
    return ok


async def close_sections(
    bot,
    user_id: int,
    sections: Iterable[str],
    *,
    preserve_message_ids: Iterable[int] | None = None,
) -> None:
    preserve = {int(m) for m in preserve_message_ids} if preserve_message_ids else None
    for section in sections:
        await delete_section_message(user_id, section, bot, preserve_message_ids=preserve)


__all__ = [
    "ALL_SECTIONS",
    "CARE_SECTIONS",
    "SECTION_CARE_CARD",
    "SECTION_CARE_LIST",
    "SECTION_CARE_PROMPT",
    "SECTION_MENU",
    "SECTION_SETTINGS",
    "SectionRef",
    "close_sections",
    "delete_section_message",
    "get_section_message_id",
    "get_section_ref",
    "render_section",
    "send_section_message",
]
