# kennelbot/utils/__init__.py
from __future__ import annotations

import asyncio
import logging
from typing import Union

from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError
from aiogram.types import CallbackQuery, Message

logger = logging.getLogger(__name__)

_BACKGROUND: set[asyncio.Task] = set()


def _spawn(coro) -> None:
    task = asyncio.create_task(coro)
    _BACKGROUND.add(task)
    task.add_done_callback(_BACKGROUND.discard)


async def safe_delete_message(bot, chat_id: int, message_id: int) -> bool:
    try:
        await bot.delete_message(chat_id=chat_id, message_id=message_id)
        return True
    except (TelegramBadRequest, TelegramForbiddenError):
        return False
    except Exception:
        logger.exception("Unexpected error while deleting message %s/%s", chat_id, message_id)
        return False


async def _delete_after(bot, chat_id: int, message_id: int, ttl: int) -> None:
    await asyncio.sleep(max(1, int(ttl)))
    await safe_delete_message(bot, chat_id, message_id)


async def send_ephemeral_message(
    target: Union[CallbackQuery, Message],
    *,
    text: str,
    ttl: int = 4,
    as_alert: bool = False,
) -> None:
    """
    Short-lived feedback:
      - CallbackQuery: toast/alert through callback.answer()
      - Message: a reply that is deleted after ``ttl`` seconds
    """
    text = (text or "").strip()
    if not text:
        return

    if isinstance(target, CallbackQuery):
        try:
            await target.answer(text, show_alert=bool(as_alert))
            return
        except TelegramBadRequest:
            # Query too old to answer; fall back to a chat message.
            if target.message is None:
                return
            target = target.message

    try:
        msg = await target.answer(text)
    except (TelegramBadRequest, TelegramForbiddenError) as exc:
        logger.warning("Failed to send ephemeral message: %s", exc)
        return
    _spawn(_delete_after(target.bot, msg.chat.id, msg.message_id, ttl))


class ChatNotifier:
    """Toast-style notifications for background care actions.

    Session callbacks fire long after the triggering update was answered, so
    messages go straight to the chat and are cleaned up after ``ttl``.
    """

    def __init__(self, bot, chat_id: int, *, ttl: int = 5):
        self.bot = bot
        self.chat_id = int(chat_id)
        self.ttl = ttl

    async def __call__(self, text: str, *, error: bool = False) -> None:
        text = (text or "").strip()
        if not text:
            return
        prefix = "⚠️" if error else "✅"
        msg = await self.bot.send_message(chat_id=self.chat_id, text=f"{prefix} {text}")
        _spawn(_delete_after(self.bot, self.chat_id, msg.message_id, self.ttl))


__all__ = ["ChatNotifier", "safe_delete_message", "send_ephemeral_message"]
