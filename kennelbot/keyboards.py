"""Shared keyboards and callback_data factories for bot navigation."""
from __future__ import annotations

from typing import Optional

from aiogram.filters.callback_data import CallbackData
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from kennelbot.care.refresh import format_duration

REFRESH_INTERVAL_CHOICES = (5 * 60, 15 * 60, 30 * 60, 60 * 60, 2 * 60 * 60)


class MenuCallbackData(CallbackData, prefix="menu"):
    """Generic callback for the top-level menus."""

    section: str
    action: str
    extra: Optional[str] = None


def main_menu_keyboard() -> InlineKeyboardMarkup:
    kb: list[list[InlineKeyboardButton]] = [
        [
            InlineKeyboardButton(
                text="🐾 Daily care",
                callback_data=MenuCallbackData(section="care", action="open", extra="").pack(),
            ),
        ],
        [
            InlineKeyboardButton(
                text="⚙️ Settings",
                callback_data=MenuCallbackData(section="settings", action="open", extra="").pack(),
            ),
        ],
    ]
    return InlineKeyboardMarkup(inline_keyboard=kb)


def home_button() -> InlineKeyboardButton:
    return InlineKeyboardButton(
        text="⬅️ Main menu",
        callback_data=MenuCallbackData(section="home", action="open").pack(),
    )


def settings_keyboard(current_interval_s: float) -> InlineKeyboardMarkup:
    """Auto-refresh interval picker; the active choice is marked."""

    rows: list[list[InlineKeyboardButton]] = []
    row: list[InlineKeyboardButton] = []
    for seconds in REFRESH_INTERVAL_CHOICES:
        mark = "• " if int(current_interval_s) == seconds else ""
        row.append(
            InlineKeyboardButton(
                text=f"{mark}{format_duration(seconds)}",
                callback_data=MenuCallbackData(section="settings", action="interval", extra=str(seconds)).pack(),
            )
        )
        if len(row) == 3:
            rows.append(row)
            row = []
    if row:
        rows.append(row)
    rows.append([home_button()])
    return InlineKeyboardMarkup(inline_keyboard=rows)


__all__ = [
    "MenuCallbackData",
    "REFRESH_INTERVAL_CHOICES",
    "home_button",
    "main_menu_keyboard",
    "settings_keyboard",
]
