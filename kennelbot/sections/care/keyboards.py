from __future__ import annotations

from typing import List, Optional

from aiogram.filters.callback_data import CallbackData
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from kennelbot.care.models import CARE_CATEGORY_ORDER, CareCategory, DogCareStatus
from kennelbot.care.session import DailyCareSession
from kennelbot.care.sorting import sort_by_potty_need
from kennelbot.care.time_slots import MEAL_SLOTS, TIME_SLOTS
from kennelbot.keyboards import home_button

SLOTS_PER_ROW = 4

TAB_ICONS = {
    CareCategory.FEEDING: "🍖",
    CareCategory.POTTY: "🚽",
    CareCategory.MEDICATION: "💊",
    CareCategory.EXERCISE: "🏃",
    CareCategory.PUPPY: "🐶",
}


class CareCallbackData(CallbackData, prefix="care"):
    # slot is an index into TIME_SLOTS / MEAL_SLOTS to stay under Telegram's 64-byte limit.
    action: str
    category: Optional[str] = None
    dog: Optional[str] = None
    slot: Optional[int] = None
    page: Optional[int] = None


def _btn(text: str, **data) -> InlineKeyboardButton:
    return InlineKeyboardButton(text=text, callback_data=CareCallbackData(**data).pack())


def category_tabs_row(active: CareCategory) -> list[InlineKeyboardButton]:
    row: list[InlineKeyboardButton] = []
    for cat in CARE_CATEGORY_ORDER:
        icon = TAB_ICONS.get(cat, "•")
        text = f"[{icon}]" if cat is active else icon
        row.append(_btn(text, action="tab", category=cat.value))
    return row


def care_list_keyboard(
    session: DailyCareSession,
    *,
    items: List[DogCareStatus],
    page: int,
    total_pages: int,
) -> InlineKeyboardMarkup:
    category = session.state.active_category
    rows: list[list[InlineKeyboardButton]] = [category_tabs_row(category)]

    for dog in items:
        rows.append([_btn(f"🐕 {dog.dog_name}", action="dog", category=category.value, dog=dog.dog_id, page=page)])

    if total_pages > 1:
        pager: list[InlineKeyboardButton] = []
        if page > 0:
            pager.append(_btn("◀️", action="page", category=category.value, page=page - 1))
        pager.append(_btn(f"{page + 1}/{total_pages}", action="noop"))
        if page < total_pages - 1:
            pager.append(_btn("▶️", action="page", category=category.value, page=page + 1))
        rows.append(pager)

    tools = [_btn("🔄 Refresh", action="refresh", category=category.value, page=page)]
    if category is CareCategory.POTTY:
        tools.append(_btn("👥 Group potty break", action="group", category=category.value, page=page))
    rows.append(tools)
    rows.append([home_button()])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def dog_card_keyboard(session: DailyCareSession, dog: DogCareStatus, *, page: int = 0) -> InlineKeyboardMarkup:
    category = session.state.active_category
    rows: list[list[InlineKeyboardButton]] = []

    if category is CareCategory.POTTY:
        row: list[InlineKeyboardButton] = []
        for idx, slot in enumerate(TIME_SLOTS):
            text = f"✅ {slot}" if session.grid.has(dog.dog_id, slot) else slot
            row.append(_btn(text, action="cell", category=category.value, dog=dog.dog_id, slot=idx, page=page))
            if len(row) == SLOTS_PER_ROW:
                rows.append(row)
                row = []
        if row:
            rows.append(row)
    elif category is CareCategory.FEEDING:
        rows.append(
            [
                _btn(
                    f"{'✅' if session.fed(dog.dog_id, meal) else '▫️'} {meal}",
                    action="cell",
                    category=category.value,
                    dog=dog.dog_id,
                    slot=idx,
                    page=page,
                )
                for idx, meal in enumerate(MEAL_SLOTS)
            ]
        )

    rows.append(
        [
            _btn("⚡ Log now", action="quick", category=category.value, dog=dog.dog_id, page=page),
            _btn("📝 Observation", action="obs", category=category.value, dog=dog.dog_id, page=page),
        ]
    )
    rows.append([_btn("⬅️ Back to list", action="list", category=category.value, page=page)])
    rows.append([home_button()])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def group_select_keyboard(session: DailyCareSession, *, page: int = 0) -> InlineKeyboardMarkup:
    category = CareCategory.POTTY.value
    rows: list[list[InlineKeyboardButton]] = []
    # Dogs waiting longest for a potty break come first.
    for dog in sort_by_potty_need(session.dogs()):
        mark = "☑️" if dog.dog_id in session.state.group_selection else "⬜️"
        rows.append([_btn(f"{mark} {dog.dog_name}", action="gsel", category=category, dog=dog.dog_id, page=page)])

    selected = len(session.state.group_selection)
    rows.append([_btn(f"✅ Log potty break ({selected})", action="gok", category=category, page=page)])
    rows.append([_btn("✖️ Cancel", action="list", category=category, page=page)])
    return InlineKeyboardMarkup(inline_keyboard=rows)


__all__ = [
    "CareCallbackData",
    "care_list_keyboard",
    "category_tabs_row",
    "dog_card_keyboard",
    "group_select_keyboard",
]
