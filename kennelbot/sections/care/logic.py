# kennelbot/sections/care/logic.py
"""Text rendering for the daily care screens.

Everything here is pure formatting over a :class:`DailyCareSession`; no
network calls happen in this module.
"""

from __future__ import annotations

import html
from datetime import datetime, timezone
from typing import List, Tuple

from kennelbot.care.models import CareCategory, DogCareStatus, DogFlagType
from kennelbot.care.session import DailyCareSession
from kennelbot.care.time_slots import MEAL_SLOTS, TIME_SLOTS

CARE_PAGE_SIZE = 8

CATEGORY_TITLES = {
    CareCategory.FEEDING: "🍖 Feeding",
    CareCategory.POTTY: "🚽 Potty",
    CareCategory.MEDICATION: "💊 Medication",
    CareCategory.EXERCISE: "🏃 Exercise",
    CareCategory.PUPPY: "🐶 Puppy",
}


def _escape(s: str | None) -> str:
    return html.escape((s or "").strip())


def category_title(category: CareCategory) -> str:
    return CATEGORY_TITLES.get(category, category.value.capitalize())


def time_since(ts: datetime | None, now: datetime) -> str:
    if ts is None:
        return "never"
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    minutes = int((now.astimezone(timezone.utc) - ts.astimezone(timezone.utc)).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m ago" if rest else f"{hours}h ago"


def flag_badges(dog: DogCareStatus) -> str:
    badges: list[str] = []
    for flag in dog.flags:
        if flag.type is DogFlagType.IN_HEAT:
            badges.append("🔴 in heat")
        elif flag.type is DogFlagType.INCOMPATIBLE:
            others = ", ".join(flag.incompatible_with)
            badges.append(f"⚠️ not with {_escape(others)}" if others else "⚠️ incompatible")
        elif flag.type is DogFlagType.SPECIAL_ATTENTION:
            badges.append(f"⭐ {_escape(flag.value)}" if flag.value else "⭐ special attention")
    return " · ".join(badges)


def last_care_line(dog: DogCareStatus, now: datetime) -> str:
    if dog.last_care is None:
        return "no care logged today"
    task = dog.last_care.task_name or dog.last_care.category
    return f"{_escape(task)}, {time_since(dog.last_care.timestamp, now)}"


def page_slice(dogs: List[DogCareStatus], page: int) -> Tuple[List[DogCareStatus], int, int]:
    total_pages = max(1, (len(dogs) + CARE_PAGE_SIZE - 1) // CARE_PAGE_SIZE)
    safe_page = min(max(0, int(page)), total_pages - 1)
    start = safe_page * CARE_PAGE_SIZE
    return dogs[start : start + CARE_PAGE_SIZE], safe_page, total_pages


def format_care_list_text(session: DailyCareSession, page: int = 0) -> Tuple[str, List[DogCareStatus], int, int]:
    now = session.now()
    dogs = session.dogs()
    items, safe_page, total_pages = page_slice(dogs, page)
    category = session.state.active_category

    lines = [
        f"<b>Daily care</b> · {session.current_date.strftime('%a %d %b %Y')}",
        f"Category: <b>{category_title(category)}</b>",
        f"Next auto refresh in {session.refresher.format_time_remaining()}",
        "",
    ]
    if session.loading and not dogs:
        lines.append("Loading dogs…")
    elif not dogs:
        lines.append("No dogs checked in today.")

    current_group: str | None = None
    for dog in items:
        group = dog.group_name or "No group"
        if group != current_group:
            current_group = group
            lines.append(f"<b>{_escape(group)}</b>")
        line = f"• <b>{_escape(dog.dog_name)}</b>"
        if dog.breed:
            line += f" ({_escape(dog.breed)})"
        line += f": {last_care_line(dog, now)}"
        events = session.event_count(dog.dog_id)
        if events:
            line += f" · 📅 {events}"
        badges = flag_badges(dog)
        if badges:
            line += f"\n   {badges}"
        lines.append(line)

    if total_pages > 1:
        lines.append("")
        lines.append(f"Page {safe_page + 1}/{total_pages}")
    if session.state.error_count:
        lines.append(f"\n⚠️ {session.state.error_count} action(s) failed since the last tab change.")
    return "\n".join(lines), items, safe_page, total_pages


def format_dog_card_text(session: DailyCareSession, dog: DogCareStatus) -> str:
    now = session.now()
    category = session.state.active_category
    lines = [f"<b>{_escape(dog.dog_name)}</b>"]
    details = ", ".join(_escape(v) for v in (dog.breed, dog.color) if v)
    if details:
        lines.append(details)
    if dog.group_name:
        lines.append(f"Group: {_escape(dog.group_name)}")
    badges = flag_badges(dog)
    if badges:
        lines.append(badges)
    lines.append(f"Last care: {last_care_line(dog, now)}")
    events = session.event_count(dog.dog_id)
    if events:
        lines.append(f"Events today: {events}")
    lines.append("")

    if category is CareCategory.POTTY:
        slots = session.grid.slots_for(dog.dog_id)
        lines.append(f"{category_title(category)}: {len(slots)} of {len(TIME_SLOTS)} slots")
        lines.append(", ".join(slots) if slots else "No potty breaks yet.")
        lines.append("Tap a slot to toggle it.")
    elif category is CareCategory.FEEDING:
        marks = [f"{'✅' if session.fed(dog.dog_id, meal) else '▫️'} {meal}" for meal in MEAL_SLOTS]
        lines.append(f"{category_title(category)}: " + "  ".join(marks))
        lines.append("Tap a meal to toggle it.")
    else:
        lines.append(f"{category_title(category)}: use “Log now” to record it.")
    return "\n".join(lines)


def format_group_select_text(session: DailyCareSession) -> str:
    selected = len(session.state.group_selection)
    return (
        "<b>Group potty break</b>\n\n"
        "Select the dogs that went out together.\n"
        f"Selected: <b>{selected}</b>"
    )


__all__ = [
    "CARE_PAGE_SIZE",
    "category_title",
    "flag_badges",
    "format_care_list_text",
    "format_dog_card_text",
    "format_group_select_text",
    "last_care_line",
    "page_slice",
    "time_since",
]
