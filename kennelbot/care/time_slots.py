"""Hourly potty-break slots and meal buckets for the daily care table."""
from __future__ import annotations

import re
from datetime import date, datetime, time, tzinfo
from typing import Iterable

from kennelbot.care.midnight import to_local
from kennelbot.care.models import CareLog

TIME_SLOTS: tuple[str, ...] = (
    "6 AM", "7 AM", "8 AM", "9 AM", "10 AM", "11 AM", "12 PM",
    "1 PM", "2 PM", "3 PM", "4 PM", "5 PM", "6 PM", "7 PM",
    "8 PM", "9 PM", "10 PM", "11 PM", "12 AM",
)
MEAL_SLOTS: tuple[str, ...] = ("Morning", "Noon", "Evening")
MEAL_HOURS = {"Morning": 8, "Noon": 12, "Evening": 18}

_SLOT_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])\s*$")


def slot_hour(slot: str) -> int:
    """24h hour of a slot label such as ``"1 PM"`` or ``"12:00 AM"``."""
    m = _SLOT_RE.match(slot or "")
    if not m:
        raise ValueError(f"Invalid time slot: {slot!r}")
    hour = int(m.group(1))
    if not 1 <= hour <= 12:
        raise ValueError(f"Invalid time slot: {slot!r}")
    am_pm = m.group(3).upper()
    if am_pm == "PM" and hour < 12:
        hour += 12
    if am_pm == "AM" and hour == 12:
        hour = 0
    return hour


def slot_label(hour: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    h12 = hour % 12 or 12
    return f"{h12} {suffix}"


def slot_for_hour(hour: int) -> str | None:
    label = slot_label(hour)
    return label if label in TIME_SLOTS else None


def parse_time_slot(slot: str, day: date, tz: tzinfo | None = None) -> datetime:
    """Slot start on ``day``; ``12 AM`` is the midnight that opens ``day``."""
    naive = datetime.combine(day, time(hour=slot_hour(slot)))
    if tz is None:
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def meal_slot_for_hour(hour: int) -> str:
    if 5 <= hour < 10:
        return "Morning"
    if 10 <= hour < 15:
        return "Noon"
    return "Evening"


def meal_time(meal: str, day: date, tz: tzinfo | None = None) -> datetime:
    """A moment inside ``meal``'s bucket on ``day``."""
    if meal not in MEAL_HOURS:
        raise ValueError(f"Unknown meal: {meal!r}")
    naive = datetime.combine(day, time(hour=MEAL_HOURS[meal]))
    if tz is None:
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def build_feeding_index(logs: Iterable[CareLog], tz: tzinfo | None = None) -> dict[tuple[str, str], str]:
    """``(dog_id, meal) -> log id`` for feeding logs of one day."""
    index: dict[tuple[str, str], str] = {}
    for log in logs:
        meal = meal_slot_for_hour(to_local(log.timestamp, tz).hour)
        index[(log.dog_id, meal)] = log.id
    return index


class PottyBreakGrid:
    """Optimistic dog x slot grid.

    ``desired`` is what the user sees; ``persisted`` maps cells known to exist
    on the server to their log id. A debounced sync compares the two and only
    sends the net change.
    """

    def __init__(self) -> None:
        self.desired: dict[str, set[str]] = {}
        self.persisted: dict[tuple[str, str], str | None] = {}

    def load(self, logs: Iterable[CareLog], tz: tzinfo | None = None) -> None:
        self.desired = {}
        self.persisted = {}
        for log in logs:
            slot = slot_for_hour(to_local(log.timestamp, tz).hour)
            if slot is None:
                continue
            self.desired.setdefault(log.dog_id, set()).add(slot)
            self.persisted[(log.dog_id, slot)] = log.id

    def has(self, dog_id: str, slot: str) -> bool:
        return slot in self.desired.get(str(dog_id), set())

    def toggle(self, dog_id: str, slot: str) -> bool:
        if slot not in TIME_SLOTS:
            raise ValueError(f"Unknown time slot: {slot!r}")
        cells = self.desired.setdefault(str(dog_id), set())
        if slot in cells:
            cells.discard(slot)
            return False
        cells.add(slot)
        return True

    def pending_change(self, dog_id: str, slot: str) -> str | None:
        want = self.has(dog_id, slot)
        have = (str(dog_id), slot) in self.persisted
        if want and not have:
            return "add"
        if have and not want:
            return "remove"
        return None

    def mark_added(self, dog_id: str, slot: str, log_id: str | None) -> None:
        self.persisted[(str(dog_id), slot)] = log_id

    def mark_removed(self, dog_id: str, slot: str) -> None:
        self.persisted.pop((str(dog_id), slot), None)

    def persisted_id(self, dog_id: str, slot: str) -> str | None:
        return self.persisted.get((str(dog_id), slot))

    def slots_for(self, dog_id: str) -> list[str]:
        cells = self.desired.get(str(dog_id), set())
        return [s for s in TIME_SLOTS if s in cells]


__all__ = [
    "MEAL_HOURS",
    "MEAL_SLOTS",
    "PottyBreakGrid",
    "TIME_SLOTS",
    "build_feeding_index",
    "meal_slot_for_hour",
    "meal_time",
    "parse_time_slot",
    "slot_for_hour",
    "slot_hour",
    "slot_label",
]
