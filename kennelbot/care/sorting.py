"""Display ordering for dog care rows."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from kennelbot.care.models import CareCategory, DogCareStatus


def _fold(value: str | None) -> str:
    return (value or "").strip().casefold()


def dog_sort_key(dog: DogCareStatus) -> tuple[int, str, str]:
    # Grouped dogs first by (group, name); dogs without a group after them by name.
    group = _fold(dog.group_name)
    if group:
        return (0, group, _fold(dog.dog_name))
    return (1, "", _fold(dog.dog_name))


def sort_dogs(dogs: Sequence[DogCareStatus]) -> list[DogCareStatus]:
    """Stable (group, name) ordering; ties keep their input order."""
    return sorted(dogs, key=dog_sort_key)


class SortedDogsView:
    """Memoized :func:`sort_dogs` keyed on the identity of the input sequence."""

    def __init__(self) -> None:
        self._source: Sequence[DogCareStatus] | None = None
        self._sorted: list[DogCareStatus] = []

    def get(self, dogs: Sequence[DogCareStatus]) -> list[DogCareStatus]:
        if dogs is not self._source:
            self._source = dogs
            self._sorted = sort_dogs(dogs)
        return self._sorted

    def invalidate(self) -> None:
        self._source = None
        self._sorted = []


def _ts(dog: DogCareStatus) -> datetime:
    ts = dog.last_care.timestamp if dog.last_care else None
    if ts is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def sort_by_potty_need(dogs: Sequence[DogCareStatus]) -> list[DogCareStatus]:
    """Dogs most in need of a potty break first.

    No care logged today -> first; last entry something else -> next;
    last entry a potty break -> last, oldest break first.
    """

    def key(dog: DogCareStatus) -> tuple[int, datetime]:
        if dog.last_care is None:
            return (0, datetime.min.replace(tzinfo=timezone.utc))
        if CareCategory.parse(dog.last_care.category) is CareCategory.POTTY:
            return (2, _ts(dog))
        return (1, datetime.min.replace(tzinfo=timezone.utc))

    return sorted(dogs, key=key)


__all__ = ["SortedDogsView", "dog_sort_key", "sort_by_potty_need", "sort_dogs"]
