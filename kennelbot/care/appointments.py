"""Associate calendar events with dogs by name."""
from __future__ import annotations

from typing import Iterable, Sequence

from kennelbot.care.models import CareEvent, DogCareStatus


def event_mentions_dog(event: CareEvent, dog_name: str) -> bool:
    # Plain substring match: "Max" also matches "maximum".
    needle = (dog_name or "").strip().lower()
    if not needle:
        return False
    haystack = f"{event.title or ''}\n{event.description or ''}".lower()
    return needle in haystack


def count_events_by_dog(
    dogs: Sequence[DogCareStatus],
    events: Iterable[CareEvent],
    *,
    statuses: Iterable[str] | None = None,
) -> dict[str, int]:
    """Number of events mentioning each dog, keyed by ``dog_id``.

    ``statuses`` limits the events considered (case-insensitive); dogs with
    no matches map to 0.
    """
    wanted = {s.strip().lower() for s in statuses} if statuses is not None else None
    selected = [
        e for e in events
        if wanted is None or (e.status or "").strip().lower() in wanted
    ]

    counts: dict[str, int] = {}
    for dog in dogs:
        counts[dog.dog_id] = sum(1 for e in selected if event_mentions_dog(e, dog.dog_name))
    return counts


__all__ = ["count_events_by_dog", "event_mentions_dog"]
