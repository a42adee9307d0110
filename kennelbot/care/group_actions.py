"""Fan-out care actions applied to several dogs at once."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Protocol, Sequence

from kennelbot.care.models import CareCategory, CareLog, CareRecord

logger = logging.getLogger(__name__)


class CareRecorder(Protocol):
    async def record_care(self, record: CareRecord) -> CareLog | None:
        ...


class Notifier(Protocol):
    def __call__(self, text: str, *, error: bool = False) -> Awaitable[None]:
        ...


async def safe_notify(notify: Notifier | None, text: str, *, error: bool = False) -> None:
    if notify is None:
        return
    try:
        await notify(text, error=error)
    except Exception:
        logger.warning("Failed to deliver notification %r", text, exc_info=True)


@dataclass
class GroupActionResult:
    ok: bool
    dog_ids: list[str] = field(default_factory=list)
    error: str | None = None


async def record_group_potty_break(
    recorder: CareRecorder,
    dog_ids: Sequence[str],
    *,
    when: datetime | None = None,
    notes: str | None = None,
    notify: Notifier | None = None,
) -> GroupActionResult:
    """One ``record_care`` call per dog, all-or-nothing reporting.

    The calls run concurrently; the first failure turns the whole action into
    a single failure notification. Calls that already went out are not rolled
    back.
    """
    ids = [str(d) for d in dict.fromkeys(dog_ids)]
    if not ids:
        await safe_notify(notify, "No dogs selected. Please select at least one dog for the potty break.", error=True)
        return GroupActionResult(ok=False, error="no_dogs")

    records = [
        CareRecord.build(dog_id, CareCategory.POTTY, when=when, notes=notes, task_name="Potty Break")
        for dog_id in ids
    ]
    try:
        await asyncio.gather(*(recorder.record_care(r) for r in records))
    except Exception as exc:
        logger.exception("Error logging group potty break for %s dog(s)", len(ids))
        await safe_notify(notify, "Failed to log group potty break.", error=True)
        return GroupActionResult(ok=False, dog_ids=ids, error=str(exc) or exc.__class__.__name__)

    noun = "dog was" if len(ids) == 1 else "dogs were"
    await safe_notify(notify, f"Group potty break logged: {len(ids)} {noun} taken out for a potty break.")
    logger.info("Group potty break logged for %s dog(s)", len(ids))
    return GroupActionResult(ok=True, dog_ids=ids)


__all__ = ["CareRecorder", "GroupActionResult", "Notifier", "record_group_potty_break", "safe_notify"]
