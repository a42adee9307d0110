"""Refresh orchestration for the daily care list."""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Awaitable, Callable, Protocol

from kennelbot.care.appointments import count_events_by_dog
from kennelbot.care.cache_gate import RefreshCacheGate
from kennelbot.care.group_actions import Notifier, safe_notify
from kennelbot.care.midnight import to_local
from kennelbot.care.models import CareEvent, DogCareStatus

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_S = 30 * 60
MIN_REFRESH_INTERVAL_S = 60
MAX_REFRESH_INTERVAL_S = 2 * 60 * 60

RefreshListener = Callable[["DailyCareRefresher"], Awaitable[Any]]


class DogStatusSource(Protocol):
    async def fetch_dogs_with_care_status(self, day: date) -> list[DogCareStatus]:
        ...

    async def fetch_events(self, day: date | None = None) -> list[CareEvent]:
        ...


def validate_refresh_interval(seconds: float) -> float:
    if seconds < MIN_REFRESH_INTERVAL_S:
        logger.warning("Refresh interval %ss is too short, using minimum %ss", seconds, MIN_REFRESH_INTERVAL_S)
        return float(MIN_REFRESH_INTERVAL_S)
    if seconds > MAX_REFRESH_INTERVAL_S:
        logger.warning("Refresh interval %ss is too long, using maximum %ss", seconds, MAX_REFRESH_INTERVAL_S)
        return float(MAX_REFRESH_INTERVAL_S)
    return float(seconds)


def format_time_remaining(seconds: float) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{int(seconds)} seconds"
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"{minutes} {'minute' if minutes == 1 else 'minutes'}"
    hours = minutes // 60
    return f"{hours} {'hour' if hours == 1 else 'hours'}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailyCareRefresher:
    """Fetch dogs with their care status, gated by :class:`RefreshCacheGate`.

    Errors stop here: they are logged, reported through ``notify`` and the
    ``loading`` flag is always cleared.
    """

    def __init__(
        self,
        source: DogStatusSource,
        *,
        gate: RefreshCacheGate,
        tz: tzinfo | None = None,
        notify: Notifier | None = None,
        auto_refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S,
        wall_clock: Callable[[], datetime] = _utc_now,
    ):
        self.source = source
        self.gate = gate
        self.tz = tz
        self.notify = notify
        self._wall_clock = wall_clock
        self.current_date: date = to_local(wall_clock(), tz).date()
        self.dogs: list[DogCareStatus] = []
        self.events: list[CareEvent] = []
        self.event_counts: dict[str, int] = {}
        self.last_refresh: datetime | None = None
        self.loading = False
        self.refresh_count = 0
        self.auto_refresh_interval_s = validate_refresh_interval(auto_refresh_interval_s)
        self._auto_task: asyncio.Task | None = None
        self._listeners: list[RefreshListener] = []

    def add_listener(self, listener: RefreshListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def refresh(self, *, force: bool = False) -> bool:
        """True when a fetch went out and succeeded."""
        if self.loading and not force:
            logger.debug("Refresh already in progress, skipping")
            return False
        if not self.gate.should_refresh(force):
            return False

        self.loading = True
        day = self.current_date
        try:
            dogs = await self.source.fetch_dogs_with_care_status(day)
            try:
                events = await self.source.fetch_events(day)
            except Exception:
                logger.warning("Failed to fetch events for %s", day, exc_info=True)
                events = []
            self.dogs = list(dogs)
            self.events = events
            self.event_counts = count_events_by_dog(self.dogs, events)
            self.gate.update_cache_timestamp()
            self.last_refresh = self._wall_clock()
            self.refresh_count += 1
            logger.info("Daily care refreshed: %s dogs loaded for %s", len(self.dogs), day.isoformat())
        except Exception:
            logger.exception("Error fetching dogs care status for %s", day)
            await safe_notify(self.notify, "Failed to load dogs care status. Please try again.", error=True)
            return False
        finally:
            self.loading = False

        for listener in list(self._listeners):
            try:
                await listener(self)
            except Exception:
                logger.exception("Refresh listener failed")
        return True

    def set_date(self, day: date) -> None:
        if day != self.current_date:
            logger.info("Daily care date changed %s -> %s", self.current_date, day)
        self.current_date = day
        self.gate.reset_cache()

    async def on_midnight(self, new_now: datetime) -> bool:
        self.set_date(to_local(new_now, self.tz).date())
        return await self.refresh(force=True)

    # ---------- Auto refresh ----------

    @property
    def auto_refresh_running(self) -> bool:
        return self._auto_task is not None and not self._auto_task.done()

    def start_auto_refresh(self) -> None:
        if self.auto_refresh_running:
            return
        self._auto_task = asyncio.get_running_loop().create_task(self._auto_refresh_loop())

    def stop_auto_refresh(self) -> None:
        if self._auto_task is not None and not self._auto_task.done():
            self._auto_task.cancel()
        self._auto_task = None

    def set_refresh_interval(self, seconds: float) -> float:
        self.auto_refresh_interval_s = validate_refresh_interval(seconds)
        if self.auto_refresh_running:
            self.stop_auto_refresh()
            self.start_auto_refresh()
        return self.auto_refresh_interval_s

    async def _auto_refresh_loop(self) -> None:
        logger.debug("Auto refresh loop started, interval=%ss", self.auto_refresh_interval_s)
        while True:
            await asyncio.sleep(self.auto_refresh_interval_s)
            logger.info("Auto refresh triggered")
            await self.refresh(force=True)

    def time_until_next_refresh(self) -> float:
        if self.last_refresh is None:
            return 0.0
        elapsed = (self._wall_clock() - self.last_refresh).total_seconds()
        return max(0.0, self.auto_refresh_interval_s - elapsed)

    def format_time_remaining(self) -> str:
        return format_time_remaining(self.time_until_next_refresh())


__all__ = [
    "DEFAULT_REFRESH_INTERVAL_S",
    "DailyCareRefresher",
    "MAX_REFRESH_INTERVAL_S",
    "MIN_REFRESH_INTERVAL_S",
    "format_duration",
    "format_time_remaining",
    "validate_refresh_interval",
]
