"""Self-rescheduling one-shot timer that fires at every local midnight."""
from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def resolve_timezone(name: str | None) -> tzinfo | None:
    """IANA zone for ``name``; ``None`` means the host's local zone."""

    name = (name or "").strip()
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, falling back to host local time", name)
        return None


def to_local(dt: datetime, tz: tzinfo | None) -> datetime:
    if tz is None:
        return dt.astimezone()
    return dt.astimezone(tz)


def next_local_midnight(now: datetime, tz: tzinfo | None = None) -> datetime:
    local = to_local(now, tz)
    tomorrow = local.date() + timedelta(days=1)
    if tz is None:
        # Naive local wall time -> astimezone() resolves the host's DST offset.
        return datetime.combine(tomorrow, time.min).astimezone()
    return datetime.combine(tomorrow, time.min, tzinfo=tz)


def seconds_until_midnight(now: datetime, tz: tzinfo | None = None) -> float:
    # Subtract in UTC: aware datetimes sharing a tzinfo are subtracted as wall time.
    nxt = next_local_midnight(now, tz).astimezone(timezone.utc)
    return max(0.0, (nxt - now.astimezone(timezone.utc)).total_seconds())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MidnightRollover:
    """Fire ``on_midnight_reached(new_now)`` once per local day.

    One active handle at most. After each fire the next day's timer is armed
    again even if the callback raised; :meth:`cleanup_midnight_check` is the
    only way to stop the chain.
    """

    def __init__(
        self,
        tz: tzinfo | None = None,
        *,
        clock: Callable[[], datetime] = _utc_now,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.tz = tz
        self._clock = clock
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._callback: Callable[[datetime], Any] | None = None
        self._target: datetime | None = None
        self._tasks: set[asyncio.Future] = set()
        self.fired_count = 0

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def target(self) -> datetime | None:
        return self._target

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def setup_midnight_check(self, on_midnight_reached: Callable[[datetime], Any]) -> None:
        self._callback = on_midnight_reached
        self._arm(self._clock())

    def cleanup_midnight_check(self) -> None:
        self._callback = None
        self._target = None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm(self, reference: datetime) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        now = self._clock()
        target = next_local_midnight(reference, self.tz)
        delay = max(0.0, (target.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds())
        self._target = target
        self._handle = self._get_loop().call_later(delay, self._fire)
        logger.info("Midnight check armed: %.1f minutes until %s", delay / 60.0, target.isoformat())

    def _fire(self) -> None:
        self._handle = None
        callback = self._callback
        if callback is None:
            return

        new_now = to_local(self._clock(), self.tz)
        target = self._target
        self.fired_count += 1
        logger.info("Midnight reached (%s), forcing full refresh", new_now.isoformat())
        try:
            result = callback(new_now)
            if inspect.isawaitable(result):
                task = self._get_loop().create_task(self._settle(result))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        except Exception:
            logger.exception("Midnight callback failed")
        finally:
            # The callback may have torn the owner down.
            if self._callback is callback:
                reference = new_now if target is None else max(new_now, target)
                self._arm(reference)

    async def _settle(self, awaitable: Any) -> None:
        try:
            await awaitable
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Midnight refresh coroutine failed")


__all__ = [
    "MidnightRollover",
    "next_local_midnight",
    "resolve_timezone",
    "seconds_until_midnight",
    "to_local",
]
