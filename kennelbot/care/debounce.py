"""Trailing-edge debounce bound to an asyncio loop."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesce rapid triggers into one delayed call.

    At most one call is pending at a time: every :meth:`debounce` cancels the
    previous pending call and starts a new window. Only the trailing edge runs.
    Cancelling affects the pending call only; an action that already started
    (including a scheduled coroutine) settles on its own.
    """

    def __init__(self, delay: float, *, loop: asyncio.AbstractEventLoop | None = None, name: str = "debounce"):
        self.delay = max(0.0, float(delay))
        self.name = name
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Future] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def debounce(self, action: Callable[..., Any], *args: Any) -> None:
        loop = self._get_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire, action, args)

    __call__ = debounce

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            logger.debug("Debounce %s: pending call cancelled", self.name)

    def _fire(self, action: Callable[..., Any], args: tuple) -> None:
        self._handle = None
        try:
            result = action(*args)
        except Exception:
            logger.exception("Debounced action %s failed", self.name)
            return

        if inspect.isawaitable(result):
            task = self._get_loop().create_task(self._settle(result))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _settle(self, awaitable: Any) -> None:
        try:
            await awaitable
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Debounced coroutine %s failed", self.name)


__all__ = ["Debouncer"]
