"""Serial queue for care-API writes coming from cell clicks."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable

from kennelbot.care.debounce import Debouncer

logger = logging.getLogger(__name__)

MAX_QUEUE_SIZE = 5
OPERATION_GAP_S = 0.1
QUEUE_EMPTY_REFRESH_S = 2.0

Operation = Callable[[], Awaitable[Any]]


class OperationQueue:
    """Run queued operations one at a time.

    A failing operation is logged and the queue moves on. When the queue
    drains, ``on_queue_empty`` runs once after a quiet period; new operations
    push that refresh back.
    """

    def __init__(
        self,
        on_queue_empty: Callable[[], Any] | None = None,
        *,
        max_size: int = MAX_QUEUE_SIZE,
        gap_s: float = OPERATION_GAP_S,
        refresh_delay_s: float = QUEUE_EMPTY_REFRESH_S,
    ):
        self.max_size = max(1, int(max_size))
        self.gap_s = max(0.0, float(gap_s))
        self._on_queue_empty = on_queue_empty
        self._ops: deque[Operation] = deque()
        self._task: asyncio.Task | None = None
        self._refresh = Debouncer(refresh_delay_s, name="queue-refresh")
        self._closed = False
        self.total_operations = 0
        self.failed_operations = 0

    @property
    def processing(self) -> bool:
        return self._task is not None and not self._task.done()

    def size(self) -> int:
        return len(self._ops)

    def queue_operation(self, operation: Operation) -> None:
        if self._closed:
            logger.debug("Operation queue closed; dropping operation")
            return

        self._refresh.cancel()
        if len(self._ops) >= self.max_size:
            logger.warning("Operation queue size limit reached (%s), dropping oldest operation", self.max_size)
            self._ops.popleft()

        self._ops.append(operation)
        logger.debug("Added operation to queue, size=%s", len(self._ops))

        if not self.processing:
            self._task = asyncio.get_running_loop().create_task(self._process())

    async def _process(self) -> None:
        try:
            while self._ops and not self._closed:
                op = self._ops.popleft()
                try:
                    await op()
                    self.total_operations += 1
                    logger.debug("Operation #%s done, queue size=%s", self.total_operations, len(self._ops))
                except asyncio.CancelledError:
                    raise
                except Exception:
                    self.failed_operations += 1
                    logger.exception("Queued care operation failed")
                if self._ops and self.gap_s:
                    await asyncio.sleep(self.gap_s)
        finally:
            if not self._closed and not self._ops and self._on_queue_empty is not None:
                logger.debug("Queue empty, scheduling refresh")
                self._refresh.debounce(self._on_queue_empty)

    async def join(self) -> None:
        """Wait for the operations queued so far (in-flight included)."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    def close(self) -> None:
        self._closed = True
        dropped = len(self._ops)
        self._ops.clear()
        self._refresh.cancel()
        if dropped:
            logger.info("Operation queue closed, %s pending operation(s) dropped", dropped)


__all__ = ["MAX_QUEUE_SIZE", "OperationQueue"]
