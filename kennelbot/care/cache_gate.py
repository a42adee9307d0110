"""TTL gate deciding whether a refresh fetch may go out."""
from __future__ import annotations

import logging
from time import monotonic
from typing import Callable

logger = logging.getLogger(__name__)


class RefreshCacheGate:
    """Decision-only gate: it never fetches and never records a fetch by itself.

    The caller records every accepted fetch with :meth:`update_cache_timestamp`.
    """

    def __init__(self, ttl_seconds: float = 20.0, *, clock: Callable[[], float] = monotonic, name: str = "care"):
        self.ttl_seconds = max(0.0, float(ttl_seconds))
        self.name = name
        self._clock = clock
        self._last_refresh: float | None = None

    @property
    def last_refresh(self) -> float | None:
        return self._last_refresh

    def elapsed(self) -> float | None:
        if self._last_refresh is None:
            return None
        return self._clock() - self._last_refresh

    def should_refresh(self, force_refresh: bool = False) -> bool:
        if force_refresh:
            return True
        elapsed = self.elapsed()
        if elapsed is None or elapsed >= self.ttl_seconds:
            return True
        logger.debug(
            "Skipping %s refresh: refreshed %.1fs ago (ttl=%.1fs)",
            self.name,
            elapsed,
            self.ttl_seconds,
        )
        return False

    def update_cache_timestamp(self) -> None:
        self._last_refresh = self._clock()

    def reset_cache(self) -> None:
        self._last_refresh = None


__all__ = ["RefreshCacheGate"]
