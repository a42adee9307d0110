"""Daily care refresh, timing and time-slot logic."""

from .cache_gate import RefreshCacheGate
from .debounce import Debouncer
from .midnight import MidnightRollover, seconds_until_midnight
from .models import CareCategory, CareEvent, CareLog, CareRecord, DogCareStatus
from .refresh import DailyCareRefresher, format_time_remaining, validate_refresh_interval
from .session import DailyCareSession, SessionManager
from .sorting import sort_dogs
from .view_state import CareViewState

__all__ = [
    "CareCategory",
    "CareEvent",
    "CareLog",
    "CareRecord",
    "CareViewState",
    "DailyCareRefresher",
    "DailyCareSession",
    "Debouncer",
    "DogCareStatus",
    "MidnightRollover",
    "RefreshCacheGate",
    "SessionManager",
    "format_time_remaining",
    "seconds_until_midnight",
    "sort_dogs",
    "validate_refresh_interval",
]
