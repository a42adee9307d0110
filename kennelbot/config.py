# kennelbot/config.py
from __future__ import annotations

import os
from dataclasses import dataclass


def _env(*names: str, default: str = "") -> str:
    """
    Take the first non-empty value from the listed environment variables.
    """
    for n in names:
        v = (os.getenv(n) or "").strip()
        if v:
            return v
    return (default or "").strip()


def _env_float(*names: str, default: float) -> float:
    try:
        return float(_env(*names, default=str(default)))
    except Exception:
        return float(default)


@dataclass(frozen=True, slots=True)
class CareApiConfig:
    base_url: str
    api_key: str
    timeout_s: float


@dataclass(frozen=True, slots=True)
class DailyCareConfig:
    cache_ttl_s: float
    feeding_cache_ttl_s: float
    cell_debounce_ms: float
    action_debounce_ms: float
    auto_refresh_interval_s: float
    timezone: str

    @property
    def cell_debounce_s(self) -> float:
        return self.cell_debounce_ms / 1000.0

    @property
    def action_debounce_s(self) -> float:
        return self.action_debounce_ms / 1000.0


def load_care_api_config() -> CareApiConfig:
    base_url = _env("CARE_API_BASE_URL", "KENNEL_API_URL", default="http://localhost:8080").rstrip("/")
    api_key = _env("CARE_API_KEY", "KENNEL_API_KEY")

    try:
        timeout_s = float(_env("CARE_API_TIMEOUT_S", default="20"))
    except Exception:
        timeout_s = 20.0

    return CareApiConfig(base_url=base_url, api_key=api_key, timeout_s=timeout_s)


def load_daily_care_config() -> DailyCareConfig:
    return DailyCareConfig(
        cache_ttl_s=_env_float("CARE_CACHE_TTL_S", default=20.0),
        feeding_cache_ttl_s=_env_float("FEEDING_CACHE_TTL_S", default=10.0),
        cell_debounce_ms=_env_float("CELL_DEBOUNCE_MS", default=300.0),
        action_debounce_ms=_env_float("ACTION_DEBOUNCE_MS", default=1000.0),
        auto_refresh_interval_s=_env_float("AUTO_REFRESH_INTERVAL_S", default=30 * 60.0),
        # Empty means "use the host's local zone".
        timezone=_env("KENNEL_TZ", "TZ"),
    )


__all__ = [
    "CareApiConfig",
    "DailyCareConfig",
    "load_care_api_config",
    "load_daily_care_config",
]
