# kennelbot/utils/storage.py
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict

from kennelbot.care.refresh import DEFAULT_REFRESH_INTERVAL_S, validate_refresh_interval

logger = logging.getLogger(__name__)


def _storage_root() -> Path:
    p = (os.getenv("STORAGE_DIR") or "").strip()
    if p:
        return Path(p)
    for env_name in ("RENDER_DISK_PATH", "PERSIST_DIR"):
        v = (os.getenv(env_name) or "").strip()
        if v:
            return Path(v)
    return Path("data")


ROOT = _storage_root()
SETTINGS_FILE = ROOT / "settings.json"

_LOCK = threading.RLock()
_SETTINGS: Dict[str, dict] = {}
_LOADED = False
_FILE = SETTINGS_FILE


def _read_json(path: Path, default: Any) -> Any:
    try:
        if not path.exists():
            return default
        raw = path.read_text(encoding="utf-8", errors="replace").strip()
        if not raw:
            return default
        return json.loads(raw)
    except (OSError, ValueError):
        logger.warning("Failed to read %s, starting with defaults", path, exc_info=True)
        return default


def _write_json_atomic(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _ensure_loaded() -> None:
    global _SETTINGS, _LOADED
    if _LOADED:
        return
    with _LOCK:
        if _LOADED:
            return
        data = _read_json(_FILE, default={})
        _SETTINGS = data if isinstance(data, dict) else {}
        _LOADED = True


def _reset_for_tests(path: Path) -> None:
    global _SETTINGS, _LOADED, _FILE
    with _LOCK:
        _FILE = Path(path)
        _SETTINGS = {}
        _LOADED = False


def flush_storage() -> None:
    _ensure_loaded()
    with _LOCK:
        _write_json_atomic(_FILE, _SETTINGS)


def get_user_settings(user_id: int) -> dict:
    _ensure_loaded()
    with _LOCK:
        return dict(_SETTINGS.get(str(int(user_id))) or {})


def get_refresh_interval_seconds(user_id: int, default: float | None = None) -> float:
    raw = get_user_settings(user_id).get("refresh_interval_seconds")
    if raw is None:
        raw = default if default is not None else DEFAULT_REFRESH_INTERVAL_S
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        seconds = float(DEFAULT_REFRESH_INTERVAL_S)
    return validate_refresh_interval(seconds)


def set_refresh_interval_seconds(user_id: int, seconds: float) -> float:
    _ensure_loaded()
    value = validate_refresh_interval(float(seconds))
    uid = str(int(user_id))
    with _LOCK:
        settings = _SETTINGS.get(uid)
        if not isinstance(settings, dict):
            settings = {}
        settings["refresh_interval_seconds"] = value
        _SETTINGS[uid] = settings
        _write_json_atomic(_FILE, _SETTINGS)
    return value


__all__ = [
    "ROOT",
    "SETTINGS_FILE",
    "flush_storage",
    "get_refresh_interval_seconds",
    "get_user_settings",
    "set_refresh_interval_seconds",
]
