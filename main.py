# main.py
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.base import BaseStorage
from aiogram.fsm.storage.memory import MemoryStorage

from kennelbot.api.care_client import CareApiClient
from kennelbot.care.session import SessionManager
from kennelbot.config import CareApiConfig, DailyCareConfig, _env, load_care_api_config, load_daily_care_config
from kennelbot.router import router as root_router
from kennelbot.utils.storage import flush_storage

load_dotenv()

logger = logging.getLogger("kennelbot.main")


def setup_logging() -> None:
    level_name = _env("LOG_LEVEL", default="INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def bot_token() -> str:
    token = _env("TG_BOT_TOKEN", "TELEGRAM_BOT_TOKEN")
    if not token:
        raise RuntimeError("Set TG_BOT_TOKEN (or TELEGRAM_BOT_TOKEN) before starting the kennel care bot.")
    return token


def care_api_config() -> CareApiConfig:
    cfg = load_care_api_config()
    if not cfg.api_key:
        logger.warning("CARE_API_KEY is empty: requests to %s are sent without a token", cfg.base_url)
    return cfg


def build_fsm_storage() -> BaseStorage:
    """Observation prompts survive restarts only with REDIS_URL set."""
    redis_url = _env("REDIS_URL")
    if not redis_url:
        return MemoryStorage()
    try:
        from aiogram.fsm.storage.redis import RedisStorage

        storage = RedisStorage.from_url(redis_url)
    except Exception as exc:
        logger.warning("Redis FSM storage unavailable (%s), keeping FSM state in memory", exc)
        return MemoryStorage()
    logger.info("FSM state stored in Redis")
    return storage


def build_dispatcher() -> Dispatcher:
    dispatcher = Dispatcher(storage=build_fsm_storage())
    dispatcher.include_router(root_router)
    return dispatcher


def _flag(name: str, default: str) -> bool:
    return _env(name, default=default).lower() in ("1", "true", "yes", "on")


# -----------------------------------------------------------------------------
# Process state
# -----------------------------------------------------------------------------

setup_logging()

CARE_API_CFG: CareApiConfig = care_api_config()
DAILY_CARE_CFG: DailyCareConfig = load_daily_care_config()
POLLING_ENABLED = _flag("ENABLE_TG_POLLING", "1")
SKIP_PENDING_UPDATES = _flag("DROP_PENDING_UPDATES", "1")

bot = Bot(token=bot_token(), default=DefaultBotProperties(parse_mode=ParseMode.HTML))
dp = build_dispatcher()
app = FastAPI(title="Kennel care bot")

_care_client: CareApiClient | None = None
_care_sessions: SessionManager | None = None
_polling_task: asyncio.Task | None = None


async def _poll_updates() -> None:
    try:
        await dp.start_polling(
            bot,
            allowed_updates=dp.resolve_used_update_types(),
            drop_pending_updates=SKIP_PENDING_UPDATES,
        )
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Telegram polling stopped with an error")
        raise


def start_polling() -> None:
    global _polling_task
    if _polling_task is not None and not _polling_task.done():
        logger.info("Telegram polling is already running")
        return
    _polling_task = asyncio.create_task(_poll_updates())


async def stop_polling() -> None:
    global _polling_task
    task, _polling_task = _polling_task, None
    if task is None or task.done():
        return
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task


@app.on_event("startup")
async def on_startup() -> None:
    global _care_client, _care_sessions

    _care_client = CareApiClient.from_config(CARE_API_CFG)
    _care_sessions = SessionManager(_care_client, DAILY_CARE_CFG)
    logger.info(
        "Care API at %s, daily care tz=%s, auto refresh every %ss",
        CARE_API_CFG.base_url,
        DAILY_CARE_CFG.timezone or "host local",
        int(DAILY_CARE_CFG.auto_refresh_interval_s),
    )

    # Handlers receive these by argument name.
    dp.workflow_data.update(
        care_client=_care_client,
        care_sessions=_care_sessions,
        daily_care_config=DAILY_CARE_CFG,
    )

    if POLLING_ENABLED:
        start_polling()
    else:
        logger.info("ENABLE_TG_POLLING is off, the bot will not receive updates")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    if _care_sessions is not None:
        logger.info("Closing %s daily care session(s)", len(_care_sessions))
        _care_sessions.close_all()

    try:
        flush_storage()
    except OSError:
        logger.exception("Could not write user settings on shutdown")

    await stop_polling()

    if _care_client is not None:
        await _care_client.aclose()
    await bot.session.close()


@app.api_route("/", methods=["GET", "HEAD"])
async def root() -> dict:
    return {"status": "ok", "service": "kennel-care-bot"}


@app.get("/health")
async def health() -> dict:
    return {
        "ok": True,
        "polling": _polling_task is not None and not _polling_task.done(),
        "care_sessions": len(_care_sessions) if _care_sessions is not None else 0,
    }


def run() -> None:
    """Serve the FastAPI app; same as `uvicorn main:app --host $HOST --port $PORT`."""
    port = int(_env("PORT", default="8000"))
    uvicorn.run(app, host=_env("HOST", default="0.0.0.0"), port=port, log_config=None)


__all__ = ["app", "bot", "dp", "run"]


if __name__ == "__main__":
    run()
