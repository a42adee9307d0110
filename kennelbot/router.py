# kennelbot/router.py
from __future__ import annotations

from aiogram import Router

from kennelbot.menu_handlers import router as menu_router
from kennelbot.sections.care.handlers import router as care_router


router = Router()
router.include_router(menu_router)
router.include_router(care_router)

__all__ = ["router"]
