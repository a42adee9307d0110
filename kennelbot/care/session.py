"""Per-user daily care view: owns every timer, queue and cache of one open table."""
from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Awaitable, Callable, Dict, Optional

from kennelbot.care.cache_gate import RefreshCacheGate
from kennelbot.care.debounce import Debouncer
from kennelbot.care.group_actions import GroupActionResult, Notifier, record_group_potty_break, safe_notify
from kennelbot.care.midnight import MidnightRollover, resolve_timezone, to_local
from kennelbot.care.models import CareCategory, CareLog, CareRecord, DogCareStatus
from kennelbot.care.operation_queue import OperationQueue
from kennelbot.care.refresh import DailyCareRefresher
from kennelbot.care.sorting import SortedDogsView
from kennelbot.care.time_slots import (
    MEAL_SLOTS,
    PottyBreakGrid,
    build_feeding_index,
    meal_slot_for_hour,
    meal_time,
    parse_time_slot,
)
from kennelbot.care.view_state import CareViewState
from kennelbot.config import DailyCareConfig

logger = logging.getLogger(__name__)

RenderHook = Callable[["DailyCareSession"], Awaitable[Any]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailyCareSession:
    """One open daily-care table for one user.

    Everything scheduled here (cell and action debounces, the midnight timer,
    auto refresh, the write queue) is torn down by :meth:`close`.
    """

    def __init__(
        self,
        user_id: int,
        client: Any,
        cfg: DailyCareConfig,
        *,
        notify: Notifier | None = None,
        on_refreshed: RenderHook | None = None,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] = _utc_now,
        refresh_interval_s: float | None = None,
    ):
        self.user_id = int(user_id)
        self.client = client
        self.cfg = cfg
        self.notify = notify
        self.on_refreshed = on_refreshed
        self.tz = tz if tz is not None else resolve_timezone(cfg.timezone)
        self._clock = clock

        self.state = CareViewState()
        self.refresher = DailyCareRefresher(
            client,
            gate=RefreshCacheGate(cfg.cache_ttl_s, name="dogs"),
            tz=self.tz,
            notify=self._notify,
            auto_refresh_interval_s=refresh_interval_s or cfg.auto_refresh_interval_s,
            wall_clock=clock,
        )
        self.refresher.add_listener(self._after_refresh)
        self.midnight = MidnightRollover(self.tz, clock=clock)
        self.queue = OperationQueue(on_queue_empty=self._refresh_after_writes)
        self.sorted_view = SortedDogsView()

        self.grid = PottyBreakGrid()
        self.feeding_gate = RefreshCacheGate(cfg.feeding_cache_ttl_s, name="feeding")
        self.feeding_index: Dict[tuple[str, str], str] = {}

        self._cell_debouncers: Dict[tuple[str, str], Debouncer] = {}
        self._group_debouncer = Debouncer(cfg.action_debounce_s, name="group-potty")
        self._refresh_debouncer = Debouncer(cfg.action_debounce_s, name="manual-refresh")

        self.page = 0
        self.busy = False
        self.started = False
        self.closed = False

    # ---------- lifecycle ----------

    async def start(self) -> None:
        if self.started or self.closed:
            return
        self.started = True
        self.midnight.setup_midnight_check(self._handle_midnight)
        self.refresher.start_auto_refresh()
        logger.info("Daily care session started for user_id=%s date=%s", self.user_id, self.current_date)
        await self.reload(force=True)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for debouncer in self._cell_debouncers.values():
            debouncer.cancel()
        self._cell_debouncers.clear()
        self._group_debouncer.cancel()
        self._refresh_debouncer.cancel()
        self.midnight.cleanup_midnight_check()
        self.refresher.stop_auto_refresh()
        self.queue.close()
        logger.info("Daily care session closed for user_id=%s", self.user_id)

    # ---------- read side ----------

    @property
    def current_date(self):
        return self.refresher.current_date

    @property
    def loading(self) -> bool:
        return self.refresher.loading

    def now(self) -> datetime:
        return to_local(self._clock(), self.tz)

    def dogs(self) -> list[DogCareStatus]:
        return self.sorted_view.get(self.refresher.dogs)

    def find_dog(self, dog_id: str) -> Optional[DogCareStatus]:
        dog_id = str(dog_id)
        for dog in self.refresher.dogs:
            if dog.dog_id == dog_id:
                return dog
        return None

    def dog_name(self, dog_id: str) -> str:
        dog = self.find_dog(dog_id)
        return dog.dog_name if dog else str(dog_id)

    def event_count(self, dog_id: str) -> int:
        return self.refresher.event_counts.get(str(dog_id), 0)

    def fed(self, dog_id: str, meal: str) -> bool:
        return (str(dog_id), meal) in self.feeding_index

    # ---------- refresh ----------

    async def reload(self, *, force: bool = False) -> bool:
        if self.closed:
            return False
        return await self.refresher.refresh(force=force)

    def request_refresh(self) -> None:
        """Manual refresh button; double taps collapse into one forced reload."""
        if self.closed:
            return
        self._refresh_debouncer.debounce(self._forced_reload)

    async def _forced_reload(self) -> bool:
        return await self.reload(force=True)

    def _refresh_after_writes(self) -> Awaitable[bool] | None:
        if self.closed:
            return None
        logger.debug("Write queue drained, reloading daily care for user_id=%s", self.user_id)
        return self._forced_reload()

    async def _after_refresh(self, refresher: DailyCareRefresher) -> None:
        await self._load_category_logs(force=True)
        if self.on_refreshed is not None and not self.closed:
            await self.on_refreshed(self)

    async def _load_category_logs(self, *, force: bool = False) -> None:
        category = self.state.active_category
        if category is CareCategory.POTTY:
            await self.load_potty_grid()
        elif category is CareCategory.FEEDING:
            await self.refresh_feeding_cache(force=force)

    async def load_potty_grid(self) -> bool:
        try:
            logs = await self.client.fetch_care_logs(self.current_date, CareCategory.POTTY)
        except Exception:
            logger.exception("Failed to load potty breaks for %s", self.current_date)
            await self._notify("Failed to load potty breaks.", error=True)
            return False
        if self._has_pending_cells():
            # Unsynced optimistic cells stay as the user left them.
            logger.debug("Potty grid reload skipped: cell changes still pending")
            return False
        self.grid.load(logs, self.tz)
        return True

    async def refresh_feeding_cache(self, *, force: bool = False) -> bool:
        if not self.feeding_gate.should_refresh(force):
            return False
        try:
            logs = await self.client.fetch_care_logs(self.current_date, CareCategory.FEEDING)
        except Exception:
            logger.exception("Failed to load feeding logs for %s", self.current_date)
            return False
        self.feeding_index = build_feeding_index(logs, self.tz)
        self.feeding_gate.update_cache_timestamp()
        return True

    def _has_pending_cells(self) -> bool:
        return any(d.pending for d in self._cell_debouncers.values()) or self.queue.size() > 0

    async def _handle_midnight(self, new_now: datetime) -> None:
        if self.closed:
            return
        self.feeding_gate.reset_cache()
        self.feeding_index = {}
        self.grid = PottyBreakGrid()
        self.state.close_dialog()
        self.state.group_selection.clear()
        await self.refresher.on_midnight(new_now)

    # ---------- category / dialogs ----------

    async def change_category(self, category: CareCategory | str) -> CareCategory:
        new = self.state.change_category(category)
        await self._load_category_logs(force=False)
        return new

    # ---------- cell clicks ----------

    def _cell_debouncer(self, dog_id: str, slot: str) -> Debouncer:
        key = (str(dog_id), slot)
        debouncer = self._cell_debouncers.get(key)
        if debouncer is None:
            debouncer = Debouncer(self.cfg.cell_debounce_s, name=f"cell:{key[0]}:{slot}")
            self._cell_debouncers[key] = debouncer
        return debouncer

    def handle_cell_click(self, dog_id: str, slot: str, category: CareCategory | str) -> bool | None:
        """Apply a cell click optimistically and schedule its debounced sync.

        Returns the new optimistic state of a potty cell, or None when the
        click was ignored.
        """
        if self.closed:
            return None
        if self.loading or self.busy:
            logger.debug("Cell click ignored while loading: dog=%s slot=%s", dog_id, slot)
            return None

        cat = category if isinstance(category, CareCategory) else CareCategory.parse(category)
        if cat is not self.state.active_category:
            logger.info(
                "Cell click for %s ignored: active category is %s",
                cat.value if cat else category,
                self.state.active_category.value,
            )
            return None

        # Over the soft limit the click is only logged; the cell still toggles.
        self.state.track_click(dog_id, slot)

        dog_id = str(dog_id)
        if cat is CareCategory.POTTY:
            present = self.grid.toggle(dog_id, slot)
            self._cell_debouncer(dog_id, slot).debounce(self._queue_potty_sync, dog_id, slot)
            return present
        if cat is CareCategory.FEEDING:
            if slot not in MEAL_SLOTS:
                raise ValueError(f"Unknown meal: {slot!r}")
            self._cell_debouncer(dog_id, slot).debounce(self._queue_feeding_toggle, dog_id, slot)
            return not self.fed(dog_id, slot)
        logger.debug("No cell grid for category %s", cat.value)
        return None

    def _queue_potty_sync(self, dog_id: str, slot: str) -> None:
        if self.closed:
            return
        self.queue.queue_operation(lambda: self._sync_potty_cell(dog_id, slot))

    def _queue_feeding_toggle(self, dog_id: str, meal: str) -> None:
        if self.closed:
            return
        self.queue.queue_operation(lambda: self._toggle_feeding(dog_id, meal))

    async def _sync_potty_cell(self, dog_id: str, slot: str) -> None:
        change = self.grid.pending_change(dog_id, slot)
        if change is None:
            logger.debug("Potty cell %s/%s already in sync", dog_id, slot)
            return

        name = self.dog_name(dog_id)
        try:
            if change == "add":
                record = CareRecord.build(
                    dog_id,
                    CareCategory.POTTY,
                    when=parse_time_slot(slot, self.current_date, self.tz),
                    notes=f"{name} let out at {slot}",
                    task_name="Potty Break",
                )
                log = await self.client.record_care(record)
                self.grid.mark_added(dog_id, slot, log.id if isinstance(log, CareLog) else None)
                logger.info("Potty break at %s logged for %s", slot, name)
            else:
                log_id = self.grid.persisted_id(dog_id, slot)
                if log_id is None:
                    logger.warning("Potty break %s/%s has no log id yet; waiting for reload", dog_id, slot)
                    return
                await self.client.delete_care_log(log_id)
                self.grid.mark_removed(dog_id, slot)
                logger.info("Potty break at %s removed for %s", slot, name)
        except Exception:
            logger.exception("Error syncing potty break %s/%s", dog_id, slot)
            self.state.record_error()
            # Roll the optimistic cell back to what the server has.
            if self.grid.pending_change(dog_id, slot) is not None:
                self.grid.toggle(dog_id, slot)
            await self._notify(f"Error logging potty break for {name}.", error=True)

    def _meal_timestamp(self, meal: str) -> datetime:
        # Late clicks still have to land inside the clicked meal's bucket.
        if meal_slot_for_hour(self.now().hour) == meal:
            return self._clock()
        return meal_time(meal, self.current_date, self.tz)

    async def _toggle_feeding(self, dog_id: str, meal: str) -> None:
        name = self.dog_name(dog_id)
        try:
            await self.refresh_feeding_cache(force=True)
            log_id = self.feeding_index.get((dog_id, meal))
            if log_id:
                await self.client.delete_care_log(log_id)
                self.feeding_index.pop((dog_id, meal), None)
                await self._notify(f"{meal} feeding removed for {name}.")
            else:
                record = CareRecord.build(
                    dog_id,
                    CareCategory.FEEDING,
                    when=self._meal_timestamp(meal),
                    notes=f"{name} fed ({meal.lower()})",
                    task_name=f"{meal} Feeding",
                )
                log = await self.client.record_care(record)
                if isinstance(log, CareLog):
                    self.feeding_index[(dog_id, meal)] = log.id
                await self._notify(f"{meal} feeding logged for {name}.")
        except Exception:
            logger.exception("Error toggling %s feeding for dog=%s", meal, dog_id)
            self.state.record_error()
            await self._notify(f"Error updating feeding for {name}.", error=True)
        finally:
            self.feeding_gate.reset_cache()

    # ---------- single-dog actions ----------

    async def quick_log(self, dog_id: str) -> CareLog | None:
        """Log the active category for one dog right now."""
        if self.closed or self.busy:
            return None
        category = self.state.active_category
        name = self.dog_name(dog_id)
        now = self.now()
        if category is CareCategory.POTTY:
            task = "Potty Break"
        elif category is CareCategory.FEEDING:
            task = f"{meal_slot_for_hour(now.hour)} Feeding"
        else:
            task = category.value.capitalize()

        self.busy = True
        try:
            log = await self.client.record_care(
                CareRecord.build(dog_id, category, when=self._clock(), notes=f"{task} for {name}", task_name=task)
            )
        except Exception:
            logger.exception("Error logging %s for dog=%s", category.value, dog_id)
            self.state.record_error()
            await self._notify(f"Failed to log {task.lower()} for {name}.", error=True)
            return None
        finally:
            self.busy = False

        await self._notify(f"{task} logged for {name}.")
        self.refresher.gate.reset_cache()
        self.feeding_gate.reset_cache()
        await self.reload(force=True)
        return log

    async def record_observation(self, dog_id: str, text: str) -> bool:
        text = (text or "").strip()
        if not text:
            await self._notify("Observation is empty.", error=True)
            return False
        category = self.state.active_category
        name = self.dog_name(dog_id)
        try:
            await self.client.record_care(
                CareRecord.build(dog_id, category, when=self._clock(), notes=text, task_name="Observation")
            )
        except Exception:
            logger.exception("Error saving observation for dog=%s", dog_id)
            self.state.record_error()
            await self._notify(f"Failed to save observation for {name}.", error=True)
            return False
        finally:
            self.state.close_observation()

        await self._notify(f"Observation saved for {name}.")
        await self.reload(force=True)
        return True

    # ---------- group potty break ----------

    def request_group_potty_break(self) -> None:
        if self.closed:
            return
        self._group_debouncer.debounce(self.log_group_potty_break)

    async def log_group_potty_break(self) -> GroupActionResult | None:
        if self.closed:
            return None
        if self.busy:
            logger.info("Group potty break rejected for user_id=%s: another action is running", self.user_id)
            await self._notify("Another action is running, try the group potty break again.", error=True)
            return None

        order = {dog.dog_id: i for i, dog in enumerate(self.dogs())}
        ids = sorted(self.state.group_selection, key=lambda d: order.get(d, len(order)))

        self.busy = True
        try:
            result = await record_group_potty_break(
                self.client,
                ids,
                when=self._clock(),
                notes="Group potty break",
                notify=self._notify,
            )
        finally:
            self.busy = False

        if result.ok:
            self.state.group_selection.clear()
            self.state.close_dialog()
            self.refresher.gate.reset_cache()
            await self.reload(force=True)
        elif result.error != "no_dogs":
            self.state.record_error()
        return result

    # ---------- settings ----------

    def set_refresh_interval(self, seconds: float) -> float:
        return self.refresher.set_refresh_interval(seconds)

    async def _notify(self, text: str, *, error: bool = False) -> None:
        if self.closed:
            return
        await safe_notify(self.notify, text, error=error)


class SessionManager:
    """Keeps one :class:`DailyCareSession` per user."""

    def __init__(self, client: Any, cfg: DailyCareConfig, **session_kwargs: Any):
        self.client = client
        self.cfg = cfg
        self._session_kwargs = session_kwargs
        self._sessions: Dict[int, DailyCareSession] = {}

    def get(self, user_id: int) -> DailyCareSession | None:
        return self._sessions.get(int(user_id))

    async def open(
        self,
        user_id: int,
        *,
        notify: Notifier | None = None,
        on_refreshed: RenderHook | None = None,
        refresh_interval_s: float | None = None,
    ) -> DailyCareSession:
        session = self._sessions.get(int(user_id))
        if session is not None and not session.closed:
            if notify is not None:
                session.notify = notify
            if on_refreshed is not None:
                session.on_refreshed = on_refreshed
            return session

        session = DailyCareSession(
            user_id,
            self.client,
            self.cfg,
            notify=notify,
            on_refreshed=on_refreshed,
            refresh_interval_s=refresh_interval_s,
            **self._session_kwargs,
        )
        self._sessions[int(user_id)] = session
        await session.start()
        return session

    def close(self, user_id: int) -> bool:
        session = self._sessions.pop(int(user_id), None)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self) -> None:
        for user_id in list(self._sessions):
            self.close(user_id)

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = ["DailyCareSession", "SessionManager"]
