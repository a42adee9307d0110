"""Category tabs and dialog state of one daily-care view."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import monotonic
from typing import Callable

from kennelbot.care.models import CARE_CATEGORY_ORDER, CareCategory

logger = logging.getLogger(__name__)

CLICK_RESET_INTERVAL_S = 5.0
MAX_CLICKS_PER_WINDOW = 10


@dataclass
class CareViewState:
    """Explicit transitions for the tab/dialog UI.

    Changing the category always closes any open dialog: a dialog opened for
    one category must never stay open under another.
    """

    active_category: CareCategory = CARE_CATEGORY_ORDER[0]
    is_dialog_open: bool = False
    observation_dialog_open: bool = False
    selected_dog_id: str | None = None
    group_selection: set[str] = field(default_factory=set)
    click_count: int = 0
    error_count: int = 0
    last_action: str = "init"
    clock: Callable[[], float] = field(default=monotonic, repr=False)
    _window_started: float | None = field(default=None, repr=False)

    def change_category(self, category: CareCategory | str) -> CareCategory:
        new = category if isinstance(category, CareCategory) else CareCategory.parse(category)
        if new is None:
            raise ValueError(f"Unknown care category: {category!r}")

        previous = self.active_category
        self.active_category = new
        self.is_dialog_open = False
        self.observation_dialog_open = False
        self.selected_dog_id = None
        self.group_selection.clear()
        self.reset_clicks()
        self.error_count = 0
        self.last_action = f"Category changed to {new.value}"
        logger.debug("Care category %s -> %s", previous.value, new.value)
        return new

    def open_dialog(self, dog_id: str) -> None:
        self.selected_dog_id = str(dog_id)
        self.is_dialog_open = True
        self.last_action = f"Dog clicked: {dog_id}"

    def open_group_dialog(self) -> None:
        self.selected_dog_id = None
        self.group_selection.clear()
        self.is_dialog_open = True
        self.last_action = "Group potty break opened"

    @property
    def group_dialog_open(self) -> bool:
        return self.is_dialog_open and self.selected_dog_id is None

    def close_dialog(self) -> None:
        self.is_dialog_open = False
        self.observation_dialog_open = False
        self.selected_dog_id = None
        self.last_action = "Dialog closed"

    def open_observation(self, dog_id: str) -> None:
        self.selected_dog_id = str(dog_id)
        self.observation_dialog_open = True
        self.last_action = f"Observation clicked: {dog_id}"

    def close_observation(self) -> None:
        self.observation_dialog_open = False

    def toggle_group_dog(self, dog_id: str) -> bool:
        """Flip membership in the group potty-break selection; True if now selected."""
        dog_id = str(dog_id)
        if dog_id in self.group_selection:
            self.group_selection.discard(dog_id)
            return False
        self.group_selection.add(dog_id)
        return True

    def track_click(self, dog_id: str, slot: str | None = None) -> bool:
        """Count a cell click; False once the current window is over the soft limit."""
        now = self.clock()
        if self._window_started is None or (now - self._window_started) >= CLICK_RESET_INTERVAL_S:
            if self.click_count:
                logger.debug("Auto-resetting click counter from %s to 0", self.click_count)
            self.click_count = 0
            self._window_started = now

        self.click_count += 1
        self.last_action = f"Cell clicked: {dog_id} at {slot}" if slot else f"Cell clicked: {dog_id}"
        if self.click_count > MAX_CLICKS_PER_WINDOW:
            logger.info("Click throttled (%s clicks in window) for dog=%s slot=%s", self.click_count, dog_id, slot)
            return False
        return True

    def reset_clicks(self) -> None:
        self.click_count = 0
        self._window_started = None

    def record_error(self) -> int:
        self.error_count += 1
        return self.error_count

    def reset_errors(self) -> None:
        self.error_count = 0
        self.last_action = "Error reset"


__all__ = ["CareViewState", "CLICK_RESET_INTERVAL_S", "MAX_CLICKS_PER_WINDOW"]
