import unittest
from datetime import datetime, timedelta, timezone

from kennelbot.care.models import CareCategory
from kennelbot.care.session import DailyCareSession
from kennelbot.config import DailyCareConfig
from kennelbot.keyboards import settings_keyboard
from kennelbot.sections.care.keyboards import CareCallbackData, dog_card_keyboard, group_select_keyboard
from tests._fakes import FakeCareClient, FakeClock, make_dog

CFG = DailyCareConfig(
    cache_ttl_s=20,
    feeding_cache_ttl_s=10,
    cell_debounce_ms=300,
    action_debounce_ms=1000,
    auto_refresh_interval_s=1800,
    timezone="UTC",
)
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
LONG_ID = "3f2b8c1e-9a4d-4e7f-b6c2-1d5e8f9a0b7c"


def _session(dogs):
    session = DailyCareSession(1, FakeCareClient(), CFG, tz=timezone.utc, clock=FakeClock(NOW))
    session.refresher.dogs = list(dogs)
    return session


def _callback_data(markup):
    return [b.callback_data for row in markup.inline_keyboard for b in row]


class CareKeyboardsTest(unittest.TestCase):
    def test_potty_card_fits_callback_limit(self):
        dog = make_dog(LONG_ID, "Bella")
        session = _session([dog])
        session.state.change_category(CareCategory.POTTY)

        data = _callback_data(dog_card_keyboard(session, dog, page=12))

        self.assertTrue(all(len(d.encode("utf-8")) <= 64 for d in data))
        cell = CareCallbackData.unpack(data[18])
        self.assertEqual((cell.action, cell.slot, cell.dog), ("cell", 18, LONG_ID))

    def test_marked_slot_shows_check(self):
        dog = make_dog("1", "Bella")
        session = _session([dog])
        session.state.change_category(CareCategory.POTTY)
        session.grid.toggle("1", "6 AM")

        first = dog_card_keyboard(session, dog).inline_keyboard[0][0]
        self.assertEqual(first.text, "✅ 6 AM")

    def test_group_select_lists_neediest_first(self):
        fresh = make_dog("1", "Bella", last_category="potty", last_at=NOW - timedelta(minutes=10))
        never = make_dog("2", "Rex")
        session = _session([fresh, never])
        session.state.toggle_group_dog("1")

        rows = group_select_keyboard(session).inline_keyboard
        self.assertEqual(rows[0][0].text, "⬜️ Rex")
        self.assertEqual(rows[1][0].text, "☑️ Bella")
        self.assertEqual(rows[2][0].text, "✅ Log potty break (1)")


class SettingsKeyboardTest(unittest.TestCase):
    def test_current_interval_is_marked(self):
        texts = [b.text for row in settings_keyboard(900).inline_keyboard for b in row]
        self.assertIn("• 15 minutes", texts)
        self.assertIn("1 hour", texts)
        self.assertEqual(texts[-1], "⬅️ Main menu")


if __name__ == "__main__":
    unittest.main()
