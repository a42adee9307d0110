import unittest
from datetime import datetime, timedelta, timezone

from kennelbot.care.models import CareCategory, DogFlag, DogFlagType
from kennelbot.care.session import DailyCareSession
from kennelbot.config import DailyCareConfig
from kennelbot.sections.care import logic
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


def _session(dogs):
    session = DailyCareSession(1, FakeCareClient(), CFG, tz=timezone.utc, clock=FakeClock(NOW))
    session.refresher.dogs = list(dogs)
    return session


class CareLogicHelpersTest(unittest.TestCase):
    def test_time_since(self):
        self.assertEqual(logic.time_since(None, NOW), "never")
        self.assertEqual(logic.time_since(NOW - timedelta(seconds=20), NOW), "just now")
        self.assertEqual(logic.time_since(NOW - timedelta(minutes=45), NOW), "45m ago")
        self.assertEqual(logic.time_since(NOW - timedelta(hours=2), NOW), "2h ago")
        self.assertEqual(logic.time_since(NOW - timedelta(minutes=130), NOW), "2h 10m ago")

    def test_flag_badges_escape_html(self):
        dog = make_dog(
            "1",
            "Bella",
            flags=[
                DogFlag(type=DogFlagType.IN_HEAT),
                DogFlag(type=DogFlagType.INCOMPATIBLE, incompatible_with=["Rex <3"]),
            ],
        )
        self.assertEqual(logic.flag_badges(dog), "🔴 in heat · ⚠️ not with Rex &lt;3")

    def test_page_slice_clamps_page(self):
        dogs = [make_dog(str(i), f"Dog {i}") for i in range(10)]
        items, page, total = logic.page_slice(dogs, 5)
        self.assertEqual((page, total), (1, 2))
        self.assertEqual(len(items), 2)

        items, page, total = logic.page_slice([], -1)
        self.assertEqual((items, page, total), ([], 0, 1))


class CareListTextTest(unittest.TestCase):
    def test_list_groups_dogs_and_shows_last_care(self):
        session = _session(
            [
                make_dog("1", "Bella", "Run A", last_category="potty", last_at=NOW - timedelta(minutes=30)),
                make_dog("2", "Rex"),
            ]
        )
        session.refresher.event_counts = {"1": 2}

        text, items, page, total = logic.format_care_list_text(session)

        self.assertEqual([d.dog_id for d in items], ["1", "2"])
        self.assertEqual((page, total), (0, 1))
        self.assertIn("Wed 01 May 2024", text)
        self.assertIn("<b>Run A</b>", text)
        self.assertIn("<b>No group</b>", text)
        self.assertIn("potty task, 30m ago · 📅 2", text)
        self.assertIn("no care logged today", text)
        self.assertNotIn("Page", text)

    def test_empty_list(self):
        text, items, _, _ = logic.format_care_list_text(_session([]))
        self.assertEqual(items, [])
        self.assertIn("No dogs checked in today.", text)

    def test_error_count_is_reported(self):
        session = _session([make_dog("1", "Bella")])
        session.state.record_error()
        text, _, _, _ = logic.format_care_list_text(session)
        self.assertIn("1 action(s) failed", text)


class DogCardTextTest(unittest.TestCase):
    def test_potty_card_lists_marked_slots(self):
        dog = make_dog("1", "Bella")
        session = _session([dog])
        session.state.change_category(CareCategory.POTTY)
        session.grid.toggle("1", "9 AM")
        session.grid.toggle("1", "7 AM")

        text = logic.format_dog_card_text(session, dog)

        self.assertIn("2 of 19 slots", text)
        self.assertIn("7 AM, 9 AM", text)

    def test_feeding_card_marks_meals(self):
        dog = make_dog("1", "Bella")
        session = _session([dog])
        session.feeding_index = {("1", "Noon"): "log-9"}

        text = logic.format_dog_card_text(session, dog)

        self.assertIn("▫️ Morning  ✅ Noon  ▫️ Evening", text)

    def test_group_select_text(self):
        session = _session([make_dog("1", "Bella")])
        session.state.toggle_group_dog("1")
        self.assertIn("Selected: <b>1</b>", logic.format_group_select_text(session))


if __name__ == "__main__":
    unittest.main()
