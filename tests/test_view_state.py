import unittest

from kennelbot.care.models import CareCategory
from kennelbot.care.view_state import CLICK_RESET_INTERVAL_S, MAX_CLICKS_PER_WINDOW, CareViewState


class _Clock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


class CareViewStateTest(unittest.TestCase):
    def setUp(self):
        self.clock = _Clock()
        self.state = CareViewState(clock=self.clock)

    def test_initial_category_is_feeding(self):
        self.assertIs(self.state.active_category, CareCategory.FEEDING)
        self.assertFalse(self.state.is_dialog_open)

    def test_change_category_closes_open_dialog(self):
        self.state.open_dialog("d1")
        self.assertTrue(self.state.is_dialog_open)

        self.state.change_category(CareCategory.POTTY)

        self.assertIs(self.state.active_category, CareCategory.POTTY)
        self.assertFalse(self.state.is_dialog_open)
        self.assertIsNone(self.state.selected_dog_id)

    def test_change_category_resets_observation_selection_and_counters(self):
        self.state.open_observation("d1")
        self.state.toggle_group_dog("d2")
        self.state.track_click("d1", "6 AM")
        self.state.record_error()

        self.state.change_category("medication")

        self.assertFalse(self.state.observation_dialog_open)
        self.assertEqual(self.state.group_selection, set())
        self.assertEqual(self.state.click_count, 0)
        self.assertEqual(self.state.error_count, 0)
        self.assertEqual(self.state.last_action, "Category changed to medication")

    def test_change_category_accepts_legacy_potty_name(self):
        self.assertIs(self.state.change_category("pottybreaks"), CareCategory.POTTY)

    def test_unknown_category_rejected(self):
        with self.assertRaises(ValueError):
            self.state.change_category("grooming")
        self.assertIs(self.state.active_category, CareCategory.FEEDING)

    def test_group_dialog(self):
        self.state.toggle_group_dog("d1")
        self.state.open_group_dialog()
        self.assertTrue(self.state.group_dialog_open)
        self.assertEqual(self.state.group_selection, set())
        self.assertTrue(self.state.toggle_group_dog("d1"))
        self.assertFalse(self.state.toggle_group_dog("d1"))

    def test_click_throttle_and_auto_reset(self):
        for _ in range(MAX_CLICKS_PER_WINDOW):
            self.assertTrue(self.state.track_click("d1", "7 AM"))
        self.assertFalse(self.state.track_click("d1", "7 AM"))

        self.clock.t += CLICK_RESET_INTERVAL_S
        self.assertTrue(self.state.track_click("d1", "7 AM"))
        self.assertEqual(self.state.click_count, 1)


if __name__ == "__main__":
    unittest.main()
