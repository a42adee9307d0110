import unittest

from kennelbot.care.appointments import count_events_by_dog, event_mentions_dog
from kennelbot.care.models import CareEvent
from tests._fakes import make_dog


class EventAssociationTest(unittest.TestCase):
    def test_case_insensitive_match_in_title_or_description(self):
        self.assertTrue(event_mentions_dog(CareEvent(title="Vet visit for BELLA"), "Bella"))
        self.assertTrue(event_mentions_dog(CareEvent(title="Vet", description="bring bella"), "Bella"))
        self.assertFalse(event_mentions_dog(CareEvent(title="Vet visit"), "Bella"))

    def test_substring_heuristic_is_kept(self):
        self.assertTrue(event_mentions_dog(CareEvent(title="maximum capacity drill"), "Max"))

    def test_empty_name_never_matches(self):
        self.assertFalse(event_mentions_dog(CareEvent(title="anything"), "  "))

    def test_counts_per_dog(self):
        dogs = [make_dog("1", "Bella"), make_dog("2", "Rex"), make_dog("3", "Luna")]
        events = [
            CareEvent(title="Bella grooming", status="scheduled"),
            CareEvent(title="Walk", description="Bella and Rex", status="done"),
            CareEvent(title="Rex vet", status="cancelled"),
        ]
        self.assertEqual(count_events_by_dog(dogs, events), {"1": 2, "2": 2, "3": 0})
        self.assertEqual(
            count_events_by_dog(dogs, events, statuses=["Scheduled", "done"]),
            {"1": 2, "2": 1, "3": 0},
        )


if __name__ == "__main__":
    unittest.main()
