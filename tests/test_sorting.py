import unittest
from datetime import datetime, timezone

from kennelbot.care.sorting import SortedDogsView, sort_by_potty_need, sort_dogs
from tests._fakes import make_dog


class SortDogsTest(unittest.TestCase):
    def test_grouped_by_name_then_ungrouped(self):
        dogs = [make_dog("1", "Zed", "A"), make_dog("2", "Ann", "A"), make_dog("3", "Mid")]
        self.assertEqual([d.dog_name for d in sort_dogs(dogs)], ["Ann", "Zed", "Mid"])

    def test_case_insensitive_group_and_name(self):
        dogs = [
            make_dog("1", "bella", "kennel B"),
            make_dog("2", "Archie", "Kennel b"),
            make_dog("3", "coco", "kennel a"),
        ]
        self.assertEqual([d.dog_id for d in sort_dogs(dogs)], ["3", "2", "1"])

    def test_stable_for_equal_keys(self):
        dogs = [make_dog("1", "Rex", "A"), make_dog("2", "rex", "a")]
        self.assertEqual([d.dog_id for d in sort_dogs(dogs)], ["1", "2"])

    def test_input_not_mutated(self):
        dogs = [make_dog("1", "Zed"), make_dog("2", "Ann")]
        sort_dogs(dogs)
        self.assertEqual([d.dog_id for d in dogs], ["1", "2"])

    def test_view_recomputes_only_for_new_list(self):
        view = SortedDogsView()
        dogs = [make_dog("1", "Zed"), make_dog("2", "Ann")]
        first = view.get(dogs)
        self.assertIs(view.get(dogs), first)
        fresh = list(dogs)
        self.assertIsNot(view.get(fresh), first)


class SortByPottyNeedTest(unittest.TestCase):
    def test_order(self):
        early = datetime(2024, 5, 1, 7, 0, tzinfo=timezone.utc)
        late = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
        dogs = [
            make_dog("late", "Late", last_category="potty", last_at=late),
            make_dog("fed", "Fed", last_category="feeding"),
            make_dog("early", "Early", last_category="pottybreaks", last_at=early),
            make_dog("none", "None"),
        ]
        self.assertEqual([d.dog_id for d in sort_by_potty_need(dogs)], ["none", "fed", "early", "late"])


if __name__ == "__main__":
    unittest.main()
