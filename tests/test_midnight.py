import asyncio
import unittest
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from kennelbot.care.midnight import MidnightRollover, next_local_midnight, resolve_timezone, seconds_until_midnight
from tests._fakes import FakeClock, FakeLoop

NY = ZoneInfo("America/New_York")


def _local(*args) -> datetime:
    return datetime(*args, tzinfo=NY)


class SecondsUntilMidnightTest(unittest.TestCase):
    def test_ten_minutes_before_midnight(self):
        now = datetime(2024, 1, 1, 23, 50, tzinfo=timezone.utc)
        self.assertEqual(seconds_until_midnight(now, timezone.utc), 600)

    def test_uses_local_day_not_utc_day(self):
        # 03:30 UTC is still the previous evening in New York.
        now = datetime(2024, 1, 2, 3, 30, tzinfo=timezone.utc)
        self.assertEqual(next_local_midnight(now, NY), _local(2024, 1, 2, 0, 0))
        self.assertEqual(seconds_until_midnight(now, NY), 90 * 60)

    def test_spring_forward_day_is_23_hours(self):
        now = _local(2024, 3, 10, 0, 0)
        self.assertEqual(seconds_until_midnight(now, NY), 23 * 3600)

    def test_fall_back_day_is_25_hours(self):
        now = _local(2024, 11, 3, 0, 0)
        self.assertEqual(seconds_until_midnight(now, NY), 25 * 3600)

    def test_unknown_zone_falls_back_to_host(self):
        with self.assertLogs("kennelbot.care.midnight", level="WARNING"):
            self.assertIsNone(resolve_timezone("Mars/Olympus_Mons"))
        self.assertIsNone(resolve_timezone(""))


class MidnightRolloverTest(unittest.TestCase):
    def _make(self, start: datetime):
        self.clock = FakeClock(start.astimezone(timezone.utc))
        self.loop = FakeLoop(self.clock)
        self.rollover = MidnightRollover(NY, clock=self.clock, loop=self.loop)
        self.fired: list[datetime] = []

    def tearDown(self):
        self.rollover.cleanup_midnight_check()
        self.loop.close_tasks()

    def test_fires_once_at_midnight_and_rearms(self):
        self._make(_local(2024, 3, 1, 23, 50))
        self.rollover.setup_midnight_check(self.fired.append)
        self.assertAlmostEqual(self.loop.next_delay(), 600)

        self.loop.advance(600)

        self.assertEqual(len(self.fired), 1)
        self.assertEqual(self.fired[0].date().isoformat(), "2024-03-02")
        self.assertTrue(self.rollover.armed)
        self.assertAlmostEqual(self.loop.next_delay(), 24 * 3600)
        self.assertEqual(len(self.loop.pending()), 1)

    def test_rearm_across_spring_forward(self):
        self._make(_local(2024, 3, 9, 23, 50))
        self.rollover.setup_midnight_check(self.fired.append)
        self.loop.advance(600)
        self.assertEqual(len(self.fired), 1)
        self.assertAlmostEqual(self.loop.next_delay(), 23 * 3600)

        self.loop.advance(23 * 3600)
        self.assertEqual(len(self.fired), 2)
        self.assertEqual(self.fired[1].date().isoformat(), "2024-03-11")

    def test_raising_callback_still_rearms(self):
        self._make(_local(2024, 3, 1, 23, 50))

        def boom(_now):
            raise RuntimeError("refresh failed")

        self.rollover.setup_midnight_check(boom)
        with self.assertLogs("kennelbot.care.midnight", level="ERROR"):
            self.loop.advance(600)
        self.assertTrue(self.rollover.armed)
        self.assertEqual(self.rollover.fired_count, 1)

    def test_early_fire_does_not_fire_twice_for_same_midnight(self):
        self._make(_local(2024, 3, 1, 23, 50))
        self.rollover.setup_midnight_check(self.fired.append)
        # Timer fires a second before the wall clock reaches midnight.
        self.clock.advance(-1)
        self.loop.advance(600)

        self.assertEqual(len(self.fired), 1)
        self.assertEqual(self.rollover.target, _local(2024, 3, 3, 0, 0))

    def test_cleanup_stops_the_chain(self):
        self._make(_local(2024, 3, 1, 23, 50))
        self.rollover.setup_midnight_check(self.fired.append)
        self.rollover.cleanup_midnight_check()
        self.loop.advance(2 * 24 * 3600)
        self.assertEqual(self.fired, [])
        self.assertFalse(self.rollover.armed)

    def test_setup_again_replaces_handle(self):
        self._make(_local(2024, 3, 1, 23, 50))
        self.rollover.setup_midnight_check(self.fired.append)
        self.rollover.setup_midnight_check(self.fired.append)
        self.assertEqual(len(self.loop.pending()), 1)
        self.loop.advance(600)
        self.assertEqual(len(self.fired), 1)

    def test_async_callback_is_scheduled(self):
        self._make(_local(2024, 3, 1, 23, 50))

        async def on_midnight(now):
            self.fired.append(now)

        self.rollover.setup_midnight_check(on_midnight)
        self.loop.advance(600)
        self.assertEqual(len(self.loop.tasks), 1)
        self.assertTrue(self.rollover.armed)

        asyncio.run(self.loop.tasks.pop().coro)
        self.assertEqual(self.fired, [_local(2024, 3, 2, 0, 0)])

    def test_raising_async_callback_is_logged_and_rearmed(self):
        self._make(_local(2024, 3, 1, 23, 50))

        async def on_midnight(now):
            raise RuntimeError("refresh failed")

        self.rollover.setup_midnight_check(on_midnight)
        self.loop.advance(600)
        self.assertTrue(self.rollover.armed)
        self.assertEqual(self.rollover.target, _local(2024, 3, 3, 0, 0))

        with self.assertLogs("kennelbot.care.midnight", level="ERROR") as logs:
            asyncio.run(self.loop.tasks.pop().coro)
        self.assertIn("Midnight refresh coroutine failed", logs.output[0])
        self.assertTrue(self.rollover.armed)
        self.assertEqual(self.rollover.fired_count, 1)


if __name__ == "__main__":
    unittest.main()
