import asyncio
import unittest

from aiogram.exceptions import TelegramBadRequest

from kennelbot.utils import message_gc


class DummySent:
    def __init__(self, mid):
        self.message_id = mid


class DummyBot:
    def __init__(self, *, edit_error=None, delete_error=None):
        self.edit_error = edit_error
        self.delete_error = delete_error
        self.edits = []
        self.sent = []
        self.deleted = []
        self._next_mid = 1000

    async def edit_message_text(self, **kwargs):
        self.edits.append(kwargs)
        if self.edit_error is not None:
            raise TelegramBadRequest(method=None, message=self.edit_error)
        return True

    async def send_message(self, **kwargs):
        self._next_mid += 1
        self.sent.append(kwargs)
        return DummySent(self._next_mid)

    async def delete_message(self, **kwargs):
        self.deleted.append(kwargs["message_id"])
        if self.delete_error is not None:
            raise TelegramBadRequest(method=None, message=self.delete_error)
        return True


class MessageGCSafeDeleteTest(unittest.TestCase):
    def test_safe_delete_not_found_is_success(self):
        bot = DummyBot(delete_error="message to delete not found")
        self.assertTrue(asyncio.run(message_gc._safe_delete(bot, 1, 2)))

    def test_safe_delete_other_error_fails(self):
        bot = DummyBot(delete_error="message can't be deleted")
        with self.assertLogs("kennelbot.utils.message_gc", level="WARNING"):
            self.assertFalse(asyncio.run(message_gc._safe_delete(bot, 1, 2)))


class RenderSectionTest(unittest.TestCase):
    def setUp(self):
        message_gc._reset_for_tests()

    def tearDown(self):
        message_gc._reset_for_tests()

    def test_trigger_is_edited_instead_of_sending(self):
        bot = DummyBot(edit_error="message is not modified")

        result = asyncio.run(
            message_gc.render_section(
                message_gc.SECTION_CARE_LIST,
                bot=bot,
                chat_id=99,
                user_id=7,
                text="list",
                trigger_message_id=555,
            )
        )

        self.assertIsNone(result)
        self.assertEqual(len(bot.edits), 1)
        self.assertEqual(bot.sent, [])
        self.assertEqual(message_gc.get_section_message_id(7, message_gc.SECTION_CARE_LIST), 555)

    def test_registered_message_is_edited(self):
        message_gc.remember_section(7, message_gc.SECTION_CARE_LIST, 99, 10)
        bot = DummyBot()

        asyncio.run(
            message_gc.render_section(
                message_gc.SECTION_CARE_LIST, bot=bot, chat_id=99, user_id=7, text="v2", trigger_message_id=11
            )
        )

        self.assertEqual(bot.edits[0]["message_id"], 10)
        self.assertEqual(bot.sent, [])

    def test_failed_edit_sends_new_and_deletes_old(self):
        message_gc.remember_section(7, message_gc.SECTION_CARE_CARD, 99, 10)
        bot = DummyBot(edit_error="message to edit not found")

        sent = asyncio.run(
            message_gc.render_section(message_gc.SECTION_CARE_CARD, bot=bot, chat_id=99, user_id=7, text="card")
        )

        self.assertEqual(sent.message_id, 1001)
        self.assertEqual(bot.deleted, [10])
        self.assertEqual(message_gc.get_section_message_id(7, message_gc.SECTION_CARE_CARD), 1001)

    def test_trigger_owned_by_other_section_is_left_alone(self):
        message_gc.remember_section(7, message_gc.SECTION_CARE_LIST, 99, 555)
        bot = DummyBot()

        asyncio.run(
            message_gc.render_section(
                message_gc.SECTION_CARE_CARD, bot=bot, chat_id=99, user_id=7, text="card", trigger_message_id=555
            )
        )

        self.assertEqual(bot.edits, [])
        self.assertEqual(len(bot.sent), 1)
        self.assertEqual(message_gc.get_section_message_id(7, message_gc.SECTION_CARE_LIST), 555)


class CloseSectionsTest(unittest.TestCase):
    def setUp(self):
        message_gc._reset_for_tests()

    def tearDown(self):
        message_gc._reset_for_tests()

    def test_close_deletes_and_preserves(self):
        message_gc.remember_section(7, message_gc.SECTION_CARE_LIST, 99, 10)
        message_gc.remember_section(7, message_gc.SECTION_CARE_CARD, 99, 11)
        bot = DummyBot()

        asyncio.run(
            message_gc.close_sections(bot, 7, message_gc.CARE_SECTIONS, preserve_message_ids=[10])
        )

        self.assertEqual(bot.deleted, [11])
        for section in message_gc.CARE_SECTIONS:
            self.assertIsNone(message_gc.get_section_ref(7, section))

    def test_delete_unknown_section(self):
        self.assertFalse(asyncio.run(message_gc.delete_section_message(7, message_gc.SECTION_MENU, DummyBot())))


if __name__ == "__main__":
    unittest.main()
