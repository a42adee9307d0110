import asyncio
import importlib
import os
import unittest
from unittest.mock import patch

ENV = {
    "TG_BOT_TOKEN": "123456:TEST-token",
    "ENABLE_TG_POLLING": "0",
    "PORT": "9001",
    "HOST": "127.0.0.1",
}


class MainEntryPointTest(unittest.TestCase):
    def setUp(self):
        patcher = patch.dict(os.environ, ENV)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.main = importlib.import_module("main")

    def test_run_serves_app_with_uvicorn(self):
        with patch.object(self.main.uvicorn, "run") as serve:
            self.main.run()

        serve.assert_called_once()
        args, kwargs = serve.call_args
        self.assertIs(args[0], self.main.app)
        self.assertEqual(kwargs["port"], 9001)
        self.assertEqual(kwargs["host"], "127.0.0.1")

    def test_health_reports_polling_and_sessions(self):
        body = asyncio.run(self.main.health())
        self.assertTrue(body["ok"])
        self.assertFalse(body["polling"])
        self.assertEqual(body["care_sessions"], 0)


if __name__ == "__main__":
    unittest.main()
