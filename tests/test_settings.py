"""Tests for config.ini settings."""

import configparser
import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clip_settings import MIN_POLL_MS, Settings


class TestSettings(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "config.ini"

    def tearDown(self):
        self.tmp.cleanup()

    def test_missing_file_created_with_defaults(self):
        settings = Settings.load(self.path)
        self.assertEqual(settings, Settings())
        self.assertTrue(self.path.exists())
        self.assertAlmostEqual(settings.poll_interval, 0.25)

    def test_round_trip(self):
        Settings(poll_interval_ms=500, auto_transform=False, toggle_hotkey=None,
                 max_history_size=7).save(self.path)
        loaded = Settings.load(self.path)
        self.assertEqual(loaded.poll_interval_ms, 500)
        self.assertFalse(loaded.auto_transform)
        self.assertIsNone(loaded.toggle_hotkey)
        self.assertEqual(loaded.max_history_size, 7)
        self.assertTrue(loaded.keep_history)

    def test_bad_value_falls_back_to_default(self):
        self.path.write_text(
            "[settings]\npoll_interval_ms = fast\nauto_transform = maybe\nkeep_history = no\n",
            encoding="utf-8",
        )
        with self.assertLogs("clip_settings", level="WARNING"):
            loaded = Settings.load(self.path)
        self.assertEqual(loaded.poll_interval_ms, 250)
        self.assertTrue(loaded.auto_transform)
        self.assertFalse(loaded.keep_history)

    def test_poll_interval_clamped(self):
        cfg = configparser.ConfigParser()
        cfg["settings"] = {"poll_interval_ms": "1"}
        settings = Settings.from_parser(cfg)
        self.assertEqual(settings.poll_interval_ms, MIN_POLL_MS)
        self.assertAlmostEqual(Settings(poll_interval_ms=0).poll_interval, MIN_POLL_MS / 1000)

    def test_unparseable_file_gives_defaults(self):
        self.path.write_text("no sections here\n", encoding="utf-8")
        with self.assertLogs("clip_settings", level="WARNING"):
            self.assertEqual(Settings.load(self.path), Settings())


if __name__ == "__main__":
    unittest.main()
