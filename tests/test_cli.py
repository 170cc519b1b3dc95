"""Tests for the clipchef command line."""

import io
import os
import signal
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import clipchef
from clip_access import MemoryClipboard
from clip_errors import AlreadyRunningError
from clip_monitor import ClipboardTransformed
from clip_settings import Settings
from history_db import HistoryLog
from recipe_store import RecipeStore


class CliTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.base = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def run_cli(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = clipchef.main(["--config-dir", str(self.base), *argv])
        return code, out.getvalue(), err.getvalue()

    def saved_recipes(self):
        return RecipeStore(self.base / "recipes.ini").load()


class TestRecipeCommands(CliTestCase):
    def test_create_activate_and_list(self):
        code, out, _ = self.run_cli(
            "create", "Tidy", "--step", "trim", "--step", 'join_lines {"separator": ", "}',
            "--description", "trim and join",
        )
        self.assertEqual(code, 0)
        self.assertIn("trim_lines → join_lines", out)

        code, out, _ = self.run_cli("activate", "tidy")
        self.assertEqual(code, 0)
        active = [r for r in self.saved_recipes() if r.active]
        self.assertEqual([r.name for r in active], ["Tidy"])

        code, out, _ = self.run_cli("list")
        self.assertIn("Tidy [ACTIVE]", out)
        self.assertIn("Clean Code", out)

        self.run_cli("deactivate")
        self.assertFalse(any(r.active for r in self.saved_recipes()))

    def test_delete(self):
        self.run_cli("create", "Gone")
        code, _, _ = self.run_cli("delete", "Gone")
        self.assertEqual(code, 0)
        self.assertNotIn("Gone", [r.name for r in self.saved_recipes()])

    def test_unknown_recipe_is_an_error(self):
        code, _, err = self.run_cli("activate", "Nope")
        self.assertEqual(code, 1)
        self.assertIn("Recipe not found: Nope", err)

    def test_unknown_step_is_an_error(self):
        code, _, err = self.run_cli("create", "Bad", "--step", "frobnicate")
        self.assertEqual(code, 1)
        self.assertIn("Unknown transformation", err)

    def test_kinds(self):
        code, out, _ = self.run_cli("kinds")
        self.assertEqual(code, 0)
        self.assertIn("tabs_to_spaces", out)
        self.assertIn("Case Conversion:", out)


class TestClipboardCommands(CliTestCase):
    def setUp(self):
        super().setUp()
        self.clipboard = MemoryClipboard("  Hello World  ")
        patcher = patch("clipchef.SystemClipboard", return_value=self.clipboard)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_apply_recipe(self):
        code, out, _ = self.run_cli("apply", "Sort Lines")
        self.assertEqual(code, 0)
        self.assertEqual(self.clipboard.get_text(), "Hello World")
        self.assertIn("Applied recipe: Sort Lines", out)

    def test_apply_dry_run_leaves_clipboard(self):
        code, out, _ = self.run_cli("apply", "Sort Lines", "--dry-run")
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "Hello World")
        self.assertEqual(self.clipboard.writes, [])

    def test_transform_with_params(self):
        self.clipboard.copy("\tx")
        code, _, _ = self.run_cli("transform", "tabs-to-spaces", "--param", "spaces=2")
        self.assertEqual(code, 0)
        self.assertEqual(self.clipboard.get_text(), "  x")

    def test_transform_string_param(self):
        self.clipboard.copy("a\nb")
        self.run_cli("transform", "join_lines", "--param", "separator=+")
        self.assertEqual(self.clipboard.get_text(), "a+b")

    def test_transform_alias(self):
        code, out, _ = self.run_cli("transform", "snake", "--dry-run")
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "hello_world")

    def test_show(self):
        code, out, _ = self.run_cli("show")
        self.assertEqual(code, 0)
        self.assertIn("Hello World", out)


class TestToggleAndNotify(CliTestCase):
    def test_toggle_flips_setting(self):
        self.run_cli("toggle")
        self.assertFalse(Settings.load(self.base / "config.ini").auto_transform)
        self.run_cli("toggle")
        self.assertTrue(Settings.load(self.base / "config.ini").auto_transform)

    def test_notify_without_service(self):
        self.assertFalse(clipchef.notify_service(clipchef.AppPaths(str(self.base))))

    def test_stale_pid_file_removed(self):
        paths = clipchef.AppPaths(str(self.base))
        paths.pid.write_text("not-a-pid")
        self.assertFalse(clipchef.notify_service(paths))
        self.assertFalse(paths.pid.exists())


class TestService(CliTestCase):
    def test_events_are_counted_and_recorded(self):
        paths = clipchef.AppPaths(str(self.base))
        settings = Settings(show_notifications=False)
        service = clipchef.ClipChefService(paths, settings, MemoryClipboard(), hotkey="")
        try:
            service.handle_event(ClipboardTransformed("a", "A", recipe_name="Shout"))
            service.history.flush()
            self.assertEqual(service.transform_count, 1)
            self.assertEqual(service.history.get_entries()[0]["result"], "A")
        finally:
            service.history.stop()

    def test_reload_picks_up_active_recipe_and_settings(self):
        paths = clipchef.AppPaths(str(self.base))
        service = clipchef.ClipChefService(
            paths, Settings(), MemoryClipboard(), hotkey="", keep_history=False
        )
        self.assertIsNone(service.active.get())

        self.run_cli("activate", "No Emoji")
        self.run_cli("toggle")
        service.reload()

        self.assertEqual(service.active.name, "No Emoji")
        self.assertFalse(service.monitor.is_transform_enabled())

    def test_command_line_overrides_survive_reload(self):
        paths = clipchef.AppPaths(str(self.base))
        service = clipchef.ClipChefService(
            paths, Settings(), MemoryClipboard(), hotkey="", keep_history=False,
            overrides={"poll_interval_ms": 1000, "auto_transform": False},
        )
        self.assertAlmostEqual(service.settings.poll_interval, 1.0)
        service.reload()
        self.assertAlmostEqual(service.monitor.poll_interval, 1.0)
        self.assertFalse(service.monitor.is_transform_enabled())

    def test_toggle_transform(self):
        service = clipchef.ClipChefService(
            clipchef.AppPaths(str(self.base)), Settings(), MemoryClipboard(),
            hotkey="", keep_history=False,
        )
        service.toggle_transform()
        self.assertFalse(service.monitor.is_transform_enabled())


@unittest.skipUnless(hasattr(signal, "SIGHUP") and clipchef.fcntl is not None,
                     "pid file locking is POSIX only")
class TestPidLock(CliTestCase):
    def setUp(self):
        super().setUp()
        self.paths = clipchef.AppPaths(str(self.base))

    def service(self):
        return clipchef.ClipChefService(
            self.paths, Settings(), MemoryClipboard(), hotkey="", keep_history=False
        )

    def test_unlocked_pid_file_is_not_signalled(self):
        # the pid is alive (it is ours) but nobody holds the lock
        self.paths.pid.write_text(str(os.getpid()))
        with patch("clipchef.os.kill") as kill:
            self.assertFalse(clipchef.notify_service(self.paths))
        kill.assert_not_called()
        self.assertFalse(self.paths.pid.exists())

    def test_locked_pid_file_is_signalled(self):
        pid_file = clipchef.PidFile(self.paths.pid)
        pid_file.acquire()
        self.addCleanup(pid_file.release)
        self.assertTrue(clipchef.pid_file_locked(self.paths.pid))
        with patch("clipchef.os.kill") as kill:
            self.assertTrue(clipchef.notify_service(self.paths))
        kill.assert_called_once_with(os.getpid(), signal.SIGHUP)

    def test_second_lock_refused(self):
        first = clipchef.PidFile(self.paths.pid)
        first.acquire()
        self.addCleanup(first.release)
        with self.assertRaises(AlreadyRunningError):
            clipchef.PidFile(self.paths.pid).acquire()

    def test_second_service_refused_and_pid_file_kept(self):
        running = self.service()
        running.start()
        self.addCleanup(running.stop)
        written = self.paths.pid.read_text()

        with self.assertRaises(AlreadyRunningError):
            self.service().start()
        self.assertEqual(self.paths.pid.read_text(), written)
        self.assertTrue(clipchef.pid_file_locked(self.paths.pid))

    def test_stop_releases_lock(self):
        service = self.service()
        service.start()
        service.stop()
        self.assertFalse(self.paths.pid.exists())
        self.assertFalse(clipchef.pid_file_locked(self.paths.pid))


class TestHistoryCommand(CliTestCase):
    def setUp(self):
        super().setUp()
        log = HistoryLog(str(self.base / "history.db"), recipe_name="Shout")
        log.record("transformed", "hi", "HI", recipe_name="Shout")
        log.flush()
        log.stop()
        self.session = log.session_id

    def test_sessions_listed(self):
        code, out, _ = self.run_cli("history", "--sessions")
        self.assertEqual(code, 0)
        self.assertIn(str(self.base / "history.db"), out)
        lines = [line.split() for line in out.splitlines() if line.startswith("  ")]
        self.assertEqual([line[0] for line in lines], [self.session])
        self.assertEqual(lines[0][-1], "Shout")
        self.assertIn("1 transformed", out)

    def test_entries_filtered_by_session(self):
        code, out, _ = self.run_cli("history", "--session", self.session)
        self.assertEqual(code, 0)
        self.assertIn(self.session, out)
        self.assertIn("→ HI", out)

        code, out, _ = self.run_cli("history", "--session", "nope")
        self.assertIn("No history entries yet.", out)


if __name__ == "__main__":
    unittest.main()
