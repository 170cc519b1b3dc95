#!/usr/bin/env python3
"""
clipchef.py - Clipboard recipes: watch the clipboard and rewrite it through
an ordered chain of text transformations.

Commands:
    start                  run the background monitor with the active recipe
    apply RECIPE           apply a recipe to the clipboard once
    list                   list recipes
    show                   print the clipboard text
    transform KIND         apply one transformation to the clipboard once
    toggle                 flip auto_transform in config.ini
    activate RECIPE        make RECIPE the active recipe
    deactivate             deactivate every recipe
    create NAME --step S   add a recipe
    delete RECIPE          remove a recipe
    kinds                  list the available transformations
    history                show recent clipboard history

Usage:
    python clipchef.py start [--poll 0.25] [--no-transform] [--hotkey ctrl+shift+t]
    python clipchef.py apply "Clean Code" [--dry-run]
    python clipchef.py transform tabs_to_spaces --param spaces=2
    python clipchef.py create "Tidy" --step trim_lines --step 'join_lines {"separator": ", "}'
    python clipchef.py history --sessions

A running `start` service reloads its settings and active recipe on SIGHUP;
the mutating commands send it one automatically (POSIX only).
"""

import argparse
import json
import logging
import os
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from clip_access import ClipboardAccessor, SystemClipboard
from clip_errors import AlreadyRunningError, ClipChefError
from clip_monitor import (
    ClipboardChanged,
    ClipboardEvent,
    ClipboardFailed,
    ClipboardMonitor,
    ClipboardTransformed,
)
from clip_settings import CONFIG_NAME, Settings, config_dir, data_dir
from clip_transforms import Transformation, list_rules, resolve_kind
from history_db import DB_NAME, HistoryLog
from recipe_book import ActiveRecipe, RecipeRegistry
from recipe_store import RECIPES_NAME, RecipeStore

try:
    import keyboard
    KEYBOARD_AVAILABLE = True
except ImportError:
    KEYBOARD_AVAILABLE = False

try:
    import fcntl
except ImportError:
    # no pid file locking (and no SIGHUP) off POSIX
    fcntl = None

logger = logging.getLogger("clipchef")

PID_NAME         = "clipchef.pid"
HOTKEY_DEBOUNCE  = 0.3
PREVIEW_CHARS    = 100


# ─── Paths ────────────────────────────────────────────────────────────────────

class AppPaths:
    """Where settings, recipes, history and the pid file live."""

    def __init__(self, base: Optional[str] = None):
        if base:
            root = Path(base)
            root.mkdir(parents=True, exist_ok=True)
            self.config = self.data = root
        else:
            self.config = config_dir()
            self.data   = data_dir()

    @property
    def settings(self) -> Path:
        return self.config / CONFIG_NAME

    @property
    def recipes(self) -> Path:
        return self.config / RECIPES_NAME

    @property
    def history(self) -> Path:
        return self.data / DB_NAME

    @property
    def pid(self) -> Path:
        return self.data / PID_NAME


class PidFile:
    """
    The running service's pid, written under an exclusive ``flock`` that is
    held until ``release``. The lock dies with the process, so a pid file
    nobody has locked is stale even if its pid now belongs to something else.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fh  = None

    def acquire(self):
        """Lock and write our pid. Raises AlreadyRunningError if another service holds it."""
        fh = open(self.path, "a+")
        if fcntl is not None:
            try:
                fcntl.flock(fh, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                fh.close()
                raise AlreadyRunningError(self.path) from None
        fh.seek(0)
        fh.truncate()
        fh.write(str(os.getpid()))
        fh.flush()
        self._fh = fh

    def release(self):
        if self._fh is None:
            return
        self.path.unlink(missing_ok=True)
        self._fh.close()
        self._fh = None


def pid_file_locked(path: Path) -> bool:
    """True while some service holds the lock on *path*."""
    if fcntl is None:
        return False
    try:
        with open(path) as fh:
            try:
                fcntl.flock(fh, fcntl.LOCK_SH | fcntl.LOCK_NB)
            except BlockingIOError:
                return True
            fcntl.flock(fh, fcntl.LOCK_UN)
    except FileNotFoundError:
        pass
    return False


def notify_service(paths: AppPaths) -> bool:
    """Send the reload signal to a running service. False if none is running."""
    if not hasattr(signal, "SIGHUP") or not paths.pid.exists():
        return False
    if not pid_file_locked(paths.pid):
        logger.debug("Removing stale pid file %s", paths.pid)
        paths.pid.unlink(missing_ok=True)
        return False
    try:
        pid = int(paths.pid.read_text().strip())
        os.kill(pid, signal.SIGHUP)
    except (ValueError, ProcessLookupError) as exc:
        logger.debug("Pid file %s is locked but unusable: %s", paths.pid, exc)
        return False
    except OSError as exc:
        logger.debug("Could not signal service: %s", exc)
        return False
    logger.debug("Sent reload signal to pid %d", pid)
    return True


def _preview(text: str) -> str:
    flat = text[:PREVIEW_CHARS].replace("\n", "↵")
    return flat + ("…" if len(text) > PREVIEW_CHARS else "")


# ─── Background service ───────────────────────────────────────────────────────

class ClipChefService:
    """
    Runs the clipboard monitor with the active recipe and reacts to its
    events: logging, history, notifications. Reloads settings and the
    active recipe when asked (SIGHUP), and optionally listens for the
    toggle hotkey and per-recipe hotkeys.
    """

    def __init__(self, paths: AppPaths, settings: Settings,
                 accessor: Optional[ClipboardAccessor] = None,
                 hotkey: Optional[str] = None, keep_history: Optional[bool] = None,
                 overrides: Optional[dict] = None):
        self.paths     = paths
        self.overrides = dict(overrides or {})
        self.settings  = self._with_overrides(settings)
        self.accessor  = accessor or SystemClipboard()
        self.hotkey    = hotkey if hotkey is not None else settings.toggle_hotkey
        self.registry  = RecipeRegistry(RecipeStore(paths.recipes))
        self.active    = ActiveRecipe(self.registry.get_active())
        self.monitor   = ClipboardMonitor(self.accessor, transform_enabled=settings.auto_transform)
        self.pid_file  = PidFile(paths.pid)

        self.transform_count = 0
        self.error_count     = 0

        self._reload_requested = threading.Event()
        self._hotkeys: list    = []
        self._last_hotkey      = 0.0

        use_history = settings.keep_history if keep_history is None else keep_history
        self.history = (
            HistoryLog(str(paths.history), settings.max_history_size, self.active.name or "")
            if use_history else None
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self):
        try:
            self.pid_file.acquire()
        except AlreadyRunningError:
            if self.history is not None:
                self.history.stop()
            raise
        self.events = self.monitor.start(self.active, self.settings.poll_interval)
        self._register_hotkeys()
        self._install_reload_signal()

        name = self.active.name
        if name:
            logger.info("Active recipe: %s", name)
        else:
            logger.info("No active recipe. Activate one with: clipchef activate NAME")
        if self.history is not None:
            logger.info("History: %s (session %s)", self.history.db_path, self.history.session_id)
        return self.events

    def stop(self):
        self.monitor.stop()
        self.monitor.join(timeout=2)
        self._unregister_hotkeys()
        if self.history is not None:
            self.history.stop()
        self.pid_file.release()
        logger.info(
            "Stopped. Transforms: %d  |  Errors: %d", self.transform_count, self.error_count
        )

    def run_forever(self):
        events = self.start()
        try:
            while True:
                if self._reload_requested.is_set():
                    self._reload_requested.clear()
                    self.reload()
                event = events.get(timeout=0.2)
                if event is not None:
                    self.handle_event(event)
                elif events.finished:
                    break
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            self.stop()

    # ── Events ────────────────────────────────────────────────────────────────

    def handle_event(self, event: ClipboardEvent):
        if isinstance(event, ClipboardChanged):
            logger.debug("Changed: %r", _preview(event.text))
        elif isinstance(event, ClipboardTransformed):
            self.transform_count += 1
            logger.info(
                "Transformed [%s]: %d -> %d chars",
                event.recipe_name, len(event.original), len(event.result),
            )
            if self.settings.show_notifications:
                print("✨ Clipboard transformed!")
        elif isinstance(event, ClipboardFailed):
            self.error_count += 1
            logger.error("Clipboard error: %s", event.message)

        if self.history is not None:
            self.history.record_event(event)

    # ── Reload signal ─────────────────────────────────────────────────────────

    def _with_overrides(self, settings: Settings) -> Settings:
        # command-line flags win over config.ini, on every reload too
        for name, value in self.overrides.items():
            setattr(settings, name, value)
        return settings

    def _install_reload_signal(self):
        if not hasattr(signal, "SIGHUP"):
            return
        if threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGHUP, lambda _sig, _frame: self._reload_requested.set())

    def reload(self):
        """Re-read settings and the active recipe from disk."""
        try:
            self.settings = self._with_overrides(Settings.load(self.paths.settings))
        except OSError as exc:
            logger.warning("Settings reload failed: %s", exc)
        self.monitor.set_transform_enabled(self.settings.auto_transform)
        self.monitor.poll_interval = self.settings.poll_interval

        self.registry = RecipeRegistry(RecipeStore(self.paths.recipes))
        recipe = self.registry.get_active()
        self.active.set(recipe)
        self._unregister_hotkeys()
        self._register_hotkeys()

        if recipe:
            logger.info("📝 Active recipe: %s", recipe.name)
        else:
            logger.info("📝 Recipe deactivated")
        logger.info(
            "Transformation: %s", "enabled" if self.settings.auto_transform else "disabled"
        )

    # ── Hotkeys ───────────────────────────────────────────────────────────────

    def toggle_transform(self):
        enabled = not self.monitor.is_transform_enabled()
        self.monitor.set_transform_enabled(enabled)
        logger.info("Transformation: %s", "enabled" if enabled else "disabled")

    def _debounced(self, fn):
        def _wrapper():
            now = time.monotonic()
            if now - self._last_hotkey < HOTKEY_DEBOUNCE:
                return
            self._last_hotkey = now
            fn()
        return _wrapper

    def _apply_by_hotkey(self, recipe):
        def _run():
            try:
                result = ClipboardMonitor.apply_recipe_once(recipe, self.accessor)
            except ClipChefError as exc:
                logger.error("Hotkey apply of %s failed: %s", recipe.name, exc)
                return
            logger.info("✨ Applied recipe %s by hotkey (%d chars)", recipe.name, len(result))
        return _run

    def _register_hotkeys(self):
        bindings = []
        if self.hotkey:
            bindings.append((self.hotkey, self.toggle_transform, "toggle"))
        for recipe in self.registry.list():
            if recipe.hotkey:
                bindings.append((recipe.hotkey, self._apply_by_hotkey(recipe), recipe.name))
        if not bindings:
            return
        if not KEYBOARD_AVAILABLE:
            logger.warning("'keyboard' not installed, hotkeys disabled. pip install keyboard")
            return

        for combo, fn, label in bindings:
            try:
                handle = keyboard.add_hotkey(combo, self._debounced(fn))
            except (ImportError, OSError, ValueError) as exc:
                logger.warning("Could not register hotkey %s (%s): %s", combo, label, exc)
                continue
            self._hotkeys.append(handle)
            logger.info("Hotkey registered: %s → %s", combo, label)

    def _unregister_hotkeys(self):
        while self._hotkeys:
            handle = self._hotkeys.pop()
            try:
                keyboard.remove_hotkey(handle)
            except (KeyError, ValueError):
                pass


# ─── Commands ─────────────────────────────────────────────────────────────────

def _registry(paths: AppPaths) -> RecipeRegistry:
    return RecipeRegistry(RecipeStore(paths.recipes))


def _after_mutation(paths: AppPaths):
    if notify_service(paths):
        print("   (running service reloaded)")


def cmd_start(args, paths: AppPaths) -> int:
    overrides = {}
    if args.poll is not None:
        overrides["poll_interval_ms"] = int(args.poll * 1000)
    if args.no_transform:
        overrides["auto_transform"] = False

    service = ClipChefService(
        paths, Settings.load(paths.settings), hotkey=args.hotkey, overrides=overrides
    )
    print("clipchef is running in the background.")
    print("Press Ctrl+C to stop.")
    service.run_forever()
    return 0


def cmd_apply(args, paths: AppPaths) -> int:
    recipe = _registry(paths).find(args.recipe)
    accessor = SystemClipboard()
    original = accessor.get_text()
    if args.dry_run:
        print(recipe.apply(original))
        return 0
    transformed = ClipboardMonitor.apply_recipe_once(recipe, accessor)
    print(f"✨ Applied recipe: {recipe.name}")
    print(f"   {len(original)} chars → {len(transformed)} chars")
    return 0


def cmd_list(args, paths: AppPaths) -> int:
    print("📋 Recipes:\n")
    for recipe in _registry(paths).list():
        active = " [ACTIVE]" if recipe.active else ""
        print(f"  {recipe.icon or '📋'} {recipe.name}{active}")
        if recipe.description:
            print(f"    {recipe.description}")
        print(f"    Steps: {recipe.chain_label()}")
        if args.verbose:
            print(f"    Id: {recipe.id}")
        print()
    return 0


def cmd_show(args, paths: AppPaths) -> int:
    text = SystemClipboard().get_text()
    if not text:
        print("(clipboard is empty)")
    else:
        print(f"📋 Clipboard ({len(text)} chars):\n")
        print(text)
    return 0


def _parse_param(raw: str):
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    try:
        return key.strip(), json.loads(value)
    except ValueError:
        return key.strip(), value


def cmd_transform(args, paths: AppPaths) -> int:
    step = Transformation(resolve_kind(args.kind), dict(args.param or []))
    accessor = SystemClipboard()
    original = accessor.get_text()
    result = step.apply(original)
    if args.dry_run:
        print(result)
        return 0
    accessor.set_text(result)
    print(f"✨ Applied: {step.label}")
    print(f"   {len(original)} chars → {len(result)} chars")
    return 0


def cmd_toggle(args, paths: AppPaths) -> int:
    settings = Settings.load(paths.settings)
    settings.auto_transform = not settings.auto_transform
    settings.save(paths.settings)
    print(f"Transformation: {'enabled' if settings.auto_transform else 'disabled'}")
    _after_mutation(paths)
    return 0


def cmd_activate(args, paths: AppPaths) -> int:
    registry = _registry(paths)
    recipe = registry.set_active(registry.find(args.recipe).id)
    print(f"📝 Active recipe: {recipe.name}")
    _after_mutation(paths)
    return 0


def cmd_deactivate(args, paths: AppPaths) -> int:
    _registry(paths).deactivate_all()
    print("📝 Recipe deactivated")
    _after_mutation(paths)
    return 0


def _parse_step(raw: str) -> Transformation:
    kind, sep, rest = raw.strip().partition(" ")
    return Transformation.from_line(resolve_kind(kind) + sep + rest)


def cmd_create(args, paths: AppPaths) -> int:
    steps = [_parse_step(s) for s in args.step or []]
    recipe = _registry(paths).create(
        args.name, steps, description=args.description, icon=args.icon, hotkey=args.hotkey,
    )
    print(f"Created recipe: {recipe.name} ({recipe.id})")
    print(f"   Steps: {recipe.chain_label()}")
    _after_mutation(paths)
    return 0


def cmd_delete(args, paths: AppPaths) -> int:
    registry = _registry(paths)
    recipe = registry.find(args.recipe)
    registry.delete(recipe.id)
    print(f"Deleted recipe: {recipe.name}")
    _after_mutation(paths)
    return 0


def cmd_kinds(args, paths: AppPaths) -> int:
    category = None
    for spec in sorted(list_rules(), key=lambda s: s.category):
        if spec.category != category:
            category = spec.category
            print(f"\n{category}:")
        params = ", ".join(f"{k}={v!r}" for k, v in spec.defaults.items())
        suffix = f"  ({params})" if params else ""
        print(f"  {spec.kind:<26} {spec.description}{suffix}")
    return 0


def cmd_history(args, paths: AppPaths) -> int:
    settings = Settings.load(paths.settings)
    history = HistoryLog(str(paths.history), settings.max_history_size)
    try:
        if args.clear:
            history.clear()
            print("History cleared")
            return 0
        if args.sessions:
            # opening the log starts a session of its own; leave it out
            sessions = [s for s in history.get_sessions(limit=args.limit)
                        if s["id"] != history.session_id]
            print(f"🗂  Sessions in {history.db_path}:\n")
            if not sessions:
                print("No sessions yet.")
            for session in sessions:
                recipe = session["recipe_name"] or "(no recipe)"
                print(f"  {session['id']}  {session['started_at'][:19]}  "
                      f"{session['transforms']:>4} transformed  {recipe}")
            return 0
        entries = [
            e for e in history.get_entries(session_id=args.session, limit=args.limit)
            if e["tag"] != "changed"
        ]
        if not entries:
            print("No history entries yet.")
        for entry in entries:
            print(f"[{entry['timestamp'][:19]}] {entry['session_id']}  "
                  f"{entry['tag']}  {entry['recipe_name'] or ''}")
            print(f"    {_preview(entry['original'])}")
            if entry["result"] is not None:
                print(f"  → {_preview(entry['result'])}")
    finally:
        history.stop()
    return 0


# ─── Entry point ──────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipchef",
        description="Clipboard transformer: clean, format and rewrite clipboard text with recipes."
    )
    parser.add_argument("--config-dir", default=None,
                        help="Keep config, recipes and history in this folder "
                             "instead of the per-user directories.")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("start", help="Monitor the clipboard and apply the active recipe.")
    p.add_argument("--poll", "-p", type=float, default=None,
                   help="Poll interval in seconds (default: from config.ini, 0.25).")
    p.add_argument("--no-transform", action="store_true",
                   help="Start with automatic transformation disabled.")
    p.add_argument("--hotkey", "-k", default=None,
                   help="Hotkey that toggles transformation (e.g. ctrl+shift+t). "
                        "Requires: pip install keyboard")
    p.set_defaults(func=cmd_start)

    p = sub.add_parser("apply", help="Apply a recipe to the clipboard once.")
    p.add_argument("recipe", help="Recipe name or id.")
    p.add_argument("--dry-run", action="store_true",
                   help="Print the result instead of writing it to the clipboard.")
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser("list", help="List recipes.")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="Print the clipboard text.")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("transform", help="Apply a single transformation to the clipboard.")
    p.add_argument("kind", help="Transformation kind or alias (see `clipchef kinds`).")
    p.add_argument("--param", action="append", type=_parse_param, metavar="KEY=VALUE",
                   help="Transformation parameter; VALUE is read as JSON when it parses.")
    p.add_argument("--dry-run", action="store_true",
                   help="Print the result instead of writing it to the clipboard.")
    p.set_defaults(func=cmd_transform)

    p = sub.add_parser("toggle", help="Turn automatic transformation on or off.")
    p.set_defaults(func=cmd_toggle)

    p = sub.add_parser("activate", help="Make a recipe the active one.")
    p.add_argument("recipe", help="Recipe name or id.")
    p.set_defaults(func=cmd_activate)

    p = sub.add_parser("deactivate", help="Deactivate all recipes.")
    p.set_defaults(func=cmd_deactivate)

    p = sub.add_parser("create", help="Create a recipe.")
    p.add_argument("name")
    p.add_argument("--step", "-s", action="append",
                   help='Step as KIND or KIND {"param": value}; repeat in order.')
    p.add_argument("--description", "-d", default=None)
    p.add_argument("--icon", default=None)
    p.add_argument("--hotkey", default=None,
                   help="Hotkey that applies this recipe once while the service runs.")
    p.set_defaults(func=cmd_create)

    p = sub.add_parser("delete", help="Delete a recipe.")
    p.add_argument("recipe", help="Recipe name or id.")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("kinds", help="List available transformations.")
    p.set_defaults(func=cmd_kinds)

    p = sub.add_parser("history", help="Show recent clipboard history.")
    p.add_argument("--limit", "-n", type=int, default=20)
    p.add_argument("--clear", action="store_true", help="Delete all history entries.")
    p.add_argument("--sessions", action="store_true",
                   help="List monitor sessions instead of entries.")
    p.add_argument("--session", default=None, metavar="ID",
                   help="Only show entries from this session.")
    p.set_defaults(func=cmd_history)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    paths = AppPaths(args.config_dir)
    try:
        return args.func(args, paths)
    except (ClipChefError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
