"""
clip_monitor.py - Watches the clipboard and applies the active recipe.

One background thread polls the clipboard every ``poll_interval`` seconds
and compares the text with the last value it saw. On a change it emits
``ClipboardChanged``; if transformation is enabled and a recipe is active it
applies the recipe, writes the result back and emits
``ClipboardTransformed``.

After a write-back the monitor remembers the *written* text, not the text it
observed, so its own write is not seen as a new change on the next tick and
the recipe is not re-applied to its own output.

Events go to a bounded queue. If the queue is full or the consumer has
closed the stream, the loop stops instead of blocking.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Optional

from clip_access import ClipboardAccessor, SystemClipboard
from clip_errors import ClipboardError
from recipe_book import ActiveRecipe, Recipe

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.25
EVENT_QUEUE_SIZE      = 100


# ─── Events ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClipboardEvent:
    timestamp: datetime = field(default_factory=datetime.now, compare=False, kw_only=True)

    tag = "info"


@dataclass(frozen=True)
class ClipboardChanged(ClipboardEvent):
    text: str

    tag = "changed"


@dataclass(frozen=True)
class ClipboardTransformed(ClipboardEvent):
    original:    str
    result:      str
    recipe_id:   Optional[str] = None
    recipe_name: Optional[str] = None

    tag = "transformed"


@dataclass(frozen=True)
class ClipboardFailed(ClipboardEvent):
    message: str

    tag = "error"


class EventStream:
    """
    Bounded, single-consumer stream of monitor events.

    Iterating blocks until the next event and ends once the monitor has
    stopped and every queued event has been delivered.
    """

    def __init__(self, maxsize: int = EVENT_QUEUE_SIZE):
        self._queue    = queue.Queue(maxsize=maxsize)
        self._closed   = threading.Event()
        self._finished = threading.Event()

    # ── Producer side ─────────────────────────────────────────────────────────

    def put(self, event: ClipboardEvent) -> bool:
        """Queue an event; False if the consumer is gone or the queue is full."""
        if self._closed.is_set():
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            return False
        return True

    def finish(self):
        self._finished.set()

    # ── Consumer side ─────────────────────────────────────────────────────────

    def get(self, timeout: Optional[float] = None) -> Optional[ClipboardEvent]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        """Consumer is done; the monitor stops at its next event."""
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def __iter__(self) -> Iterator[ClipboardEvent]:
        while not self._closed.is_set():
            try:
                yield self._queue.get(timeout=0.1)
            except queue.Empty:
                if self._finished.is_set():
                    break
        while True:
            try:
                yield self._queue.get_nowait()
            except queue.Empty:
                return


# ─── Monitor ──────────────────────────────────────────────────────────────────

class ClipboardMonitor:
    """
    Handle for the background poll loop. Whoever calls ``start`` owns the
    loop and stops it with ``stop``.
    """

    def __init__(self, accessor: Optional[ClipboardAccessor] = None,
                 transform_enabled: bool = True):
        self.accessor       = accessor or SystemClipboard()
        self.poll_interval  = DEFAULT_POLL_INTERVAL
        self.active_recipe: Optional[ActiveRecipe] = None

        self._lock              = threading.RLock()
        self._stop_event        = threading.Event()
        self._transform_enabled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._events: Optional[EventStream] = None
        self._snapshot          = ""

        if transform_enabled:
            self._transform_enabled.set()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self, active_recipe: Optional[ActiveRecipe] = None,
              poll_interval: float = DEFAULT_POLL_INTERVAL) -> EventStream:
        """
        Start polling in a daemon thread and return the event stream.

        Raises RuntimeError while a previous loop thread is still alive, even
        if it has been asked to stop: join() it first.
        """
        with self._lock:
            if self.is_running():
                raise RuntimeError("ClipboardMonitor is already running")
            if self._thread is not None and self._thread.is_alive():
                raise RuntimeError("Previous poll loop has not exited yet; join() it first")

            self.active_recipe = active_recipe
            self.poll_interval = poll_interval
            self._events = EventStream()
            # fresh per run; the old thread keeps its own, already-set event
            self._stop_event = threading.Event()
            self._reseed()

            logger.info("Clipboard monitor starting (interval=%ss)", poll_interval)
            self._thread = threading.Thread(
                target=self._poll_loop, args=(self._stop_event, self._events),
                name="clipboard-monitor", daemon=True,
            )
            self._thread.start()
            return self._events

    def stop(self):
        """Ask the loop to stop. Safe to call more than once."""
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None):
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def set_transform_enabled(self, enabled: bool):
        if enabled:
            self._transform_enabled.set()
        else:
            self._transform_enabled.clear()

    def is_transform_enabled(self) -> bool:
        return self._transform_enabled.is_set()

    @property
    def snapshot(self) -> str:
        return self._snapshot

    # ── Polling ───────────────────────────────────────────────────────────────

    def _reseed(self):
        try:
            self._snapshot = self.accessor.get_text()
        except ClipboardError as exc:
            logger.debug("Initial clipboard read failed: %s", exc)
            self._snapshot = ""

    def _poll_loop(self, stop_event: threading.Event, events: EventStream):
        try:
            while not stop_event.wait(self.poll_interval):
                if not self.poll_once():
                    break
        finally:
            stop_event.set()
            events.finish()
            logger.info("Clipboard monitor stopped")

    def _emit(self, event: ClipboardEvent) -> bool:
        if self._events.put(event):
            return True
        if self._events.closed:
            logger.info("Event consumer closed, stopping monitor")
        else:
            logger.warning("Event queue full, stopping monitor")
        return False

    def poll_once(self) -> bool:
        """
        Run one tick. Returns False when the loop must stop because events
        can no longer be delivered.
        """
        try:
            current = self.accessor.get_text()
        except ClipboardError as exc:
            logger.debug("Failed to get clipboard: %s", exc)
            return True

        if current == self._snapshot:
            return True

        logger.info("Clipboard changed: %d chars", len(current))
        if not self._emit(ClipboardChanged(current)):
            return False

        recipe = None
        if self.is_transform_enabled() and self.active_recipe is not None:
            recipe = self.active_recipe.get()

        if recipe is not None:
            try:
                transformed = recipe.apply(current)
            except Exception as exc:
                logger.exception("Recipe %s failed", recipe.name)
                self._snapshot = current
                return self._emit(ClipboardFailed(f"Recipe {recipe.name} failed: {exc}"))
            if transformed != current:
                try:
                    self.accessor.set_text_nonblocking(transformed)
                except ClipboardError as exc:
                    logger.error("Failed to set transformed clipboard: %s", exc)
                    self._snapshot = current
                    return self._emit(ClipboardFailed(str(exc)))

                logger.info(
                    "Transformed clipboard with %s: %d -> %d chars",
                    recipe.name, len(current), len(transformed),
                )
                self._snapshot = transformed
                return self._emit(ClipboardTransformed(
                    current, transformed, recipe_id=recipe.id, recipe_name=recipe.name,
                ))

        self._snapshot = current
        return True

    # ── One-shot ──────────────────────────────────────────────────────────────

    @staticmethod
    def apply_recipe_once(recipe: Recipe, accessor: Optional[ClipboardAccessor] = None) -> str:
        """
        Read the clipboard, apply *recipe*, write the result (blocking) and
        return it. Not coordinated with a running monitor.
        """
        accessor = accessor or SystemClipboard()
        original = accessor.get_text()
        transformed = recipe.apply(original)
        accessor.set_text(transformed)
        return transformed
