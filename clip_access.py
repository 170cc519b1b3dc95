"""
clip_access.py - Plain-text access to the system clipboard.

Two write modes:
  set_text              blocking; on X11 this can wait until a clipboard
                        manager takes ownership of the data
  set_text_nonblocking  hands the text to a short-lived helper process
                        (wl-copy, xclip or xsel) that keeps owning the
                        selection, and returns immediately; falls back to
                        set_text where no helper is available

The monitor loop always uses the non-blocking write; one-shot commands use
the blocking one.
"""

import logging
import os
import platform
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

import pyperclip

from clip_errors import ClipboardError

logger = logging.getLogger(__name__)


class ClipboardAccessor(ABC):

    @abstractmethod
    def get_text(self) -> str:
        """Return the clipboard text. Raises ClipboardError."""

    @abstractmethod
    def set_text(self, text: str):
        """Replace the clipboard text, blocking if needed. Raises ClipboardError."""

    def set_text_nonblocking(self, text: str):
        self.set_text(text)


class SystemClipboard(ClipboardAccessor):
    """The OS clipboard, via pyperclip."""

    def get_text(self) -> str:
        try:
            return pyperclip.paste() or ""
        except pyperclip.PyperclipException as exc:
            raise ClipboardError(f"Failed to read clipboard: {exc}") from exc

    def set_text(self, text: str):
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as exc:
            raise ClipboardError(f"Failed to set clipboard: {exc}") from exc

    def set_text_nonblocking(self, text: str):
        command = self._handoff_command()
        if command is None:
            self.set_text(text)
            return

        try:
            proc = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            proc.stdin.write(text.encode("utf-8"))
            proc.stdin.close()
        except OSError as exc:
            raise ClipboardError(f"Failed to hand off clipboard to {command[0]}: {exc}") from exc
        logger.debug("Clipboard handed off to %s (pid %s)", command[0], proc.pid)

    @staticmethod
    def _handoff_command() -> Optional[List[str]]:
        if platform.system() != "Linux":
            return None
        if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-copy"):
            return ["wl-copy"]
        if shutil.which("xclip"):
            return ["xclip", "-selection", "clipboard"]
        if shutil.which("xsel"):
            return ["xsel", "--clipboard", "--input"]
        return None

    @staticmethod
    def is_available() -> bool:
        try:
            pyperclip.paste()
        except pyperclip.PyperclipException:
            return False
        return True


class MemoryClipboard(ClipboardAccessor):
    """
    In-process clipboard. Used by the tests, and handy for driving the
    monitor without touching the real clipboard. ``fail_reads`` /
    ``fail_writes`` make the next calls raise ClipboardError.
    """

    def __init__(self, text: str = ""):
        self._lock       = threading.Lock()
        self._text       = text
        self.writes: List[str] = []
        self.fail_reads  = 0
        self.fail_writes = 0

    def get_text(self) -> str:
        with self._lock:
            if self.fail_reads:
                self.fail_reads -= 1
                raise ClipboardError("simulated read failure")
            return self._text

    def set_text(self, text: str):
        with self._lock:
            if self.fail_writes:
                self.fail_writes -= 1
                raise ClipboardError("simulated write failure")
            self._text = text
            self.writes.append(text)

    def copy(self, text: str):
        """Simulate another application copying *text*."""
        with self._lock:
            self._text = text
