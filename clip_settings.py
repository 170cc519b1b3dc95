"""
clip_settings.py - Runtime settings, stored in config.ini.

config.ini format:
    [settings]
    poll_interval_ms = 250
    auto_transform = true
    show_notifications = true
    toggle_hotkey = ctrl+shift+t
    keep_history = true
    max_history_size = 100

The file lives in the per-user config directory and is created with the
defaults on first load. A value that does not parse falls back to its
default with a warning; the rest of the file still loads.
"""

import configparser
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from platformdirs import user_config_dir, user_data_dir

logger = logging.getLogger(__name__)

APP_NAME         = "clipchef"
CONFIG_NAME      = "config.ini"
SECTION          = "settings"
MIN_POLL_MS      = 10


def config_dir() -> Path:
    path = Path(user_config_dir(APP_NAME))
    path.mkdir(parents=True, exist_ok=True)
    return path


def data_dir() -> Path:
    path = Path(user_data_dir(APP_NAME))
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass
class Settings:
    poll_interval_ms:   int = 250
    auto_transform:     bool = True
    show_notifications: bool = True
    toggle_hotkey:      Optional[str] = "ctrl+shift+t"
    keep_history:       bool = True
    max_history_size:   int = 100

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return max(self.poll_interval_ms, MIN_POLL_MS) / 1000.0

    # ── INI round trip ────────────────────────────────────────────────────────

    @classmethod
    def from_parser(cls, cfg: configparser.ConfigParser) -> "Settings":
        settings = cls()
        if not cfg.has_section(SECTION):
            return settings
        section = cfg[SECTION]
        for f in fields(cls):
            if f.name not in section:
                continue
            try:
                if f.type is bool:
                    value = section.getboolean(f.name)
                elif f.type is int:
                    value = section.getint(f.name)
                else:
                    value = section.get(f.name).strip() or None
            except ValueError:
                logger.warning(
                    "Ignoring bad value for %s in %s: %r",
                    f.name, CONFIG_NAME, section.get(f.name),
                )
                continue
            setattr(settings, f.name, value)
        if settings.poll_interval_ms < MIN_POLL_MS:
            logger.warning("poll_interval_ms below %d ms, using %d", MIN_POLL_MS, MIN_POLL_MS)
            settings.poll_interval_ms = MIN_POLL_MS
        return settings

    def to_parser(self) -> configparser.ConfigParser:
        cfg = configparser.ConfigParser(interpolation=None)
        cfg[SECTION] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool):
                value = "true" if value else "false"
            cfg[SECTION][f.name] = "" if value is None else str(value)
        return cfg

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Settings":
        """Load settings from *path* (default: the user config.ini), creating it if missing."""
        path = Path(path) if path else config_dir() / CONFIG_NAME
        if not path.exists():
            settings = cls()
            try:
                settings.save(path)
            except OSError as exc:
                logger.warning("Could not write default %s: %s", path, exc)
            return settings

        cfg = configparser.ConfigParser(interpolation=None)
        try:
            cfg.read(path, encoding="utf-8")
        except configparser.Error as exc:
            logger.warning("Could not parse %s, using defaults: %s", path, exc)
            return cls()
        return cls.from_parser(cfg)

    def save(self, path: Optional[Path] = None):
        path = Path(path) if path else config_dir() / CONFIG_NAME
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            self.to_parser().write(fh)
