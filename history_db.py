#!/usr/bin/env python3
"""
history_db.py - SQLite clipboard history for clipchef.

Creates history.db in the user data directory.
Thread-safe via a dedicated writer thread and queue.

Schema:
    sessions(id, started_at, recipe_name)
    history(id, session_id, timestamp, tag, original, result, recipe_id, recipe_name)

Keeps at most ``max_entries`` rows and purges entries older than
RETAIN_DAYS (default 30).
"""

import logging
import queue
import sqlite3
import threading
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from clip_monitor import ClipboardChanged, ClipboardEvent, ClipboardFailed, ClipboardTransformed
from clip_settings import data_dir

logger = logging.getLogger(__name__)

RETAIN_DAYS = 30
DB_NAME     = "history.db"


class HistoryLog:
    def __init__(self, db_path: Optional[str] = None, max_entries: int = 100,
                 recipe_name: str = ""):
        self._db_path     = str(db_path or Path(data_dir()) / DB_NAME)
        self._max_entries = max_entries
        self._queue       = queue.Queue()
        self._session     = str(uuid.uuid4())[:8]
        self._stop_evt    = threading.Event()

        self._init_db()
        self._start_session(recipe_name)
        self._purge_old()

        self._writer = threading.Thread(target=self._writer_loop, daemon=True)
        self._writer.start()

    # ── Setup ─────────────────────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=10)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id          TEXT PRIMARY KEY,
                    started_at  TEXT NOT NULL,
                    recipe_name TEXT
                );
                CREATE TABLE IF NOT EXISTS history (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id  TEXT NOT NULL,
                    timestamp   TEXT NOT NULL,
                    tag         TEXT NOT NULL,
                    original    TEXT NOT NULL,
                    result      TEXT,
                    recipe_id   TEXT,
                    recipe_name TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_history_ts
                    ON history(timestamp);
                CREATE INDEX IF NOT EXISTS idx_history_session
                    ON history(session_id);
                CREATE INDEX IF NOT EXISTS idx_history_tag
                    ON history(tag);
            """)

    def _start_session(self, recipe_name: str = ""):
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO sessions(id, started_at, recipe_name) VALUES(?,?,?)",
                (self._session, datetime.now().isoformat(), recipe_name)
            )

    def _purge_old(self):
        cutoff = (datetime.now() - timedelta(days=RETAIN_DAYS)).isoformat()
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM history WHERE timestamp < ?", (cutoff,)
            )
            conn.execute(
                "DELETE FROM sessions WHERE started_at < ? "
                "AND id NOT IN (SELECT DISTINCT session_id FROM history)",
                (cutoff,)
            )
            self._trim(conn)

    def _trim(self, conn: sqlite3.Connection):
        conn.execute(
            "DELETE FROM history WHERE id NOT IN "
            "(SELECT id FROM history ORDER BY id DESC LIMIT ?)",
            (self._max_entries,)
        )

    # ── Writer thread ─────────────────────────────────────────────────────────

    def _writer_loop(self):
        conn = self._connect()
        while not self._stop_evt.is_set():
            try:
                item = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue
            try:
                if item is None:
                    break
                conn.execute(
                    "INSERT INTO history"
                    "(session_id, timestamp, tag, original, result, recipe_id, recipe_name)"
                    " VALUES(?,?,?,?,?,?,?)",
                    item
                )
                self._trim(conn)
                conn.commit()
            except sqlite3.Error as exc:
                logger.warning("History write failed: %s", exc)
            finally:
                self._queue.task_done()
        conn.close()

    # ── Public API ────────────────────────────────────────────────────────────

    def record(self, tag: str, original: str, result: Optional[str] = None,
               recipe_id: Optional[str] = None, recipe_name: Optional[str] = None,
               timestamp: Optional[datetime] = None):
        self._queue.put((
            self._session,
            (timestamp or datetime.now()).isoformat(),
            tag,
            original,
            result,
            recipe_id,
            recipe_name,
        ))

    def record_event(self, event: ClipboardEvent):
        """Store one monitor event."""
        if isinstance(event, ClipboardTransformed):
            self.record(event.tag, event.original, event.result,
                        event.recipe_id, event.recipe_name, event.timestamp)
        elif isinstance(event, ClipboardChanged):
            self.record(event.tag, event.text, timestamp=event.timestamp)
        elif isinstance(event, ClipboardFailed):
            self.record(event.tag, event.message, timestamp=event.timestamp)

    def flush(self):
        """Block until every queued entry has been written."""
        self._queue.join()

    def get_entries(self, session_id: str = None, tag: str = None,
                    limit: int = 50) -> list:
        """
        Fetch history entries, oldest first. Returns list of dicts:
            {id, session_id, timestamp, tag, original, result, recipe_id, recipe_name}
        """
        clauses = []
        params  = []
        if session_id:
            clauses.append("session_id = ?")
            params.append(session_id)
        if tag:
            clauses.append("tag = ?")
            params.append(tag)
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        sql = (
            f"SELECT id, session_id, timestamp, tag, original, result, recipe_id, recipe_name "
            f"FROM history {where} "
            f"ORDER BY id DESC LIMIT ?"
        )
        params.append(limit)
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in reversed(rows)]

    def get_sessions(self, limit: int = 50) -> list:
        """
        Newest first. Returns list of dicts:
            {id, started_at, recipe_name, entries, transforms}
        where the counts cover the entries still kept for that session.
        """
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT s.id, s.started_at, s.recipe_name, "
                "COUNT(h.id) AS entries, "
                "COALESCE(SUM(h.tag = 'transformed'), 0) AS transforms "
                "FROM sessions s LEFT JOIN history h ON h.session_id = s.id "
                "GROUP BY s.id ORDER BY s.started_at DESC LIMIT ?",
                (limit,)
            ).fetchall()
        return [dict(r) for r in rows]

    def clear(self):
        self.flush()
        with self._connect() as conn:
            conn.execute("DELETE FROM history")

    @property
    def session_id(self) -> str:
        return self._session

    @property
    def db_path(self) -> str:
        return self._db_path

    def stop(self):
        # the sentinel goes behind any pending entries, so they are written first
        self._queue.put(None)
        self._writer.join(timeout=3)
        self._stop_evt.set()
