from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id TEXT,
    lesson TEXT,
    mode TEXT,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    questions_total INTEGER DEFAULT 0,
    questions_correct INTEGER DEFAULT 0
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """sqlite store: a key-value table plus quiz history."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Key-value ─────────────────────────────────────────────────────────

    def get(self, key: str) -> str | None:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        self.conn.execute(
            "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
            (key, value, _now()),
        )
        self.conn.commit()

    # ── Sessions ──────────────────────────────────────────────────────────

    def start_session(self, book_id: str, lesson: str, mode: str) -> int:
        cur = self.conn.execute(
            "INSERT INTO sessions (book_id, lesson, mode, started_at) VALUES (?, ?, ?, ?)",
            (book_id, lesson, mode, _now()),
        )
        self.conn.commit()
        return cur.lastrowid

    def end_session(self, session_id: int, total: int, correct: int) -> None:
        self.conn.execute(
            "UPDATE sessions SET ended_at = ?, questions_total = ?, questions_correct = ? WHERE id = ?",
            (_now(), total, correct, session_id),
        )
        self.conn.commit()

    def get_session_history(self, limit: int = 10) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM sessions WHERE ended_at IS NOT NULL ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]
