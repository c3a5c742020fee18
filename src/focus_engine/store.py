"""SQLite-backed collaborators: session log, settings store and task list.

Each call opens its own connection so the store can be shared between the
API process and the CLI.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

import aiosqlite

from .services import FocusSessionLog, StaticTaskProvider, Task

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now().isoformat()


class SqliteStore:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    # ── Schema ─────────────────────────────────────────────────

    async def init_tables(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("""
                CREATE TABLE IF NOT EXISTS focus_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    focus_level INTEGER NOT NULL,
                    duration_minutes INTEGER NOT NULL,
                    task_id TEXT,
                    task_title TEXT,
                    time_of_day TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_focus_sessions_user
                ON focus_sessions(user_id, timestamp DESC)
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS user_settings (
                    user_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, key)
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    estimated_minutes INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)
            await db.commit()

    # ── Session log ────────────────────────────────────────────

    async def append(self, record: FocusSessionLog) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                INSERT INTO focus_sessions (
                    user_id, timestamp, focus_level, duration_minutes,
                    task_id, task_title, time_of_day, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.user_id,
                record.timestamp.isoformat(),
                record.focus_level,
                record.duration_minutes,
                record.task_id,
                record.task_title,
                record.time_of_day,
                _now_iso(),
            ))
            await db.commit()

    async def recent_sessions(self, user_id: str, limit: int = 20) -> list[FocusSessionLog]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("""
                SELECT * FROM focus_sessions
                WHERE user_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
            """, (user_id, limit))
            rows = await cursor.fetchall()

        return [
            FocusSessionLog(
                user_id=row["user_id"],
                timestamp=datetime.fromisoformat(row["timestamp"]),
                focus_level=row["focus_level"],
                duration_minutes=row["duration_minutes"],
                task_id=row["task_id"],
                task_title=row["task_title"],
                time_of_day=row["time_of_day"],
            )
            for row in rows
        ]

    # ── Settings ───────────────────────────────────────────────

    async def merge_partial(self, user_id: str, patch: Mapping[str, Any]) -> None:
        """Upsert each key; last write wins per key."""
        if not patch:
            return
        now = _now_iso()
        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany("""
                INSERT INTO user_settings (user_id, key, value, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, [(user_id, key, json.dumps(value), now) for key, value in patch.items()])
            await db.commit()

    async def load_settings(self, user_id: str) -> dict[str, Any]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT key, value FROM user_settings WHERE user_id = ?", (user_id,)
            )
            rows = await cursor.fetchall()

        settings: dict[str, Any] = {}
        for key, value in rows:
            try:
                settings[key] = json.loads(value)
            except json.JSONDecodeError:
                logger.warning(f"Ignoring unreadable setting {key!r} for {user_id}")
        return settings

    # ── Tasks ──────────────────────────────────────────────────

    async def add_task(self, title: str, estimated_minutes: int = 0, task_id: Optional[str] = None) -> Task:
        task = Task(id=task_id or str(uuid.uuid4()), title=title, estimated_minutes=max(0, estimated_minutes))
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                INSERT INTO tasks (id, title, estimated_minutes, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    estimated_minutes = excluded.estimated_minutes
            """, (task.id, task.title, task.estimated_minutes, _now_iso()))
            await db.commit()
        return task

    async def load_tasks(self) -> StaticTaskProvider:
        """Snapshot of the task list for the engine's synchronous lookups."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM tasks ORDER BY created_at")
            rows = await cursor.fetchall()
        return StaticTaskProvider(
            Task(id=row["id"], title=row["title"], estimated_minutes=row["estimated_minutes"] or 0)
            for row in rows
        )
