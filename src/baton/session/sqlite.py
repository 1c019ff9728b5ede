"""SQLite session backend."""

from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path

from baton.items import RunItem, dump_item, load_item
from baton.session.base import Session


class SQLiteSession(Session):
    """SQLite-backed session.

    Several sessions may share one database file; rows are keyed by session id
    and ordered by a per-session ``sequence_num``. A batch is appended inside a
    single transaction.
    """

    offload = True

    def __init__(
        self,
        session_id: str,
        db_path: str | Path = ":memory:",
        *,
        sessions_table: str = "agent_sessions",
        messages_table: str = "agent_messages",
    ) -> None:
        super().__init__(session_id)
        self.db_path = str(db_path)
        self.sessions_table = sessions_table
        self.messages_table = messages_table
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            # Calls arrive from worker threads; the session lock serializes them.
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._init_db(conn)
            self._conn = conn
        return self._conn

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.sessions_table} (
                session_id TEXT PRIMARY KEY,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.messages_table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                sequence_num INTEGER NOT NULL,
                item_type TEXT NOT NULL,
                payload TEXT NOT NULL,
                created_at REAL NOT NULL
            )
        """)
        conn.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{self.messages_table}_session
            ON {self.messages_table} (session_id, sequence_num)
        """)
        conn.commit()

    def _read(self, limit: int | None) -> list[RunItem]:
        if limit is None:
            rows = self.conn.execute(
                f"SELECT payload FROM {self.messages_table} WHERE session_id = ? ORDER BY sequence_num ASC",
                (self.session_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                f"""SELECT payload FROM {self.messages_table} WHERE session_id = ?
                ORDER BY sequence_num DESC LIMIT ?""",
                (self.session_id, limit),
            ).fetchall()
            rows = list(reversed(rows))
        return [load_item(json.loads(row["payload"])) for row in rows]

    def _append(self, items: list[RunItem]) -> None:
        now = time.time()
        conn = self.conn
        with conn:
            conn.execute(
                f"""INSERT INTO {self.sessions_table} (session_id, created_at, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET updated_at = excluded.updated_at""",
                (self.session_id, now, now),
            )
            row = conn.execute(
                f"SELECT COALESCE(MAX(sequence_num), 0) AS last FROM {self.messages_table} WHERE session_id = ?",
                (self.session_id,),
            ).fetchone()
            start = int(row["last"]) + 1
            conn.executemany(
                f"""INSERT INTO {self.messages_table}
                (session_id, sequence_num, item_type, payload, created_at)
                VALUES (?, ?, ?, ?, ?)""",
                [
                    (
                        self.session_id,
                        start + offset,
                        item.type,
                        json.dumps(dump_item(item), ensure_ascii=False),
                        now,
                    )
                    for offset, item in enumerate(items)
                ],
            )

    def _pop_last(self) -> RunItem | None:
        conn = self.conn
        with conn:
            row = conn.execute(
                f"""SELECT id, payload FROM {self.messages_table} WHERE session_id = ?
                ORDER BY sequence_num DESC LIMIT 1""",
                (self.session_id,),
            ).fetchone()
            if row is None:
                return None
            conn.execute(f"DELETE FROM {self.messages_table} WHERE id = ?", (row["id"],))
        return load_item(json.loads(row["payload"]))

    def _clear(self) -> None:
        conn = self.conn
        with conn:
            conn.execute(f"DELETE FROM {self.messages_table} WHERE session_id = ?", (self.session_id,))
            conn.execute(f"DELETE FROM {self.sessions_table} WHERE session_id = ?", (self.session_id,))

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
