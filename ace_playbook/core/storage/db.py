import os
import sqlite3
import threading
from typing import Any

SQLITE_PREFIX = "sqlite:///"


def resolve_sqlite_path(db_url: str) -> str:
    """Turn a sqlite:/// URL into a filesystem path.

    ``sqlite:///ace.db`` is relative to the working directory,
    ``sqlite:////abs/ace.db`` is absolute, ``sqlite:///:memory:`` stays in memory.
    """
    if not db_url.startswith(SQLITE_PREFIX):
        raise ValueError(f"Unsupported database URL (only sqlite is supported): {db_url}")
    return db_url[len(SQLITE_PREFIX):] or ":memory:"


class DatabaseConnection:
    """Thread-safe sqlite connection.

    Calls arrive from asyncio.to_thread workers, so a single connection is
    shared across threads behind a lock.
    """

    def __init__(self, db_url: str | None = None):
        resolved_url = db_url or os.getenv("ACE_DB_URL") or "sqlite:///ace_playbook.db"
        self.db_url: str = resolved_url
        self.db_path = resolve_sqlite_path(resolved_url)
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def connect(self):
        if self.db_path != ":memory:":
            parent = os.path.dirname(self.db_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)

    def close(self):
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None

    def execute(self, query: str, params: tuple = ()) -> Any:
        with self._lock:
            if not self.conn:
                self.connect()
            assert self.conn is not None
            cursor = self.conn.cursor()
            cursor.execute(query, params)
            self.conn.commit()
            return cursor

    def fetchall(self, query: str, params: tuple = ()) -> list[Any]:
        with self._lock:
            if not self.conn:
                self.connect()
            assert self.conn is not None
            cursor = self.conn.cursor()
            cursor.execute(query, params)
            return list(cursor.fetchall())


def init_schema(db_conn: DatabaseConnection):
    db_conn.execute("""
        CREATE TABLE IF NOT EXISTS kv (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
