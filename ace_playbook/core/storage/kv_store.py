"""
Durable key-value backends for playbook persistence.

The playbook layer only needs ``get(key)`` and ``set(key, value)``; values are
JSON-compatible documents. Both backends are async so the event loop never
blocks on disk I/O.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any

from ace_playbook.utils import now_iso

from .db import DatabaseConnection, init_schema


class KeyValueBackend(ABC):
    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored document for key, or None when absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible document under key."""
        pass

    def close(self) -> None:
        pass


class InMemoryKeyValueBackend(KeyValueBackend):
    """Keeps serialized copies, so callers never share mutable state with the store."""

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def keys(self) -> list[str]:
        return list(self._data)


class SQLiteKeyValueBackend(KeyValueBackend):
    def __init__(self, db_url: str | None = None):
        self.db = DatabaseConnection(db_url)
        self.db.connect()
        init_schema(self.db)

    async def get(self, key: str) -> Any | None:
        rows = await asyncio.to_thread(
            self.db.fetchall, "SELECT value FROM kv WHERE key = ?", (key,)
        )
        if not rows:
            return None
        return json.loads(rows[0][0])

    async def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value, ensure_ascii=False)
        await asyncio.to_thread(
            self.db.execute,
            "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
            (key, raw, now_iso()),
        )

    def close(self) -> None:
        self.db.close()
