"""MemoryStore — remembered key/value facts via libsql.

Facts are an unordered set; uniqueness by key is not enforced. They are
injected into every generation prompt and wiped together with the
conversation on reset.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from krishi.db import AsyncConnection, connect
from krishi.errors import PersistenceError
from krishi.memory.models import MemoryFact

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

logger = logging.getLogger(__name__)

MEMORIES_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS memories (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        key        TEXT NOT NULL,
        value      TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
)


class MemoryStore:
    """Singleton fact store.

    The server uses the shared instance from ``MemoryStore.get()``.  Pass an
    explicit *db_path* for test isolation.
    """

    _instance: MemoryStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> MemoryStore:
        """Return the shared MemoryStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[AsyncConnection]:
        schema = () if self._initialised else MEMORIES_SCHEMA
        async with connect(self._db_path, schema) as db:
            self._initialised = True
            yield db

    # -- Write ---------------------------------------------------------------

    async def append(self, fact: MemoryFact) -> MemoryFact:
        """Store a fact. Returns the same fact object."""
        try:
            async with self._connect() as db:
                await db.execute(
                    "INSERT INTO memories (key, value, created_at) VALUES (?, ?, ?)",
                    (fact.key, fact.value, datetime.now(UTC).isoformat()),
                )
                await db.commit()
        except Exception as exc:
            raise PersistenceError("Could not save the fact") from exc
        logger.info("Remembered fact: %s", fact.key)
        return fact

    # -- Read ----------------------------------------------------------------

    async def all(self) -> list[MemoryFact]:
        """Retrieve every stored fact."""
        try:
            async with self._connect() as db:
                cursor = await db.execute("SELECT key, value FROM memories ORDER BY id")
                rows = await cursor.fetchall()
        except Exception as exc:
            raise PersistenceError("Could not read remembered facts") from exc
        return [MemoryFact(key=row[0], value=row[1]) for row in rows]

    # -- Delete --------------------------------------------------------------

    async def clear(self) -> int:
        """Delete every fact. Returns the number of rows removed."""
        try:
            async with self._connect() as db:
                cursor = await db.execute("DELETE FROM memories")
                count = cursor.rowcount
                await db.commit()
        except Exception as exc:
            raise PersistenceError("Could not clear remembered facts") from exc
        logger.info("Cleared %d fact(s)", count)
        return count
