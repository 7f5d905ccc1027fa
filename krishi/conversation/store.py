"""ConversationStore — append-only message log via libsql."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING

from krishi.conversation.models import Message, Role
from krishi.db import AsyncConnection, connect
from krishi.errors import PersistenceError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

logger = logging.getLogger(__name__)

MESSAGES_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS messages (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        role       TEXT NOT NULL,
        text       TEXT NOT NULL,
        language   TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_created_at ON messages (created_at)",
)


def _from_row(row: tuple) -> Message:
    return Message(
        role=Role(row[0]),
        text=row[1],
        language=row[2],
        created_at=datetime.fromisoformat(row[3]),
    )


class ConversationStore:
    """Persists the single conversation thread in SQLite / Turso.

    Messages are ordered by their stored ``created_at`` timestamp (ties
    broken by insertion id), never by arrival order at the store.

    The server uses the shared instance from ``ConversationStore.get()``.
    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: ConversationStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> ConversationStore:
        """Return the shared ConversationStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def db_path(self) -> Path | None:
        return self._db_path

    # -- Internal helpers ------------------------------------------------------

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[AsyncConnection]:
        schema = () if self._initialised else MESSAGES_SCHEMA
        async with connect(self._db_path, schema) as db:
            self._initialised = True
            yield db

    async def _select(self, sql: str, params: tuple = ()) -> list[Message]:
        try:
            async with self._connect() as db:
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except Exception as exc:
            raise PersistenceError("Could not read the conversation history") from exc
        return [_from_row(row) for row in rows]

    # -- Operations ------------------------------------------------------------

    async def append(self, message: Message) -> Message:
        """Insert *message*. Returns the same message object."""
        try:
            async with self._connect() as db:
                await db.execute(
                    "INSERT INTO messages (role, text, language, created_at) VALUES (?, ?, ?, ?)",
                    (
                        message.role.value,
                        message.text,
                        message.language,
                        message.created_at.isoformat(),
                    ),
                )
                await db.commit()
        except Exception as exc:
            raise PersistenceError(f"Could not save the {message.role.value} message") from exc
        logger.debug("Stored %s message (%s, %d chars)", message.role, message.language, len(message.text))
        return message

    async def recent(self, limit: int) -> list[Message]:
        """Return the *limit* most recent messages, oldest first."""
        if limit <= 0:
            return []
        newest_first = await self._select(
            "SELECT role, text, language, created_at FROM messages "
            "ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        )
        newest_first.reverse()
        return newest_first

    async def all(self) -> list[Message]:
        """Return every message, oldest first."""
        return await self._select(
            "SELECT role, text, language, created_at FROM messages ORDER BY created_at, id"
        )

    async def clear(self) -> int:
        """Delete every message. Returns the number of rows removed."""
        try:
            async with self._connect() as db:
                cursor = await db.execute("DELETE FROM messages")
                count = cursor.rowcount
                await db.commit()
        except Exception as exc:
            raise PersistenceError("Could not clear the conversation history") from exc
        logger.info("Cleared %d message(s)", count)
        return count
