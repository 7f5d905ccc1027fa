"""Async database connection abstraction over libsql.

The conversation log and the fact store both live in one database so a
reset can clear them in a single transaction. The synchronous ``libsql``
driver is wrapped with ``asyncio.to_thread()`` so store calls never block
the event loop while a reply is streaming.

Connection target is determined by settings:

- **Production**: ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` → remote Turso
- **Dev/test**: no Turso env vars → local SQLite file via ``database_path``
"""

from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import libsql

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from pathlib import Path

from krishi.config import settings

# One store operation at a time per event loop. libsql keeps the GIL while
# it waits on a locked database, so an open write on one connection would
# stall every other writer until busy_timeout.
_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = (
    weakref.WeakKeyDictionary()
)


def _operation_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _locks.get(loop)
    if lock is None:
        lock = _locks[loop] = asyncio.Lock()
    return lock


class _AsyncCursor:
    """Async view over a synchronous libsql cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class AsyncConnection:
    """Async view over a synchronous libsql connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: tuple = ()) -> _AsyncCursor:
        cursor = await asyncio.to_thread(self._conn.execute, sql, params)
        return _AsyncCursor(cursor)

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def rollback(self) -> None:
        await asyncio.to_thread(self._conn.rollback)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)

    async def ensure_schema(self, statements: Iterable[str]) -> None:
        """Run idempotent ``CREATE ... IF NOT EXISTS`` statements and commit."""
        for sql in statements:
            await self.execute(sql)
        await self.commit()


@asynccontextmanager
async def transaction(conn: AsyncConnection) -> AsyncIterator[AsyncConnection]:
    """Commit everything executed inside the block, or roll all of it back."""
    await conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        await conn.rollback()
        raise
    await conn.commit()


def _open_local(path: str) -> Any:
    """Open a local libsql connection with WAL mode and busy timeout."""
    conn = libsql.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def get_connection(local_path_override: Path | None = None) -> AsyncConnection:
    """Return an async-wrapped libsql connection.

    If *local_path_override* is given (test isolation), it takes priority.
    Otherwise, ``TURSO_DATABASE_URL`` triggers a remote connection, and
    ``database_path`` falls back to a local file.
    """
    if local_path_override:
        local_path_override.parent.mkdir(parents=True, exist_ok=True)
        conn = await asyncio.to_thread(_open_local, str(local_path_override))
        return AsyncConnection(conn)

    if settings.turso_database_url:
        conn = await asyncio.to_thread(
            libsql.connect,
            database=settings.turso_database_url,
            auth_token=settings.turso_auth_token,
        )
        return AsyncConnection(conn)

    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    conn = await asyncio.to_thread(_open_local, str(settings.database_path))
    return AsyncConnection(conn)


@asynccontextmanager
async def connect(
    local_path_override: Path | None = None,
    schema: Iterable[str] = (),
) -> AsyncIterator[AsyncConnection]:
    """Hold the operation lock, open a connection and apply *schema*.

    The connection is closed on exit, including when schema creation
    fails. Callers must not nest ``connect()`` blocks.
    """
    async with _operation_lock():
        db = await get_connection(local_path_override)
        try:
            if schema:
                await db.ensure_schema(schema)
            yield db
        finally:
            await db.close()
