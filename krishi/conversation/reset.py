"""Bulk reset of the conversation log and remembered facts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from krishi.conversation.store import MESSAGES_SCHEMA
from krishi.db import connect, transaction
from krishi.errors import PersistenceError
from krishi.memory.store import MEMORIES_SCHEMA

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


async def reset_conversation(db_path: Path | None = None) -> None:
    """Empty both the message log and the fact store in one transaction.

    Either both tables end up empty or neither changes; any failure is
    raised as ``PersistenceError``.
    """
    try:
        async with connect(db_path, (*MESSAGES_SCHEMA, *MEMORIES_SCHEMA)) as db:
            async with transaction(db):
                messages = await db.execute("DELETE FROM messages")
                memories = await db.execute("DELETE FROM memories")
            removed = (messages.rowcount, memories.rowcount)
    except Exception as exc:
        raise PersistenceError("Server error while clearing chat") from exc
    logger.info("Conversation reset: %d message(s), %d fact(s) removed", *removed)
