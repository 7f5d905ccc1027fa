"""Shared test fixtures."""

from pathlib import Path

import pytest

from krishi.conversation.store import ConversationStore
from krishi.memory.store import MemoryStore


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("krishi.config.settings.turso_database_url", "")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def conversation(db_path: Path, _no_turso) -> ConversationStore:
    """A ConversationStore backed by a temp database."""
    return ConversationStore(db_path=db_path)


@pytest.fixture
def memory(db_path: Path, _no_turso) -> MemoryStore:
    """A MemoryStore sharing the same temp database."""
    return MemoryStore(db_path=db_path)
