"""Data models for remembered facts."""

from pydantic import BaseModel


class MemoryFact(BaseModel):
    """A remembered key/value fact about the user or their farm."""

    key: str
    value: str
