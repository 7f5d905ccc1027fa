"""Data models for the conversation log."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single conversation message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    text: str
    language: str
    created_at: datetime

    def to_dict(self) -> dict[str, str]:
        """JSON-friendly form used by the history endpoint."""
        return {
            "role": self.role.value,
            "text": self.text,
            "language": self.language,
            "created_at": self.created_at.isoformat(),
        }
