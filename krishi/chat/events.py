"""Events emitted to the client while a reply streams.

A request produces any number of :class:`TokenEvent` followed by exactly
one :class:`DoneEvent` or :class:`ErrorEvent`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TokenEvent:
    text: str
    speech_lang: str
    tts_lang: str

    def to_payload(self) -> dict[str, Any]:
        return {"token": self.text, "language": self.speech_lang, "reverieLang": self.tts_lang}


@dataclass(frozen=True)
class DoneEvent:
    def to_payload(self) -> dict[str, Any]:
        return {"done": True}


@dataclass(frozen=True)
class ErrorEvent:
    message: str

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


StreamEvent = TokenEvent | DoneEvent | ErrorEvent


def is_terminal(event: StreamEvent) -> bool:
    return isinstance(event, DoneEvent | ErrorEvent)


def sse_frame(event: StreamEvent) -> bytes:
    """Encode *event* as one ``text/event-stream`` data frame."""
    return f"data: {json.dumps(event.to_payload(), ensure_ascii=False)}\n\n".encode()
