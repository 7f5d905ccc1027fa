"""Streaming reply pipeline.

One call to :meth:`ReplyPipeline.stream` handles a single user turn:

    validate → detect language → save user message → read history and facts
    → enrich location → generate (streamed) → save assistant message → done

Tokens are yielded as soon as the provider produces them. Any failure after
validation ends the sequence with a single :class:`ErrorEvent`; tokens that
were already sent are not retracted.

If the consumer stops iterating (client disconnect), the provider stream is
closed and the partial assistant reply is discarded. The user message is
already stored by then and stays.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from krishi.chat.events import DoneEvent, ErrorEvent, StreamEvent, TokenEvent
from krishi.config import settings
from krishi.conversation.models import Message, Role
from krishi.errors import KrishiError
from krishi.language import detect_language, to_speech_locale, to_tts_language
from krishi.llm.client import stream_text
from krishi.llm.prompt import build_generation_prompt, build_system_prompt
from krishi.location.cache import CoordKey, LocationSnapshot

if TYPE_CHECKING:
    from krishi.conversation.store import ConversationStore
    from krishi.location.enricher import LocationEnricher
    from krishi.memory.store import MemoryStore

logger = logging.getLogger(__name__)

EMPTY_PROMPT_MESSAGE = "Empty prompt"
GENERIC_FAILURE_MESSAGE = "Failed to generate a reply"

# prompt -> lazy sequence of reply fragments
TextGenerator = Callable[[str], AsyncIterator[str]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ReplyRequest:
    """One user turn as sent by the client."""

    prompt: str
    location: CoordKey | None = None
    lang_override: str | None = None


def _error_event(exc: Exception) -> ErrorEvent:
    if isinstance(exc, KrishiError):
        return ErrorEvent(str(exc) or GENERIC_FAILURE_MESSAGE)
    return ErrorEvent(GENERIC_FAILURE_MESSAGE)


async def _close(fragments: AsyncIterator[str] | None) -> None:
    aclose = getattr(fragments, "aclose", None)
    if aclose is not None:
        await aclose()


class ReplyPipeline:
    """Orchestrates detection, context, generation and persistence per turn."""

    def __init__(
        self,
        conversation: ConversationStore,
        memory: MemoryStore,
        enricher: LocationEnricher | None = None,
        generate: TextGenerator = stream_text,
        clock: Callable[[], datetime] = _utcnow,
        history_window: int | None = None,
    ) -> None:
        self._conversation = conversation
        self._memory = memory
        self._enricher = enricher
        self._generate = generate
        self._clock = clock
        self._history_window = (
            settings.history_window if history_window is None else history_window
        )

    async def stream(self, request: ReplyRequest) -> AsyncIterator[StreamEvent]:
        """Yield the events for one reply."""
        text = (request.prompt or "").strip()
        if not text:
            yield ErrorEvent(EMPTY_PROMPT_MESSAGE)
            return

        language = detect_language(text, request.lang_override)
        speech_lang = to_speech_locale(language)
        tts_lang = to_tts_language(language)
        logger.info("Reply requested: language=%s, %d chars", language, len(text))

        await self._save(Role.USER, text, language)

        try:
            history = await self._conversation.recent(self._history_window)
            facts = await self._memory.all()
            location = await self._locate(request.location)
            system_prompt = build_system_prompt(language, history, facts, location, now=self._clock())
            prompt = build_generation_prompt(system_prompt, text)
        except Exception as exc:
            logger.exception("Failed to build reply context")
            yield _error_event(exc)
            return

        parts: list[str] = []
        fragments: AsyncIterator[str] | None = None
        try:
            fragments = self._generate(prompt)
            async for fragment in fragments:
                if not fragment:
                    continue
                parts.append(fragment)
                yield TokenEvent(fragment, speech_lang, tts_lang)
        except GeneratorExit:
            logger.info(
                "Client went away after %d fragment(s); partial reply not saved", len(parts)
            )
            raise
        except Exception as exc:
            logger.exception("Reply generation failed after %d fragment(s)", len(parts))
            yield _error_event(exc)
            return
        finally:
            await _close(fragments)

        reply = "".join(parts)
        await self._save(Role.ASSISTANT, reply, language)
        logger.info("Reply complete: %d fragment(s), %d chars", len(parts), len(reply))
        yield DoneEvent()

    async def _locate(self, coords: CoordKey | None) -> LocationSnapshot:
        if coords is None or self._enricher is None:
            return LocationSnapshot.fallback()
        return await self._enricher.enrich(*coords)

    async def _save(self, role: Role, text: str, language: str) -> None:
        """Append a message; failures are logged and never abort the turn."""
        message = Message(role=role, text=text, language=language, created_at=self._clock())
        try:
            await self._conversation.append(message)
        except Exception:
            logger.exception("Failed to persist %s message", role.value)
