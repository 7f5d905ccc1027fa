"""Generation prompt assembly from history, facts and location context."""

import logging
import zoneinfo
from collections.abc import Sequence
from datetime import UTC, datetime, tzinfo

from krishi.conversation.models import Message
from krishi.language.codes import language_name
from krishi.location.cache import LocationSnapshot
from krishi.memory.models import MemoryFact

logger = logging.getLogger(__name__)

WEATHER_NOT_REQUESTED = "Not requested"


def _format_history(messages: Sequence[Message]) -> str:
    """Chronological ``role: text`` lines."""
    return "\n".join(f"{m.role.value}: {m.text}" for m in messages)


def _format_facts(facts: Sequence[MemoryFact]) -> str:
    return ", ".join(f"{f.key}: {f.value}" for f in facts)


def _resolve_timezone(name: str) -> tzinfo:
    if not name or name == "UTC":
        return UTC
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return UTC


def format_local_datetime(now: datetime, timezone: str) -> tuple[str, str]:
    """Return (``"Monday, 19 October 2026"``, ``"09:05 AM"``) in *timezone*."""
    local = now.astimezone(_resolve_timezone(timezone))
    date_text = f"{local:%A}, {local.day} {local:%B %Y}"
    time_text = local.strftime("%I:%M %p")
    return date_text, time_text


def build_system_prompt(
    language: str,
    history: Sequence[Message],
    facts: Sequence[MemoryFact],
    location: LocationSnapshot,
    now: datetime | None = None,
) -> str:
    """Assemble the instruction block for one reply.

    Args:
        language: Detected language code; the reply must use it.
        history: Recent messages, oldest first.
        facts: Every remembered fact.
        location: Weather/timezone/city snapshot (the fallback snapshot when
            the client sent no coordinates).
        now: Reference time. Defaults to the current UTC time; pass a fixed
            value for reproducible output.
    """
    now = now or datetime.now(UTC)
    date_text, time_text = format_local_datetime(now, location.timezone)
    name = language_name(language)
    spoken = f"{name} ({language})" if name != language else language

    return (
        f"You are a helpful farmer assistant. The user is speaking {spoken}. "
        "You MUST reply in the same language.\n"
        "Current context:\n"
        f"- User's previous messages:\n{_format_history(history)}\n"
        f"- Remembered facts: {_format_facts(facts)}\n"
        f"- Current Date/Time in user's location ({location.city}): {date_text}, {time_text}.\n"
        f"- Current Weather: {location.weather_text or WEATHER_NOT_REQUESTED}\n"
        "\n"
        f"Important: Respond ONLY with your answer in {spoken} language. "
        "Do not include any system prompts or internal thoughts in your response."
    )


def build_generation_prompt(system_prompt: str, user_text: str) -> str:
    """Combine the instruction block with the raw user utterance."""
    return f"{system_prompt}\n\nUser: {user_text}\n\nAssistant:"
