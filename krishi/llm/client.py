"""Async Claude API client producing a lazy stream of reply fragments."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import anthropic

from krishi.config import settings
from krishi.errors import ConfigurationError, UpstreamProviderError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_client: anthropic.AsyncAnthropic | None = None


def _get_client() -> anthropic.AsyncAnthropic:
    """Lazily initialize the Anthropic client."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _client


async def stream_text(
    prompt: str,
    *,
    model: str | None = None,
    max_tokens: int | None = None,
) -> AsyncIterator[str]:
    """Yield text fragments of Claude's reply to *prompt* as they arrive.

    The provider stream is held open only while the caller iterates; closing
    this generator (``aclose()``) closes the underlying HTTP stream too.

    Raises:
        ConfigurationError: ``ANTHROPIC_API_KEY`` is not set.
        UpstreamProviderError: the API rejected the call or the stream broke.
    """
    if not settings.anthropic_api_key:
        raise ConfigurationError("Reply generation is not configured. Set ANTHROPIC_API_KEY.")

    client = _get_client()
    kwargs: dict[str, Any] = {
        "model": model or settings.claude_model,
        "max_tokens": max_tokens or settings.max_output_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }

    try:
        async with client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                if text:
                    yield text
    except anthropic.APIStatusError as exc:
        logger.warning("Claude API error: status=%d", exc.status_code)
        raise UpstreamProviderError(
            f"The reply service returned an error ({exc.status_code})",
            provider="anthropic",
            status=exc.status_code,
            body=str(exc.body or ""),
        ) from exc
    except anthropic.APIError as exc:
        logger.warning("Claude API unreachable: %s", exc)
        raise UpstreamProviderError(
            "The reply service is unreachable", provider="anthropic"
        ) from exc
