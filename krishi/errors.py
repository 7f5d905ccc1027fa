"""Error taxonomy shared by the pipeline, stores, and provider adapters.

Every error carries a message that is safe to show to the user. Driver
exceptions are chained (``raise ... from exc``) so the traceback stays in
the logs without leaking into responses.
"""

from __future__ import annotations


class KrishiError(Exception):
    """Base class for all expected failures."""


class ValidationError(KrishiError):
    """Raised when input is rejected before any side effect happens."""


class ConfigurationError(KrishiError):
    """Raised when a required credential or setting is missing."""


class PersistenceError(KrishiError):
    """Raised when a store read, append, or clear fails."""


class UpstreamProviderError(KrishiError):
    """Raised when an external provider call fails or returns malformed data.

    Attributes:
        provider: Short provider name ("anthropic", "reverie", ...).
        status: HTTP-like status code from the provider, if any.
        body: Raw error body returned by the provider, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        status: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status
        self.body = body


class EmptyAudioError(UpstreamProviderError):
    """Raised when the speech provider answers successfully with no audio."""
