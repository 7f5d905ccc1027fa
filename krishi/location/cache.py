"""Per-coordinate TTL cache for location snapshots."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# The literal (lat, lon) pair the client sent
CoordKey = tuple[float, float]

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class LocationSnapshot:
    """Weather, timezone and place name for one coordinate pair.

    ``last_updated`` is in the owning cache's clock units (seconds).
    """

    weather_text: str = ""
    timezone: str = "UTC"
    city: str = "Unknown"
    last_updated: float = 0.0

    @classmethod
    def fallback(cls, now: float = 0.0) -> LocationSnapshot:
        """The snapshot used when no coordinates are given or lookups fail."""
        return cls(last_updated=now)


class LocationCache:
    """Holds at most one snapshot per key; entries older than the TTL are stale.

    There is no locking: concurrent refreshes of the same key simply
    overwrite each other. Entries are never evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[CoordKey, LocationSnapshot] = {}

    def now(self) -> float:
        return self._clock()

    def get_fresh(self, key: CoordKey) -> LocationSnapshot | None:
        """Return the cached snapshot for *key* if it is younger than the TTL."""
        snapshot = self._entries.get(key)
        if snapshot is None:
            return None
        if self.now() - snapshot.last_updated < self.ttl_seconds:
            return snapshot
        return None

    def put(self, key: CoordKey, snapshot: LocationSnapshot) -> None:
        self._entries[key] = snapshot

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
