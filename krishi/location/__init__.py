"""Location enrichment: weather, timezone and city per coordinate pair."""

from krishi.location.cache import CoordKey, LocationCache, LocationSnapshot
from krishi.location.enricher import LocationEnricher

__all__ = ["CoordKey", "LocationCache", "LocationEnricher", "LocationSnapshot"]
