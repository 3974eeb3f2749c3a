"""Disk cache for keyword suggestion responses.

Suggestion lookups hit a public endpoint on every keystroke-sized query, so
responses are kept for an hour, keyed by the normalized query text.
"""

import hashlib
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from diskcache import Cache, Timeout

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60

CACHE_ERRORS = (OSError, sqlite3.Error, Timeout)


class SuggestionCache:
    """TTL cache for suggestion lists.

    Example usage:
        cache = SuggestionCache(".cache/suggestions")

        cached = cache.get("minecraft")
        if cached is None:
            cached = fetch_suggestions("minecraft")
            cache.set("minecraft", cached)
    """

    def __init__(
        self,
        cache_dir: str = ".cache/suggestions",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_size_mb: float = 64.0,
        enabled: bool = True,
    ):
        """Initialize the suggestion cache.

        Args:
            cache_dir: Directory for cache storage
            ttl_seconds: Time-to-live for entries (default: one hour)
            max_size_mb: Maximum cache size in MB
            enabled: Whether caching is enabled
        """
        self.enabled = enabled
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds

        self.hits = 0
        self.misses = 0

        if not enabled:
            logger.info("Suggestion caching is DISABLED")
            self.cache = None
            return

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.cache = Cache(
            str(self.cache_dir),
            size_limit=int(max_size_mb * 1024 * 1024),
            eviction_policy="least-recently-used",
        )
        logger.debug(f"Initialized suggestion cache at {cache_dir} (TTL: {ttl_seconds}s)")

    @staticmethod
    def _generate_key(query: str) -> str:
        normalized = " ".join((query or "").lower().split())
        return hashlib.sha256(f"suggest:{normalized}".encode("utf-8")).hexdigest()

    def get(self, query: str) -> Optional[list]:
        """Cached suggestion list for a query, or None."""
        if self.cache is None:
            return None

        try:
            cached_value = self.cache.get(self._generate_key(query))
        except CACHE_ERRORS as e:
            logger.warning(f"Cache read error: {e}")
            cached_value = None

        if cached_value is None:
            self.misses += 1
            logger.debug(f"Cache MISS for '{query}' (hit rate: {self.hit_rate:.1%})")
            return None
        self.hits += 1
        logger.debug(f"Cache HIT for '{query}' (hit rate: {self.hit_rate:.1%})")
        return cached_value

    def set(self, query: str, suggestions: list, ttl: Optional[int] = None) -> None:
        if self.cache is None:
            return

        ttl_seconds = ttl if ttl is not None else self.ttl_seconds
        try:
            self.cache.set(self._generate_key(query), suggestions, expire=ttl_seconds)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache write error: {e}")

    def clear(self) -> int:
        """Clear all cached entries.

        Returns:
            Number of entries that were cleared
        """
        if self.cache is None:
            return 0

        entry_count = len(self.cache)
        self.cache.clear()
        self.hits = 0
        self.misses = 0
        logger.info(f"Suggestion cache cleared ({entry_count} entries removed)")
        return entry_count

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def get_stats(self) -> dict:
        return {
            "enabled": self.cache is not None,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "entry_count": len(self.cache) if self.cache is not None else 0,
            "ttl_seconds": self.ttl_seconds,
        }

    def close(self) -> None:
        if self.cache is not None:
            self.cache.close()


def load_cache_from_config(config: dict) -> SuggestionCache:
    """Build the suggestion cache from configuration (may be disabled)."""
    return SuggestionCache(
        cache_dir=config.get("cache_dir", ".cache/suggestions"),
        ttl_seconds=config.get("cache_ttl_seconds", DEFAULT_TTL_SECONDS),
        enabled=config.get("cache_enabled", True),
    )
