"""
Thread-safe classification cache.

Stores oracle verdicts keyed by standardized payee name so repeated
uploads skip names already classified. Size-bounded (maxsize) and
time-bounded (ttl seconds). Constructed by the caller and injected.
"""
import threading

from cachetools import TTLCache

from .models import ClassificationResult


class ClassificationCache:
    """TTL cache of successful classification results."""

    def __init__(self, maxsize: int = 100_000, ttl: int = 3600):
        self._lock = threading.Lock()
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(normalized_name: str) -> str:
        return normalized_name.upper()

    def get(self, normalized_name: str) -> ClassificationResult | None:
        """Return a cached result, or None if absent or expired."""
        key = self.key_for(normalized_name)
        with self._lock:
            result = self._cache.get(key)
            if result is None:
                self.misses += 1
            else:
                self.hits += 1
            return result

    def set(self, normalized_name: str, result: ClassificationResult) -> None:
        """Cache a result. Failed results are never cached."""
        if result.failed:
            return
        with self._lock:
            self._cache[self.key_for(normalized_name)] = result

    def evict(self, normalized_name: str | None = None) -> None:
        """Evict one name, or everything when no name is given."""
        with self._lock:
            if normalized_name is None:
                self._cache.clear()
            else:
                self._cache.pop(self.key_for(normalized_name), None)

    def clear(self) -> None:
        self.evict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def stats(self) -> dict:
        """Cache statistics for monitoring."""
        with self._lock:
            return {
                "size": len(self._cache),
                "maxsize": self._cache.maxsize,
                "ttl": self._cache.ttl,
                "hits": self.hits,
                "misses": self.misses,
            }
