import time
from typing import Any, Dict, Optional
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)


class Cache:
    """
    In-memory TTL cache of fetched pages, keyed by url.

    When full, the entry stored earliest is evicted.
    """

    def __init__(self, ttl_seconds: int = 300, max_entries: int = 1000):
        self.ttl_seconds = ttl_seconds if isinstance(ttl_seconds, int) else 300
        self.max_entries = max_entries if isinstance(max_entries, int) and max_entries > 0 else 1000
        self._entries: Dict[str, Any] = {}
        self._stored_at: Dict[str, float] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        if key not in self._entries:
            self.misses += 1
            return None

        if time.time() - self._stored_at[key] > self.ttl_seconds:
            logger.trace("cache entry expired: %s", key)
            self._invalidate(key)
            self.misses += 1
            return None

        self.hits += 1
        return self._entries[key]

    def set(self, key: str, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest_key = min(self._stored_at, key=self._stored_at.get)
            self._invalidate(oldest_key)

        self._entries[key] = value
        self._stored_at[key] = time.time()

    def _invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        self._stored_at.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._stored_at.clear()

    def size(self) -> int:
        return len(self._entries)
