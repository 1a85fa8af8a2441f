import hashlib
from typing import Optional, Any, Dict
from cachetools import TTLCache
import orjson
from .logging import get_logger

logger = get_logger(__name__)


class ResponseCache:
    """TTL cache for raw feature service responses, keyed by request."""

    def __init__(self, max_size: int = 256, ttl: int = 900):
        self.enabled = ttl > 0
        self._entries: TTLCache = TTLCache(maxsize=max_size, ttl=max(ttl, 1))
        self.stats = {'hits': 0, 'misses': 0, 'sets': 0}

    @staticmethod
    def make_key(data: Any) -> str:
        if isinstance(data, dict):
            serialized = orjson.dumps(data, option=orjson.OPT_SORT_KEYS)
        else:
            serialized = orjson.dumps(data)
        return hashlib.sha256(serialized).hexdigest()[:16]

    def get(self, key: Any) -> Optional[str]:
        if not self.enabled:
            return None

        cache_key = self.make_key(key)
        value = self._entries.get(cache_key)
        if value is None:
            self.stats['misses'] += 1
            logger.debug(f"Cache miss for key: {cache_key}")
            return None

        self.stats['hits'] += 1
        logger.debug(f"Cache hit for key: {cache_key}")
        return value

    def set(self, key: Any, value: str) -> None:
        if not self.enabled:
            return
        cache_key = self.make_key(key)
        self._entries[cache_key] = value
        self.stats['sets'] += 1
        logger.debug(f"Cache set for key: {cache_key}")

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Response cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        lookups = self.stats['hits'] + self.stats['misses']
        return {
            **self.stats,
            'hit_rate': self.stats['hits'] / lookups if lookups else 0,
            'size': len(self._entries),
            'max_size': self._entries.maxsize,
            'enabled': self.enabled,
        }


_cache: Optional[ResponseCache] = None


def get_cache(ttl: int = 900, max_size: int = 256) -> ResponseCache:
    """Get the process-wide response cache."""
    global _cache
    if _cache is None:
        _cache = ResponseCache(max_size=max_size, ttl=ttl)
        logger.info(f"Initialized response cache with TTL={ttl}s, max_size={max_size}")
    return _cache
