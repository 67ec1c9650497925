import threading
import time
from asyncio import sleep
from typing import Any, Callable, Dict, Optional

from cachetools import TTLCache

from rdpassthrough.config.settings import settings
from rdpassthrough.utils.logger import cache_logger

# ===========================
# Cache Names
# ===========================
METADATA = "metadata"
TORRENT_SEARCH = "torrent_search"
STREAMS = "streams"


# ===========================
# Single TTL Cache
# ===========================
class _CounterCache:

    def __init__(self, ttl: float, maxsize: int, timer: Callable[[], float]):
        self.ttl = ttl
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()
        self._data: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._data.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def size(self) -> int:
        with self._lock:
            self._data.expire()
            return len(self._data)

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total * 100, 1) if total else 0.0


# ===========================
# Cache Store
# ===========================
class CacheStore:
    """Three independent TTL caches (metadata, torrent search, resolved streams).

    Each cache keeps its own TTL, lock and hit/miss counters. ``get`` returns
    ``None`` on a miss and never returns an expired entry. ``timer`` is the clock
    used for expiry; tests pass a fake one.
    """

    def __init__(
        self,
        metadata_ttl: float = settings.METADATA_CACHE_TTL,
        torrent_search_ttl: float = settings.TORRENT_SEARCH_CACHE_TTL,
        streams_ttl: float = settings.STREAM_CACHE_TTL,
        maxsize: int = settings.CACHE_MAX_SIZE,
        timer: Callable[[], float] = time.monotonic
    ):
        self._caches: Dict[str, _CounterCache] = {
            METADATA: _CounterCache(metadata_ttl, maxsize, timer),
            TORRENT_SEARCH: _CounterCache(torrent_search_ttl, maxsize, timer),
            STREAMS: _CounterCache(streams_ttl, maxsize, timer),
        }

    def _cache(self, cache: str) -> _CounterCache:
        if cache not in self._caches:
            raise KeyError(f"Unknown cache: {cache}")
        return self._caches[cache]

    def get(self, cache: str, key: str) -> Optional[Any]:
        value = self._cache(cache).get(key)
        if value is not None:
            cache_logger.debug(f"Hit: {cache} {key}")
        return value

    def set(self, cache: str, key: str, value: Any) -> None:
        if value is None:
            return
        self._cache(cache).set(key, value)
        cache_logger.debug(f"Saved: {cache} {key} ({self._cache(cache).ttl}s)")

    # ===========================
    # Typed Accessors
    # ===========================
    def get_metadata(self, key: str) -> Optional[Any]:
        return self.get(METADATA, key)

    def set_metadata(self, key: str, value: Any) -> None:
        self.set(METADATA, key, value)

    def get_torrent_search(self, key: str) -> Optional[Any]:
        return self.get(TORRENT_SEARCH, key)

    def set_torrent_search(self, key: str, value: Any) -> None:
        self.set(TORRENT_SEARCH, key, value)

    def get_stream(self, key: str) -> Optional[Any]:
        return self.get(STREAMS, key)

    def set_stream(self, key: str, value: Any) -> None:
        self.set(STREAMS, key, value)

    # ===========================
    # Observability
    # ===========================
    def stats(self) -> Dict[str, int]:
        stats = {}
        for name, cache in self._caches.items():
            stats[f"{name}_hits"] = cache.hits
            stats[f"{name}_misses"] = cache.misses
        return stats

    def sizes(self) -> Dict[str, int]:
        return {name: cache.size() for name, cache in self._caches.items()}

    def hit_rates(self) -> Dict[str, float]:
        return {name: cache.hit_rate() for name, cache in self._caches.items()}

    def log_stats(self) -> None:
        sizes = self.sizes()
        for name, cache in self._caches.items():
            cache_logger.info(
                f"{name}: {cache.hits} hits, {cache.misses} misses ({cache.hit_rate()}% hit rate), {sizes[name]} entries"
            )


# ===========================
# Periodic Statistics
# ===========================
async def log_cache_stats_periodically(store: CacheStore, interval: float = settings.CACHE_STATS_INTERVAL):
    while True:
        await sleep(interval)
        try:
            store.log_stats()
        except Exception as e:
            cache_logger.error(f"Stats logging failed: {type(e).__name__}")


# ===========================
# Global Cache Instance
# ===========================
cache_store = CacheStore()
