import asyncio
import logging
import threading
import time
from typing import Callable

from cachetools import TTLCache

from finder.models import RecipeSummary, SearchIntent


logger = logging.getLogger(__name__)


CACHE_TTL = 30 * 60
SWEEP_INTERVAL = 10 * 60
MAX_ENTRIES = 500


def normalize_query(query: str) -> str:
    return query.strip().lower()


class CacheEntry:
    def __init__(
        self,
        *,
        timestamp: float,
        results: list[RecipeSummary],
        intent: SearchIntent | None = None,
        method: str = "",
        explanation: str = "",
    ) -> None:
        self.timestamp = timestamp
        self.results = results
        self.intent = intent
        self.method = method
        self.explanation = explanation


class ResultCache:
    """TTL-bounded map of normalized query text to earlier results.

    Past `max_entries` the least recently used entry is evicted.
    """

    def __init__(
        self,
        *,
        ttl: float = CACHE_TTL,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: TTLCache[str, CacheEntry] = TTLCache(
            maxsize=max_entries, ttl=ttl, timer=clock
        )
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)

    def __contains__(self, query: str) -> bool:
        return self.get_entry(query) is not None

    def get_entry(self, query: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(normalize_query(query))

    def get(self, query: str) -> tuple[list[RecipeSummary], bool]:
        entry = self.get_entry(query)
        if entry is None:
            return [], False
        return entry.results, True

    def put(
        self,
        query: str,
        results: list[RecipeSummary],
        intent: SearchIntent | None = None,
        *,
        method: str = "",
        explanation: str = "",
    ) -> None:
        entry = CacheEntry(
            timestamp=self._clock(),
            results=results,
            intent=intent,
            method=method,
            explanation=explanation,
        )
        with self._lock:
            self._entries[normalize_query(query)] = entry

    def sweep(self) -> int:
        with self._lock:
            expired = self._entries.expire()
        if expired:
            logger.info("Cleaned %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    async def run_sweeper(self, interval: float = SWEEP_INTERVAL) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep()
