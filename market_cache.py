import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional

LOG = logging.getLogger("spotbot.cache")

VOLUME = "volume"
CLOSES = "closes"


@dataclass
class CacheEntry:
    value: Any
    fetched_at: int

    def is_fresh(self, now: int, refresh_seconds: int) -> bool:
        return (now - self.fetched_at) < refresh_seconds


class MarketDataCache:
    """
    Time-windowed cache in front of the exchange client.

    One lock guards every key. It is held across the fetch, so a value and
    its timestamp are always written together and a key is never fetched
    twice at once. Failed fetches are cached like any other value so a broken
    endpoint is hit at most once per window.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock or time.time

    def get(self, key: Hashable, refresh_seconds: int, fetch_fn: Callable[[], Any]) -> Any:
        with self._lock:
            now = int(self._clock())
            entry = self._entries.get(key)
            if entry is not None and entry.is_fresh(now, refresh_seconds):
                return entry.value

            value = fetch_fn()
            self._entries[key] = CacheEntry(value=value, fetched_at=now)
            LOG.debug(f"[CACHE] refreshed {key}")
            return value

    def peek(self, key: Hashable) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------
    # typed helpers
    # ------------------------------------------------------------
    def quote_volume(self, client, symbol: str, refresh_seconds: int) -> float:
        return self.get(
            (VOLUME, symbol),
            refresh_seconds,
            lambda: client.get_24h_quote_volume(symbol),
        )

    def recent_closes(
        self,
        client,
        symbol: str,
        interval: str,
        limit: int,
        refresh_seconds: int,
    ) -> List[float]:
        return self.get(
            (CLOSES, symbol, interval, limit),
            refresh_seconds,
            lambda: client.get_recent_closes(symbol, interval, limit),
        )
