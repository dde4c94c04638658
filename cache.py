"""
Injected result cache for the orchestration layer.

The analysis engine never touches this; TradingAssistant receives a Cache
and only uses it to skip recomputation. Correctness never depends on it.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Hashable, Optional

import cachetools

from config import CACHE_MAX_ENTRIES, CACHE_TTL

logger = logging.getLogger(__name__)


class Cache(ABC):
    """get(key) -> value or None; set(key, value)."""

    @abstractmethod
    def get(self, key: Hashable) -> Optional[Any]:
        ...

    @abstractmethod
    def set(self, key: Hashable, value: Any) -> None:
        ...

    def clear(self) -> None:
        pass


class TTLCache(Cache):
    """
    Thread-safe time-boxed cache over cachetools.TTLCache. Entries live for
    `ttl` seconds; once `max_entries` are held the least recently used one
    is evicted.
    """

    def __init__(self, ttl: float = CACHE_TTL, max_entries: int = CACHE_MAX_ENTRIES,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._entries = cachetools.TTLCache(maxsize=max_entries, ttl=ttl, timer=clock)
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            full = key not in self._entries and len(self._entries) >= self.max_entries
            self._entries[key] = value
        if full:
            logger.debug(f"Cache full, evicted least recently used entry for {key!r}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)


class NullCache(Cache):
    """Never stores anything; every request recomputes."""

    def get(self, key: Hashable) -> Optional[Any]:
        return None

    def set(self, key: Hashable, value: Any) -> None:
        return None
