"""
Key/Value Cache

Small TTL cache used for provider-side hints (e.g. Gemini context
cache names). Not a response cache.
"""

import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict, Optional, Tuple


class KeyValueCache(ABC):

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        pass


class InMemoryKeyValueCache(KeyValueCache):
    """
    In-memory TTL cache.

    Expired entries are dropped lazily on read.
    """

    def __init__(self, clock=time.monotonic):
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._clock = clock
        self._lock = Lock()

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)
