"""In-process TTL caches for the download hot path.

Entries are advisory: writers invalidate explicitly and a miss only costs a
database or Telegram round-trip.
"""

import threading
import time
from typing import Any, Callable, Hashable


class TTLCache:
    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# FileRecord by id, 1 hour
file_records = TTLCache(ttl=60 * 60)

# Telegram file_path by telegram file id, 24 hours
telegram_paths = TTLCache(ttl=60 * 60 * 24)
