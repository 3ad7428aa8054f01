import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

DEFAULT_TTL_SECONDS = 5 * 60


class SnapshotCache:
    """Time-bounded cache of computed dashboard payloads.

    Each key holds one immutable snapshot and the timestamp it was stored at.
    A snapshot older than ``ttl_seconds`` is treated as missing.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            snapshot, stored_at = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return snapshot

    def set(self, key: str, snapshot: Any, timestamp: Optional[float] = None) -> None:
        stored_at = self._clock() if timestamp is None else timestamp
        with self._lock:
            self._entries[key] = (snapshot, stored_at)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
