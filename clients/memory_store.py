"""
In-process key/value store with the same surface as ValkeyClient.

Stands in for browser local/session storage when no Valkey URL is
configured, and backs most of the test suite.
"""

import heapq
import threading
import time
from typing import Callable


class MemoryStore:
    """
    Thread-safe dict with optional per-key expiry.

    Expired keys are swept on every write, so keys that are written once
    and never read again (cached QR images) do not accumulate.

    Usage:
        store = MemoryStore()
        store.set_many({"almond_token": "abc"})
        store.get("almond_token")  # "abc"
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._values: dict[str, str] = {}
        self._expires: dict[str, float] = {}
        # (expires_at, key); entries go stale when a key is rewritten or deleted
        self._expiry_heap: list[tuple[float, str]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def _purge(self, key: str) -> None:
        """Drop key if its expiry has passed. Caller holds the lock."""
        expires_at = self._expires.get(key)
        if expires_at is not None and self._clock() >= expires_at:
            self._values.pop(key, None)
            self._expires.pop(key, None)

    def _sweep(self) -> None:
        """Drop every expired key. Caller holds the lock."""
        now = self._clock()
        while self._expiry_heap and self._expiry_heap[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiry_heap)
            if self._expires.get(key) == expires_at:
                self._values.pop(key, None)
                self._expires.pop(key, None)

    def _write(self, key: str, value: str, expire_seconds: int | None) -> None:
        self._values[key] = value
        if expire_seconds is not None:
            expires_at = self._clock() + expire_seconds
            self._expires[key] = expires_at
            heapq.heappush(self._expiry_heap, (expires_at, key))
        else:
            self._expires.pop(key, None)

    def _remove(self, key: str) -> bool:
        self._purge(key)
        self._expires.pop(key, None)
        return self._values.pop(key, None) is not None

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        with self._lock:
            self._purge(key)
            return self._values.get(key)

    def set_if_absent(self, key: str, value: str, expire_seconds: int | None = None) -> bool:
        with self._lock:
            self._sweep()
            self._purge(key)
            if key in self._values:
                return False
            self._write(key, value, expire_seconds)
            return True

    def set_many(self, values: dict[str, str], delete: tuple[str, ...] = ()) -> None:
        """Write values and remove the delete keys as one step."""
        with self._lock:
            self._sweep()
            for key, value in values.items():
                self._write(key, value, None)
            for key in delete:
                self._remove(key)

    def delete_many(self, *keys: str) -> int:
        with self._lock:
            self._sweep()
            return sum(1 for key in keys if self._remove(key))

    def close(self) -> None:
        with self._lock:
            self._values.clear()
            self._expires.clear()
            self._expiry_heap.clear()
