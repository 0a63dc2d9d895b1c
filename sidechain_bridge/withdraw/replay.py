"""Short-lived memory of claims already honored by this process."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict

# sha256 hex digest of the canonical claim message.
ClaimKey = str


class SeenClaimCache:
    """Remembers claim keys until their freshness window has certainly closed.

    Entries live for ``ttl_seconds``; after that the timestamp check alone
    rejects the claim, so the entry can be forgotten.
    """

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[ClaimKey, float] = {}

    def reserve(self, key: ClaimKey) -> bool:
        """Record ``key``; return False if it was already recorded and unexpired."""

        now = self._clock()
        with self._lock:
            self._evict(now)
            if key in self._entries:
                return False
            self._entries[key] = now + self._ttl
            return True

    def __len__(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return len(self._entries)

    def _evict(self, now: float) -> None:
        expired = [key for key, expires_at in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
