"""Simple in-memory rate limiter."""

from __future__ import annotations

import threading
import time
from typing import Dict, Tuple

from fastapi import Request

from sidechain_bridge.errors import RateLimited


class RateLimiter:
    """Enforces a maximum number of events per fixed window per key."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[int, float]] = {}

    def allow(self, key: str, limit: int, window_seconds: int = 60) -> bool:
        if limit <= 0:
            return True
        now = time.monotonic()
        with self._lock:
            count, window_start = self._entries.get(key, (0, now))
            if now - window_start >= window_seconds:
                count = 0
                window_start = now
            if count >= limit:
                return False
            self._entries[key] = (count + 1, window_start)
            return True


def enforce_rate_limit(request: Request, scope: str) -> None:
    """Reject the request once its client host exceeds the per-minute budget."""

    rate_limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)  # type: ignore[attr-defined]
    limit: int = getattr(request.app.state, "rate_limit_per_minute", 0)  # type: ignore[attr-defined]
    if rate_limiter is None or limit <= 0:
        return

    client = getattr(request, "client", None)
    host = getattr(client, "host", None) or "anonymous"
    if not rate_limiter.allow(f"{scope}:{host}", limit):
        raise RateLimited("Too many requests")
