"""In-memory counters and latency timings for the relay and chain adapters."""

from __future__ import annotations

import threading
import time
from collections import Counter
from contextlib import contextmanager
from typing import Dict, Iterator


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()
        self._timings: Dict[str, Dict[str, float]] = {}

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def observe(self, name: str, seconds: float) -> None:
        """Fold one duration sample into the ``count``/``total``/``max`` summary for ``name``."""

        with self._lock:
            summary = self._timings.setdefault(name, {"count": 0, "total": 0.0, "max": 0.0})
            summary["count"] += 1
            summary["total"] += seconds
            summary["max"] = max(summary["max"], seconds)

    @contextmanager
    def timed(self, name: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, time.perf_counter() - started)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def timings(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {name: dict(summary) for name, summary in self._timings.items()}

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


METRICS = MetricsRegistry()
