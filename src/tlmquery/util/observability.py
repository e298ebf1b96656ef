from __future__ import annotations

import math
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any


def _percentile(sorted_values: list[float], q: float) -> float:
    if not sorted_values:
        return 0.0
    pos = min(1.0, max(0.0, float(q))) * (len(sorted_values) - 1)
    lower = int(math.floor(pos))
    upper = int(math.ceil(pos))
    lo = float(sorted_values[lower])
    hi = float(sorted_values[upper])
    return lo + (hi - lo) * (pos - lower)


@dataclass
class _FetchWindow:
    latencies_ms: deque[float] = field(default_factory=deque)
    total: int = 0
    errors: int = 0
    rows: int = 0
    last_error: str = ""


class FetchStats:
    """
    Rolling per-backend fetch counters: latency, error rate, rows retained.

    Fetches run on worker threads, so every update takes the lock.
    """

    def __init__(self, *, max_samples: int = 1024) -> None:
        self.max_samples = max(16, int(max_samples))
        self._lock = threading.Lock()
        self._windows: dict[str, _FetchWindow] = {}

    def observe(self, *, metric: str, latency_s: float, ok: bool, rows: int = 0, error: str = "") -> None:
        name = str(metric or "").strip() or "unknown"
        with self._lock:
            win = self._windows.get(name)
            if win is None:
                win = _FetchWindow(latencies_ms=deque(maxlen=self.max_samples))
                self._windows[name] = win
            win.total += 1
            win.rows += max(0, int(rows))
            if not ok:
                win.errors += 1
                win.last_error = str(error)
            win.latencies_ms.append(max(0.0, float(latency_s) * 1000.0))

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            out: dict[str, Any] = {}
            for name, win in self._windows.items():
                vals = sorted(win.latencies_ms)
                n = int(win.total)
                out[name] = {
                    "count": n,
                    "error_count": int(win.errors),
                    "error_rate": (float(win.errors) / float(n)) if n > 0 else 0.0,
                    "rows": int(win.rows),
                    "last_error": win.last_error,
                    "p50_ms": _percentile(vals, 0.50),
                    "p95_ms": _percentile(vals, 0.95),
                    "max_ms": (float(vals[-1]) if vals else 0.0),
                }
            return out

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()


_GLOBAL_LOCK = threading.Lock()
_GLOBAL_STATS: FetchStats | None = None


def get_fetch_stats() -> FetchStats:
    global _GLOBAL_STATS
    with _GLOBAL_LOCK:
        if _GLOBAL_STATS is None:
            _GLOBAL_STATS = FetchStats()
        return _GLOBAL_STATS
