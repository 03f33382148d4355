# artcart/services/metrics.py
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

TRACKED_OPERATIONS = ("add_to_cart", "render", "storage")


class PerformanceLog:
    """
    Rolling log of operation durations (milliseconds) plus recent internal
    errors. Only the last `window` entries per operation are kept.
    """

    def __init__(self, window: int = 100, clock: Callable[[], float] = time.time):
        self.window = int(window)
        self._clock = clock
        self._entries: Dict[str, Deque[Dict[str, float]]] = {
            op: deque(maxlen=self.window) for op in TRACKED_OPERATIONS
        }
        self._errors: Deque[Dict[str, Any]] = deque(maxlen=self.window)

    def track(self, operation: str, duration_ms: float) -> None:
        entries = self._entries.get(operation)
        if entries is None:
            logger.debug("Ignoring timing for untracked operation %r", operation)
            return
        entries.append({"duration": round(float(duration_ms), 2), "timestamp": self._clock()})

    def log_error(self, message: str, error: Optional[BaseException] = None) -> None:
        self._errors.append({
            "message": message,
            "error": repr(error) if error is not None else None,
            "timestamp": self._clock(),
        })

    def entries(self, operation: str) -> List[Dict[str, float]]:
        return list(self._entries.get(operation, ()))

    @property
    def errors(self) -> List[Dict[str, Any]]:
        return list(self._errors)

    def prune(self, max_age_seconds: float) -> None:
        """Drop entries older than `max_age_seconds`."""
        cutoff = self._clock() - max_age_seconds
        for op, entries in self._entries.items():
            self._entries[op] = deque((e for e in entries if e["timestamp"] > cutoff), maxlen=self.window)
        self._errors = deque((e for e in self._errors if e["timestamp"] > cutoff), maxlen=self.window)

    def report(self) -> Dict[str, Dict[str, float]]:
        out: Dict[str, Dict[str, float]] = {}
        for op, entries in self._entries.items():
            if not entries:
                continue
            durations = [e["duration"] for e in entries]
            total = sum(durations)
            out[op] = {
                "count": len(durations),
                "average": round(total / len(durations), 2),
                "min": min(durations),
                "max": max(durations),
                "total": round(total, 2),
            }
        return out
