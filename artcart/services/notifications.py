# artcart/services/notifications.py
"""
User-facing notices for the cart and the shared error-reporting hook.

Notices are transient: each one is visible for `ttl_seconds` and then drops
out of `active()` on its own. Nothing here is on the consistency-critical path.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Callable, Deque, Dict, List, Optional

from artcart.services.metrics import PerformanceLog

logger = logging.getLogger(__name__)

INFO = "info"
SUCCESS = "success"
ERROR = "error"
LEVELS = (INFO, SUCCESS, ERROR)

GENERIC_ERROR_MESSAGE = "Something went wrong with your cart. Please try refreshing the page."


@dataclass
class Notification:
    message: str
    level: str
    created_at: float
    expires_at: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NotificationCenter:
    def __init__(self, ttl_seconds: float = 3.0, history: int = 100,
                 clock: Callable[[], float] = time.time):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._history: Deque[Notification] = deque(maxlen=history)

    def notify(self, message: str, level: str = INFO) -> Notification:
        if level not in LEVELS:
            level = INFO
        now = self._clock()
        note = Notification(message=message, level=level, created_at=now, expires_at=now + self.ttl_seconds)
        self._history.append(note)
        logger.info("cart notice [%s] %s", level, message)
        return note

    def active(self) -> List[Notification]:
        now = self._clock()
        return [n for n in self._history if n.expires_at > now]

    @property
    def history(self) -> List[Notification]:
        return list(self._history)

    def latest(self) -> Optional[Notification]:
        return self._history[-1] if self._history else None


class ErrorReporter:
    """
    The `report(message, error)` hook the engine calls instead of raising.
    Logs the failure, records it in the performance log and shows the user a
    generic notice.
    """

    def __init__(self, notifier: NotificationCenter, metrics: Optional[PerformanceLog] = None):
        self.notifier = notifier
        self.metrics = metrics

    def report(self, message: str, error: Optional[BaseException] = None) -> None:
        if error is not None:
            logger.error("Cart Error: %s", message, exc_info=(type(error), error, error.__traceback__))
        else:
            logger.error("Cart Error: %s", message)
        if self.metrics is not None:
            self.metrics.log_error(message, error)
        self.notifier.notify(GENERIC_ERROR_MESSAGE, ERROR)
