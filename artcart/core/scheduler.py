# artcart/core/scheduler.py
"""
Render coalescing.

Mutations call `request_render()` as often as they like; at most one render runs
at a time and two renders are never closer than the throttle window. A request
that lands inside the window arms a single pending slot that fires once the
window has passed, so bursts collapse into one refresh and nothing is dropped.

Time is read from an injectable monotonic clock and deferral goes through an
injectable `defer(delay, callback)`, so the scheduler can be driven by hand.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Optional

logger = logging.getLogger(__name__)

Defer = Callable[[float, Callable[[], None]], Any]


def call_later(delay: float, callback: Callable[[], None]) -> Any:
    """
    Default deferral: schedule on the running asyncio loop. Without a loop the
    work simply stays pending until `RenderScheduler.poll()` or the next request
    finds it due.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.call_later(delay, callback)


class RenderScheduler:
    def __init__(self, render: Callable[[], Any],
                 should_render: Callable[[], bool] = lambda: True,
                 throttle_seconds: float = 0.1,
                 clock: Callable[[], float] = time.monotonic,
                 defer: Optional[Defer] = None,
                 on_error: Optional[Callable[[str, BaseException], None]] = None,
                 on_timing: Optional[Callable[[float], None]] = None):
        self._render = render
        self._should_render = should_render
        self.throttle_seconds = float(throttle_seconds)
        self._clock = clock
        self._defer = defer or call_later
        self._on_error = on_error
        self._on_timing = on_timing

        self.queue: Deque[float] = deque()
        self.is_rendering = False
        self._pending = False
        self._due_at: Optional[float] = None
        self._last_render: Optional[float] = None
        self.render_count = 0  # renders that reached the display surface

    def is_busy(self) -> bool:
        return self.is_rendering or self._pending

    @property
    def pending(self) -> bool:
        return self._pending

    def request_render(self) -> None:
        self.queue.append(self._clock())
        if self.is_rendering:
            return
        if self._pending:
            # coalesce into the armed slot, or run it if its time already came
            self.poll()
            return
        self._process()

    def poll(self) -> bool:
        """Run the pending render if it is due. Returns True if one ran."""
        if self._pending and self._due_at is not None and self._clock() >= self._due_at:
            self._run_deferred()
            return True
        return False

    def clear(self) -> None:
        self.queue.clear()
        self._pending = False
        self._due_at = None
        self.is_rendering = False

    def _run_deferred(self) -> None:
        if not self._pending:
            # already flushed by poll() or cleared
            return
        self._pending = False
        self._due_at = None
        if self.queue and not self.is_rendering:
            # the throttle window was already waited out
            self._process(gate=False)

    def _process(self, gate: bool = True) -> None:
        now = self._clock()
        if gate and self._last_render is not None:
            elapsed = now - self._last_render
            if elapsed < self.throttle_seconds:
                delay = self.throttle_seconds - elapsed
                self._pending = True
                self._due_at = now + delay
                self._defer(delay, self._run_deferred)
                return

        self.is_rendering = True
        self._last_render = now
        started = time.perf_counter()
        try:
            if self._should_render():
                self._render()
                self.render_count += 1
            if self._on_timing is not None:
                self._on_timing((time.perf_counter() - started) * 1000.0)
        except Exception as exc:
            logger.exception("Error during cart render")
            if self._on_error is not None:
                self._on_error("Error during render", exc)
        finally:
            self.is_rendering = False
            self.queue.clear()
