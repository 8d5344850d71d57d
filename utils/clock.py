"""
Time source shared by the background loops and the rate limiter
"""
import threading
import time
from datetime import datetime, timezone


class SystemClock:
    """Wall clock, monotonic clock and an interruptible sleep."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, stop_event: threading.Event | None = None) -> bool:
        """
        Block for ``seconds``. Returns False if ``stop_event`` was set before
        the time elapsed, True otherwise.
        """
        if seconds <= 0:
            return not (stop_event is not None and stop_event.is_set())
        if stop_event is None:
            time.sleep(seconds)
            return True
        return not stop_event.wait(seconds)
