"""
Process-wide rate limiter for outbound GosPlan requests
"""
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from utils.clock import SystemClock
from utils.exceptions import ShutdownRequested

# How often a blocked caller re-checks its stop event while another request holds the permit
_ACQUIRE_POLL_SECONDS = 0.1


class RateLimiter:
    """
    Single permit with a minimum gap between requests.

    The permit is held for the whole request and the gap is measured from the
    end of the previous request, so consecutive requests never overlap and are
    never closer together than ``min_interval_seconds``.
    """

    def __init__(self, min_interval_seconds: float, clock=None):
        self.min_interval_seconds = max(0.0, float(min_interval_seconds))
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._last_finished: Optional[float] = None

    def _acquire(self, stop_event: threading.Event | None) -> None:
        while not self._lock.acquire(timeout=_ACQUIRE_POLL_SECONDS):
            if stop_event is not None and stop_event.is_set():
                raise ShutdownRequested("Stopped while waiting for the rate limiter")

    @contextmanager
    def permit(self, stop_event: threading.Event | None = None) -> Iterator[None]:
        self._acquire(stop_event)
        try:
            if stop_event is not None and stop_event.is_set():
                raise ShutdownRequested("Stopped before the request was issued")
            if self._last_finished is not None:
                wait = self.min_interval_seconds - (self._clock.monotonic() - self._last_finished)
                if wait > 0 and not self._clock.sleep(wait, stop_event):
                    raise ShutdownRequested("Stopped while waiting for the rate limiter")
            try:
                yield
            finally:
                self._last_finished = self._clock.monotonic()
        finally:
            self._lock.release()
