"""
Periodic background loop

A loop moves through IDLE -> INITIAL_DELAY -> RUNNING -> SLEEPING -> RUNNING ...
and ends in STOPPED once its stop event is set. Every wait goes through the
injected clock so tests can drive the loop without real sleeps.
"""
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from utils.clock import SystemClock
from utils.exceptions import ShutdownRequested
from utils.logging_config import get_logger


class LoopState(str, Enum):
    IDLE = "idle"
    INITIAL_DELAY = "initial_delay"
    RUNNING = "running"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


class BackgroundLoop:
    name = "background-loop"

    def __init__(self, interval_seconds: float, initial_delay_seconds: float = 0, clock=None):
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.clock = clock or SystemClock()
        self.stop_event = threading.Event()
        self.state = LoopState.IDLE
        self.cycles_completed = 0
        self.last_cycle_started: Optional[datetime] = None
        self.last_cycle_finished: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self._thread: Optional[threading.Thread] = None
        self.logger = get_logger(f"tender.{self.name}", "tender")

    def run_cycle(self) -> Any:
        raise NotImplementedError

    def _run_once(self) -> bool:
        """One guarded cycle. Returns False when the loop should stop."""
        self.state = LoopState.RUNNING
        self.last_cycle_started = self.clock.now()
        try:
            self.run_cycle()
            self.last_error = None
        except ShutdownRequested:
            self.logger.info(f"{self.name}: shutdown requested during cycle")
            return False
        except Exception as exc:
            self.last_error = str(exc)
            self.logger.error(f"{self.name}: cycle failed: {exc}", exc_info=True)
        finally:
            self.last_cycle_finished = self.clock.now()
            self.cycles_completed += 1
        return not self.stop_event.is_set()

    def run_forever(self) -> None:
        self.logger.info(
            f"{self.name} started (initial delay {self.initial_delay_seconds}s, "
            f"interval {self.interval_seconds}s)"
        )
        self.state = LoopState.INITIAL_DELAY
        if self.clock.sleep(self.initial_delay_seconds, self.stop_event):
            while self._run_once():
                self.state = LoopState.SLEEPING
                self.logger.debug(f"{self.name}: sleeping {self.interval_seconds:.0f}s until next cycle")
                if not self.clock.sleep(self.interval_seconds, self.stop_event):
                    break
        self.state = LoopState.STOPPED
        self.logger.info(f"{self.name} stopped")

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self.stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, name=self.name, daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                self.logger.warning(f"{self.name} did not stop within {timeout}s")
        if self._thread is None or not self._thread.is_alive():
            self.state = LoopState.STOPPED

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "cyclesCompleted": self.cycles_completed,
            "lastCycleStarted": self.last_cycle_started.isoformat() if self.last_cycle_started else None,
            "lastCycleFinished": self.last_cycle_finished.isoformat() if self.last_cycle_finished else None,
            "lastError": self.last_error,
        }
