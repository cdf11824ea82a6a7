import threading
import time
from typing import Any, Callable, Dict, Optional
from enum import Enum

from planner.errors import CircuitOpenError
from planner.obs.logger import log_event


class CircuitState(Enum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"      # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """Stops calling a dependency after repeated failures.

    After ``failure_threshold`` consecutive failures the breaker opens and
    calls fail fast with ``CircuitOpenError`` until ``recovery_timeout``
    seconds pass; the next call is then let through as a probe. A failed
    probe reopens it, a successful one closes it.

    Shared by every session, and sessions run in the host's threadpool, so
    state changes happen under a lock. The wrapped call itself runs outside it.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        expected_exception: type = Exception,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = CircuitState.CLOSED
        self._clock = clock
        self._lock = threading.Lock()

    def call(self, func: Callable, *args, **kwargs) -> Any:
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._record_failure()
            raise
        self._record_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self.failure_count = 0
            self.last_failure_time = None
            self.state = CircuitState.CLOSED
        log_event("circuit_reset", breaker=self.name)

    def _before_call(self) -> None:
        with self._lock:
            if self.state != CircuitState.OPEN:
                return
            elapsed = self._clock() - (self.last_failure_time or 0)
            if elapsed < self.recovery_timeout:
                raise CircuitOpenError(f"Circuit breaker {self.name} is OPEN")
            self.state = CircuitState.HALF_OPEN

    def _record_success(self) -> None:
        with self._lock:
            recovered = self.state == CircuitState.HALF_OPEN
            self.failure_count = 0
            self.state = CircuitState.CLOSED
        if recovered:
            log_event("circuit_closed", breaker=self.name)

    def _record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = self._clock()
            trips = self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold
            opened = trips and self.state != CircuitState.OPEN
            if trips:
                self.state = CircuitState.OPEN
        if opened:
            log_event("circuit_opened", level="WARNING", breaker=self.name, failures=self.failure_count)

    def get_state(self) -> Dict:
        with self._lock:
            return {
                "name": self.name,
                "state": self.state.value,
                "failure_count": self.failure_count,
                "last_failure": self.last_failure_time,
            }
