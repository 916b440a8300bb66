import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Type alias for notification callback - return value is ignored
StateChangeCallback = Callable[[str, str, str], Any]  # (name, old_state, new_state)

# Global notification callback - set by application on startup
_notification_callback: Optional[StateChangeCallback] = None


def set_notification_callback(callback: Optional[StateChangeCallback]) -> None:
    """Set the global notification callback for circuit breaker state changes."""
    global _notification_callback
    _notification_callback = callback


def _notify_state_change(name: str, old_state: str, new_state: str) -> None:
    """Notify about state change if callback is registered."""
    if _notification_callback:
        try:
            _notification_callback(name, old_state, new_state)
        except Exception as e:
            logger.error(f"Circuit breaker notification failed: {e}")


class RequestTimeoutError(TimeoutError):
    """The guarded operation did not finish within ``request_timeout``."""

    def __init__(self, message: str = "Request timeout"):
        super().__init__(message)


class CircuitState(Enum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, use fallback
    HALF_OPEN = "half_open"  # Probing whether the service recovered


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CircuitMetrics:
    """Monotonic counters for observability. Never drive transitions."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    fallback_requests: int = 0
    last_failure: Optional[Dict[str, str]] = None
    last_success: Optional[str] = None


@dataclass
class CircuitBreaker:
    """
    Guards one remote operation kind (e.g. quote-request writes).

    ``execute`` runs the operation under ``request_timeout``; after
    ``failure_threshold`` consecutive failures the circuit opens and every
    call goes straight to the fallback until ``timeout`` seconds have passed.
    The first call after that is admitted as a probe (HALF_OPEN);
    ``success_threshold`` consecutive probe successes close the circuit, a
    single probe failure reopens it.
    """

    name: str
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout: float = 60.0  # seconds to stay OPEN
    request_timeout: float = 5.0  # per-call deadline, seconds

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _success_count: int = field(default=0, init=False)
    _next_attempt_time: float = field(default_factory=time.monotonic, init=False)
    metrics: CircuitMetrics = field(default_factory=CircuitMetrics, init=False)

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info(f"Circuit {self.name}: {old_state.name} -> {new_state.name}")
        _notify_state_change(self.name, old_state.value, new_state.value)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run ``operation`` through the breaker, using ``fallback`` when the
        circuit is open or the failure just opened it.

        Errors from ``fallback`` propagate to the caller unchanged.
        """
        self.metrics.total_requests += 1

        if self._state == CircuitState.OPEN:
            if time.monotonic() < self._next_attempt_time:
                logger.warning(f"Circuit {self.name}: OPEN, using fallback")
                self.metrics.fallback_requests += 1
                return await fallback()
            self._transition(CircuitState.HALF_OPEN)

        try:
            result = await self._execute_with_timeout(operation)
        except Exception as e:
            self._on_failure(e)
            if self._state == CircuitState.OPEN:
                logger.warning(f"Circuit {self.name}: operation failed, using fallback: {e}")
                self.metrics.fallback_requests += 1
                return await fallback()
            raise

        self._on_success()
        return result

    async def _execute_with_timeout(self, operation: Callable[[], Awaitable[T]]) -> T:
        # wait_for cancels the in-flight attempt on expiry instead of abandoning it
        try:
            return await asyncio.wait_for(operation(), timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError() from e

    def _on_success(self) -> None:
        self._failure_count = 0
        self.metrics.successful_requests += 1
        self.metrics.last_success = _utc_iso()

        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._success_count = 0
                self._transition(CircuitState.CLOSED)

    def _on_failure(self, error: BaseException) -> None:
        self._failure_count += 1
        self.metrics.failed_requests += 1
        self.metrics.last_failure = {"timestamp": _utc_iso(), "error": str(error)}

        logger.error(
            f"Circuit {self.name}: failure {self._failure_count}/{self.failure_threshold}: {error}"
        )

        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._success_count = 0
            self._next_attempt_time = time.monotonic() + self.timeout
            self._transition(CircuitState.OPEN)

    def get_metrics(self) -> Dict[str, Any]:
        """Snapshot of counters plus current state. Never mutates the breaker."""
        total = self.metrics.total_requests
        success_rate = round(self.metrics.successful_requests / total * 100, 2) if total > 0 else 0.0
        return {
            "name": self.name,
            "total_requests": total,
            "successful_requests": self.metrics.successful_requests,
            "failed_requests": self.metrics.failed_requests,
            "fallback_requests": self.metrics.fallback_requests,
            "last_failure": dict(self.metrics.last_failure) if self.metrics.last_failure else None,
            "last_success": self.metrics.last_success,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_rate": success_rate,
        }

    def reset(self) -> None:
        """Force the circuit CLOSED (manual recovery)."""
        self._failure_count = 0
        self._success_count = 0
        self._next_attempt_time = time.monotonic()
        self._transition(CircuitState.CLOSED)
        logger.info(f"Circuit {self.name}: manually reset")
