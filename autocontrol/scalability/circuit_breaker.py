"""Circuit breaker around the backend: CLOSED, OPEN, HALF_OPEN. Only unavailability counts as failure."""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from autocontrol.application.exceptions import GatewayUnavailableError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    After failure_threshold consecutive GatewayUnavailableError failures, open for
    recovery_timeout_seconds and fail fast with GatewayUnavailableError (so callers take
    the local fallback path immediately), then half-open for one probe.
    Application errors and 401s mean the backend answered: they reset the count.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout_seconds: float = 30.0,
        name: str = "backend",
        metrics_callback: Any = None,
    ) -> None:
        self._threshold = failure_threshold
        self._recovery_timeout = recovery_timeout_seconds
        self._name = name
        self._metrics = metrics_callback
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_time: float | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def _record_success(self) -> None:
        self._failures = 0
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._last_failure_time = time.monotonic()
        self._failures += 1
        if self._metrics and hasattr(self._metrics, "increment"):
            self._metrics.increment("circuit_breaker_failure", 1, category=self._name)
        if self._failures >= self._threshold and self._state != CircuitState.OPEN:
            self._state = CircuitState.OPEN
            logger.warning("circuit_opened", extra={"circuit": self._name, "failures": self._failures})

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute func through the circuit. Raises GatewayUnavailableError while OPEN."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = (
                    time.monotonic() - self._last_failure_time
                    if self._last_failure_time is not None
                    else 0.0
                )
                if elapsed >= self._recovery_timeout:
                    self._state = CircuitState.HALF_OPEN
                else:
                    raise GatewayUnavailableError(f"Circuit breaker {self._name} is OPEN")
            # CLOSED or HALF_OPEN: try the call
        try:
            result = await func(*args, **kwargs)
        except GatewayUnavailableError:
            async with self._lock:
                self._record_failure()
                if self._state == CircuitState.HALF_OPEN:
                    self._state = CircuitState.OPEN
            raise
        except Exception:
            async with self._lock:
                self._record_success()
            raise
        async with self._lock:
            self._record_success()
        return result
