"""Async circuit breaker shared by the Gemini and S3 clients.

CLOSED passes calls through. After `failure_threshold` consecutive failures
the circuit OPENS and calls are rejected until `recovery_timeout` elapses;
then one probe is let through (HALF_OPEN) and its outcome decides whether
the circuit closes again or reopens.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum

from tubeflow.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int
    recovery_timeout: float


class CircuitBreaker:
    """Tracks consecutive failures of one outbound service."""

    def __init__(self, config: CircuitBreakerConfig, name: str = "default") -> None:
        self._config = config
        self._name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def _transition(self, new_state: CircuitState) -> None:
        previous = self._state
        self._state = new_state
        fields = {
            "circuit_name": self._name,
            "previous_state": previous.value,
            "new_state": new_state.value,
            "failure_count": self._failure_count,
        }
        if new_state == CircuitState.OPEN:
            logger.warning(
                "Circuit breaker opened",
                extra={**fields, "recovery_timeout": self._config.recovery_timeout},
            )
        else:
            logger.info("Circuit breaker state change", extra=fields)

    async def can_execute(self) -> bool:
        """Return True when a call may be attempted now."""
        async with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            if (
                self._opened_at is not None
                and time.monotonic() - self._opened_at >= self._config.recovery_timeout
            ):
                self._transition(CircuitState.HALF_OPEN)
                return True
            return False

    async def record_success(self) -> None:
        """Record a successful call."""
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._opened_at = None
                self._transition(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        """Record a failed call."""
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._config.failure_threshold
            ):
                self._opened_at = time.monotonic()
                self._transition(CircuitState.OPEN)
