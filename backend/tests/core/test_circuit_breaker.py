"""Tests for the shared CircuitBreaker.

Tests the circuit breaker used by the Gemini and S3 clients:
- Initial state is CLOSED
- Opens after failure_threshold consecutive failures
- Rejects calls while OPEN, lets one probe through after recovery_timeout
- Closes on a successful probe, reopens on a failed one
"""

import pytest

from tubeflow.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState


def make_breaker(threshold: int = 3, recovery: float = 30.0) -> CircuitBreaker:
    return CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=threshold, recovery_timeout=recovery),
        name="test",
    )


class TestCircuitBreakerInitialState:
    """Test initial state of CircuitBreaker."""

    def test_initial_state_is_closed(self) -> None:
        cb = make_breaker()

        assert cb.state == CircuitState.CLOSED
        assert cb.is_open is False
        assert cb.failure_count == 0
        assert cb.name == "test"

    @pytest.mark.asyncio
    async def test_closed_circuit_allows_calls(self) -> None:
        assert await make_breaker().can_execute() is True


class TestCircuitBreakerOpens:
    """Test that the circuit opens after failure_threshold failures."""

    @pytest.mark.asyncio
    async def test_opens_after_reaching_threshold(self) -> None:
        cb = make_breaker(threshold=3)

        await cb.record_failure()
        await cb.record_failure()
        assert cb.state == CircuitState.CLOSED

        await cb.record_failure()
        assert cb.state == CircuitState.OPEN
        assert await cb.can_execute() is False

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self) -> None:
        """Only consecutive failures count toward the threshold."""
        cb = make_breaker(threshold=3)

        await cb.record_failure()
        await cb.record_failure()
        await cb.record_success()
        await cb.record_failure()

        assert cb.failure_count == 1
        assert cb.state == CircuitState.CLOSED


class TestCircuitBreakerRecovery:
    """Test HALF_OPEN probing after the recovery timeout."""

    @pytest.mark.asyncio
    async def test_probe_allowed_after_recovery_timeout(self) -> None:
        cb = make_breaker(threshold=1, recovery=0.0)
        await cb.record_failure()

        assert await cb.can_execute() is True
        assert cb.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_successful_probe_closes_circuit(self) -> None:
        cb = make_breaker(threshold=1, recovery=0.0)
        await cb.record_failure()
        await cb.can_execute()

        await cb.record_success()

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    @pytest.mark.asyncio
    async def test_failed_probe_reopens_circuit(self) -> None:
        cb = make_breaker(threshold=5, recovery=0.0)
        for _ in range(5):
            await cb.record_failure()
        await cb.can_execute()

        await cb.record_failure()

        assert cb.state == CircuitState.OPEN
