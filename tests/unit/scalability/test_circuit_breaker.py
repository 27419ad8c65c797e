"""CircuitBreaker: state transitions CLOSED -> OPEN -> HALF_OPEN; only unavailability counts."""

import asyncio

import pytest

from autocontrol.application.exceptions import ApiResponseError, GatewayUnavailableError
from autocontrol.scalability.circuit_breaker import CircuitBreaker, CircuitState


async def _unavailable():
    raise GatewayUnavailableError("connection refused")


@pytest.mark.asyncio
async def test_closed_success():
    cb = CircuitBreaker(failure_threshold=3, recovery_timeout_seconds=0.1)

    async def ok():
        return 42

    result = await cb.call(ok)
    assert result == 42
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_opens_after_threshold_and_fails_fast():
    cb = CircuitBreaker(failure_threshold=3, recovery_timeout_seconds=10.0)

    for _ in range(3):
        with pytest.raises(GatewayUnavailableError):
            await cb.call(_unavailable)
    assert cb.state == CircuitState.OPEN

    calls = []

    async def probe():
        calls.append(1)
        return 1

    with pytest.raises(GatewayUnavailableError, match="OPEN"):
        await cb.call(probe)
    assert calls == []


@pytest.mark.asyncio
async def test_application_errors_do_not_open():
    cb = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=10.0)

    async def rejected():
        raise ApiResponseError("Invalid data", 400)

    for _ in range(5):
        with pytest.raises(ApiResponseError):
            await cb.call(rejected)
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_answered_request_resets_failure_count():
    cb = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=10.0)

    async def rejected():
        raise ApiResponseError("Invalid data", 400)

    with pytest.raises(GatewayUnavailableError):
        await cb.call(_unavailable)
    with pytest.raises(ApiResponseError):
        await cb.call(rejected)
    with pytest.raises(GatewayUnavailableError):
        await cb.call(_unavailable)
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_after_recovery():
    cb = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=0.05)

    for _ in range(2):
        with pytest.raises(GatewayUnavailableError):
            await cb.call(_unavailable)
    assert cb.state == CircuitState.OPEN

    await asyncio.sleep(0.1)

    async def ok():
        return 1

    result = await cb.call(ok)
    assert result == 1
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_failure_opens_again():
    cb = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=0.05)

    for _ in range(2):
        with pytest.raises(GatewayUnavailableError):
            await cb.call(_unavailable)
    await asyncio.sleep(0.1)
    with pytest.raises(GatewayUnavailableError):
        await cb.call(_unavailable)
    assert cb.state == CircuitState.OPEN
