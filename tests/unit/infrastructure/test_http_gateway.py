"""HttpGateway over httpx.MockTransport: headers, error taxonomy, 401 teardown, circuit breaker."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from autocontrol.application.exceptions import (
    ApiResponseError,
    GatewayUnavailableError,
    SessionExpiredError,
)
from autocontrol.config.settings import AppSettings
from autocontrol.core.context import correlation_id_ctx
from autocontrol.infrastructure.gateway.http_gateway import HttpGateway
from autocontrol.scalability.circuit_breaker import CircuitBreaker, CircuitState


@pytest.fixture
def settings():
    return AppSettings(api_url="http://backend.test", auth_header_name="x-auth-token")


def _gateway(settings, handler, **kwargs):
    return HttpGateway(settings, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_sends_token_and_correlation_id(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": [{"id": "d-1"}]})

    gateway = _gateway(settings, handler)
    gateway.set_token("tok-1")
    token = correlation_id_ctx.set("corr-1")
    try:
        result = await gateway.get("/api/records/delivery")
    finally:
        correlation_id_ctx.reset(token)
        await gateway.aclose()

    assert result == [{"id": "d-1"}]
    request = seen[0]
    assert str(request.url) == "http://backend.test/api/records/delivery"
    assert request.headers["x-auth-token"] == "tok-1"
    assert request.headers["X-Correlation-ID"] == "corr-1"
    assert request.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_no_token_header_when_signed_out(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    gateway = _gateway(settings, handler)
    assert await gateway.get("/api/auth") == {"ok": True}
    assert "x-auth-token" not in seen[0].headers
    await gateway.aclose()


@pytest.mark.asyncio
async def test_post_sends_json_body(settings):
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(201, json={**body, "_id": "srv-1"})

    gateway = _gateway(settings, handler)
    result = await gateway.post("/api/records/delivery", {"supplierId": "s-1"})
    assert result == {"supplierId": "s-1", "_id": "srv-1"}
    await gateway.aclose()


@pytest.mark.asyncio
async def test_empty_response_is_none(settings):
    gateway = _gateway(settings, lambda request: httpx.Response(204))
    assert await gateway.delete("/api/users/u-1") is None
    await gateway.aclose()


@pytest.mark.asyncio
async def test_unauthorized_clears_token_and_runs_callback(settings):
    on_unauthorized = AsyncMock()
    gateway = _gateway(settings, lambda request: httpx.Response(401), on_unauthorized=on_unauthorized)
    gateway.set_token("tok-1")

    with pytest.raises(SessionExpiredError):
        await gateway.get("/api/auth")

    assert gateway.token is None
    on_unauthorized.assert_awaited_once()
    await gateway.aclose()


@pytest.mark.asyncio
async def test_sync_unauthorized_callback(settings):
    on_unauthorized = MagicMock(return_value=None)
    gateway = _gateway(settings, lambda request: httpx.Response(401), on_unauthorized=on_unauthorized)

    with pytest.raises(SessionExpiredError):
        await gateway.put("/api/users/u-1", {"name": "Ana"})

    on_unauthorized.assert_called_once()
    await gateway.aclose()


@pytest.mark.asyncio
async def test_error_response_carries_server_message_and_errors(settings):
    def handler(request):
        return httpx.Response(
            422, json={"message": "Supplier is required", "errors": [{"field": "supplierId"}]}
        )

    gateway = _gateway(settings, handler)
    with pytest.raises(ApiResponseError) as exc:
        await gateway.post("/api/records/delivery", {})

    assert exc.value.message == "Supplier is required"
    assert exc.value.status_code == 422
    assert exc.value.errors == [{"field": "supplierId"}]
    await gateway.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response, expected",
    [
        (httpx.Response(403, json={"error": "Forbidden"}), "Forbidden"),
        (httpx.Response(500, text="<html>oops</html>"), "HTTP 500"),
        (httpx.Response(400, json=["not", "a", "dict"]), "HTTP 400"),
    ],
)
async def test_error_message_fallbacks(settings, response, expected):
    gateway = _gateway(settings, lambda request: response)
    with pytest.raises(ApiResponseError) as exc:
        await gateway.get("/api/users")
    assert exc.value.message == expected
    await gateway.aclose()


@pytest.mark.asyncio
async def test_invalid_json_success_body(settings):
    gateway = _gateway(settings, lambda request: httpx.Response(200, text="not json"))
    with pytest.raises(ApiResponseError):
        await gateway.get("/api/users")
    await gateway.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [httpx.ConnectError("connection refused"), httpx.ReadTimeout("too slow")],
)
async def test_transport_failures_mean_unavailable(settings, error):
    def handler(request):
        raise error

    gateway = _gateway(settings, handler)
    with pytest.raises(GatewayUnavailableError):
        await gateway.get("/api/users")
    await gateway.aclose()


@pytest.mark.asyncio
async def test_open_circuit_fails_fast(settings):
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused")

    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=60, name="test")
    gateway = _gateway(settings, handler, circuit_breaker=breaker)

    for _ in range(3):
        with pytest.raises(GatewayUnavailableError):
            await gateway.get("/api/users")

    assert len(attempts) == 2
    assert breaker.state == CircuitState.OPEN
    await gateway.aclose()


@pytest.mark.asyncio
async def test_answered_errors_do_not_open_circuit(settings):
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout_seconds=60, name="test")
    gateway = _gateway(settings, lambda request: httpx.Response(500), circuit_breaker=breaker)

    for _ in range(2):
        with pytest.raises(ApiResponseError):
            await gateway.get("/api/users")

    assert breaker.state == CircuitState.CLOSED
    await gateway.aclose()
