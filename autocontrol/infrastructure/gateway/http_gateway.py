"""
Remote data gateway over httpx. Maps transport outcomes onto the application error taxonomy:

* no response (connect error, DNS, timeout, open circuit) -> GatewayUnavailableError
* 401                                                     -> teardown callback, SessionExpiredError
* other 4xx/5xx                                           -> ApiResponseError with the server message
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from autocontrol.application.exceptions import (
    ApiResponseError,
    GatewayUnavailableError,
    SessionExpiredError,
)
from autocontrol.config.settings import AppSettings, get_settings
from autocontrol.core.context import correlation_id_ctx
from autocontrol.scalability.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

UnauthorizedCallback = Callable[[], Union[None, Awaitable[None]]]


def _error_message(response: httpx.Response) -> tuple[str, list]:
    """Server-provided message and field errors, or 'HTTP <code>' when the body has none."""
    fallback = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback, []
    if not isinstance(body, dict):
        return fallback, []
    message = body.get("message") or body.get("error") or fallback
    errors = body.get("errors") or []
    if not isinstance(errors, list):
        errors = [errors]
    return str(message), errors


def _unwrap(body: Any) -> Any:
    if isinstance(body, dict) and "success" in body and "data" in body:
        return body["data"]
    return body


class HttpGateway:
    """
    Single entry point for backend calls. Holds the session token and attaches it to
    every request. Stateless otherwise: session teardown is delegated to on_unauthorized.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[UnauthorizedCallback] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics: Any = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=self._settings.api_url,
            timeout=self._settings.request_timeout_seconds,
            transport=transport,
        )
        self._breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=self._settings.circuit_failure_threshold,
            recovery_timeout_seconds=self._settings.circuit_recovery_seconds,
            name="backend",
            metrics_callback=metrics,
        )
        self.on_unauthorized = on_unauthorized
        self.token: Optional[str] = None

    def set_token(self, token: str) -> None:
        self.token = token

    def clear_token(self) -> None:
        self.token = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers[self._settings.auth_header_name] = self.token
        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    async def _send(self, method: str, path: str, body: Any) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                path,
                json=body,
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            raise GatewayUnavailableError(f"Request to {path} timed out") from e
        except httpx.TransportError as e:
            raise GatewayUnavailableError(f"Backend unreachable: {e}") from e

    async def request(self, method: str, path: str, body: Any = None) -> Any:
        """Send one request. Returns the parsed (and unwrapped) JSON body, None when empty."""
        try:
            response = await self._breaker.call(self._send, method.upper(), path, body)
        except GatewayUnavailableError as e:
            logger.warning(
                "gateway_unavailable",
                extra={"method": method.upper(), "path": path, "error": e.message},
            )
            raise

        if response.status_code == 401:
            logger.warning("session_expired", extra={"method": method.upper(), "path": path})
            await self._handle_unauthorized()
            raise SessionExpiredError()

        if response.status_code >= 400:
            message, errors = _error_message(response)
            logger.info(
                "gateway_error_response",
                extra={"path": path, "status_code": response.status_code, "error": message},
            )
            raise ApiResponseError(message, response.status_code, errors)

        if not response.content:
            return None
        try:
            return _unwrap(response.json())
        except ValueError as e:
            raise ApiResponseError(
                f"Invalid JSON from {path}", response.status_code
            ) from e

    async def _handle_unauthorized(self) -> None:
        self.clear_token()
        if self.on_unauthorized is None:
            return
        result = self.on_unauthorized()
        if result is not None:
            await result

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request("POST", path, body)

    async def put(self, path: str, body: Any = None) -> Any:
        return await self.request("PUT", path, body)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def aclose(self) -> None:
        await self._client.aclose()
