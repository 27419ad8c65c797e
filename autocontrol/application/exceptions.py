"""Application-layer exceptions. Do not reuse domain exceptions."""

from typing import Any, List, Optional


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class GatewayUnavailableError(ApplicationError):
    """No HTTP response at all (DNS, refused connection, timeout, open circuit). Triggers local fallback."""


class SessionExpiredError(ApplicationError):
    """Backend answered 401. Session is torn down; the call must never fall back."""

    def __init__(self, message: str = "Session expired.") -> None:
        super().__init__(message)


class ApiResponseError(ApplicationError):
    """Backend answered 4xx/5xx with a body. Message is the server-provided one, shown verbatim."""

    def __init__(
        self,
        message: str,
        status_code: int,
        errors: Optional[List[Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.errors = list(errors or [])
        super().__init__(message)
