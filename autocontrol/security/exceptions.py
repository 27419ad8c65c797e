"""Security-layer exceptions. Typed, no HTTP."""


class SecurityError(Exception):
    """Base for all security-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthorizationError(SecurityError):
    """Raised when the current role does not have permission for the action."""


class TenantIsolationError(SecurityError):
    """Raised when a record belongs to a different company than the current user."""
