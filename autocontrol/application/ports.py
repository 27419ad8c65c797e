"""Ports the application layer depends on; infrastructure implements them."""

from typing import Any, Optional, Protocol


class Gateway(Protocol):
    """Remote data gateway. Raises GatewayUnavailableError, SessionExpiredError or ApiResponseError."""

    token: Optional[str]

    async def request(self, method: str, path: str, body: Any = None) -> Any:
        """Send one request; return the parsed JSON body (None when empty)."""
        ...

    def set_token(self, token: str) -> None:
        ...

    def clear_token(self) -> None:
        ...


class FallbackStore(Protocol):
    """
    String-keyed persistent store holding JSON mirrors of the collections.
    Durability backstop only: display reads go through in-memory state.
    """

    async def get_json(self, key: str) -> Any:
        """Return the decoded value for key, or None if absent."""
        ...

    async def set_json(self, key: str, value: Any) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class Confirmer(Protocol):
    """Asks the operator to confirm a destructive operation."""

    async def __call__(self, message: str) -> bool:
        ...
