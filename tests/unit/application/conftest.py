"""Fixtures for application tests: a scripted gateway, in-memory store and a fixed clock."""

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest

from autocontrol.application.collections import TOKEN_KEY
from autocontrol.application.exceptions import (
    ApiResponseError,
    GatewayUnavailableError,
    SessionExpiredError,
)
from autocontrol.application.incident_manager import IncidentLifecycleManager
from autocontrol.application.notifications import NotificationCenter
from autocontrol.application.state_container import DomainStateContainer
from autocontrol.infrastructure.storage.memory_store import InMemoryFallbackStore

FIXED_NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

# Route value that behaves like a backend answering 401
UNAUTHORIZED = object()

ADMIN = {
    "id": "u-admin",
    "name": "Ana Admin",
    "email": "ana@example.com",
    "role": "Administrator",
    "isActive": True,
    "companyId": "c-1",
}
STAFF = {
    "id": "u-staff",
    "name": "Luis Staff",
    "email": "luis@example.com",
    "role": "User",
    "isActive": True,
    "companyId": "c-1",
}
VIEWER = {
    "id": "u-viewer",
    "name": "Eva Viewer",
    "email": "eva@example.com",
    "role": "ReadOnly",
    "isActive": True,
    "companyId": "c-1",
}
OTHER_COMPANY = {
    "id": "u-other",
    "name": "Otto Other",
    "email": "otto@example.com",
    "role": "Administrator",
    "isActive": True,
    "companyId": "c-2",
}
ESTABLISHMENT = {
    "name": "Bar Central",
    "address": "Calle Mayor 1",
    "city": "Madrid",
    "postalCode": "28001",
    "sanitaryRegistry": "RGSEAA-123",
}


class FakeGateway:
    """
    Scripted stand-in for HttpGateway. routes maps (method, path) to a value, an exception,
    a callable taking the request body, or UNAUTHORIZED. Unknown routes answer 404.
    """

    def __init__(self) -> None:
        self.token: Optional[str] = None
        self.on_unauthorized = None
        self.unavailable = False
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.calls: List[Tuple[str, str, Any]] = []

    def set_token(self, token: str) -> None:
        self.token = token

    def clear_token(self) -> None:
        self.token = None

    async def request(self, method: str, path: str, body: Any = None) -> Any:
        self.calls.append((method, path, copy.deepcopy(body)))
        if self.unavailable:
            raise GatewayUnavailableError("Backend unreachable")
        if (method, path) not in self.routes:
            raise ApiResponseError("Not found", 404)
        outcome = self.routes[(method, path)]
        if outcome is UNAUTHORIZED:
            self.clear_token()
            if self.on_unauthorized is not None:
                await self.on_unauthorized()
            raise SessionExpiredError()
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(body)
        return copy.deepcopy(outcome)


@pytest.fixture
def accounts():
    return {
        "admin": dict(ADMIN),
        "staff": dict(STAFF),
        "viewer": dict(VIEWER),
        "other": dict(OTHER_COMPANY),
    }


@pytest.fixture
def establishment():
    return dict(ESTABLISHMENT)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def unauthorized():
    return UNAUTHORIZED


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store():
    return InMemoryFallbackStore()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def confirmer():
    return AsyncMock(return_value=True)


@pytest.fixture
def container(gateway, store, notifications, confirmer):
    c = DomainStateContainer(gateway, store, notifications, confirmer, clock=lambda: FIXED_NOW)
    gateway.on_unauthorized = c.teardown_session
    return c


@pytest.fixture
def manager(container):
    return IncidentLifecycleManager(container)


@pytest.fixture
def sign_in(container, gateway, store, notifications):
    """Restore a session for `user` against a reachable backend, then clear the toasts."""

    async def _sign_in(
        user: dict = ADMIN,
        users: Optional[list] = None,
        deliveries: Optional[list] = None,
        establishment: Optional[dict] = None,
    ):
        gateway.routes[("GET", "/api/auth")] = user
        gateway.routes[("GET", "/api/users")] = (
            users if users is not None else [ADMIN, STAFF, VIEWER, OTHER_COMPANY]
        )
        gateway.routes[("GET", "/api/establishment")] = establishment or ESTABLISHMENT
        gateway.routes[("GET", "/api/records/delivery")] = deliveries or []
        await store.set_json(TOKEN_KEY, "tok-1")
        assert await container.bootstrap()
        notifications.clear_all()
        return container.current_user

    return _sign_in
