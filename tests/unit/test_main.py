"""Composition root: wiring, 401 teardown through the real gateway, shutdown."""

import json

import httpx
import pytest

from autocontrol.application.collections import DELIVERY_RECORDS, TOKEN_KEY
from autocontrol.config.settings import AppSettings
from autocontrol.infrastructure.storage.file_store import FileFallbackStore
from autocontrol.infrastructure.storage.memory_store import InMemoryFallbackStore
from autocontrol.main import auto_confirm, build_application, build_fallback_store

ADMIN = {"_id": "u-admin", "name": "Ana Admin", "email": "ana@example.com", "role": "Administrator"}


def _backend(routes):
    def handler(request):
        key = (request.method, request.url.path)
        if key not in routes:
            return httpx.Response(404, json={"message": "Not found"})
        status, body = routes[key]
        if callable(body):
            body = body(request)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def settings():
    return AppSettings(api_url="http://backend.test", storage_backend="memory")


@pytest.mark.asyncio
async def test_start_restores_session_and_adds_remotely(settings):
    routes = {
        ("GET", "/api/auth"): (200, ADMIN),
        ("GET", "/api/users"): (200, [ADMIN]),
        ("GET", "/api/establishment"): (200, {"name": "Bar Central"}),
        ("GET", "/api/records/delivery"): (200, {"success": True, "data": []}),
        ("POST", "/api/records/delivery"): (201, lambda request: {**json.loads(request.content), "_id": "d-1"}),
    }
    store = InMemoryFallbackStore({TOKEN_KEY: "tok-1"})
    app = build_application(settings, store=store, transport=_backend(routes), configure_logs=False)

    assert await app.start() is True
    record = await app.container.add(DELIVERY_RECORDS, {"supplierId": "s-1"})

    assert app.container.current_user.name == "Ana Admin"
    assert app.container.establishment_info.name == "Bar Central"
    assert record.id == "d-1"
    assert (await store.get_json(DELIVERY_RECORDS))[0]["id"] == "d-1"
    await app.aclose()


@pytest.mark.asyncio
async def test_unauthorized_response_tears_session_down(settings):
    routes = {
        ("GET", "/api/auth"): (200, ADMIN),
        ("GET", "/api/users"): (200, [ADMIN]),
        ("GET", "/api/establishment"): (200, {}),
        ("GET", "/api/records/delivery"): (200, []),
        ("POST", "/api/records/delivery"): (401, {"message": "Token expired"}),
    }
    store = InMemoryFallbackStore({TOKEN_KEY: "tok-1"})
    app = build_application(settings, store=store, transport=_backend(routes), configure_logs=False)
    await app.start()

    assert await app.container.add(DELIVERY_RECORDS, {"supplierId": "s-1"}) is None

    assert app.container.current_user is None
    assert app.gateway.token is None
    assert await store.get_json(TOKEN_KEY) is None
    await app.aclose()


@pytest.mark.asyncio
async def test_incident_search_follows_container(settings):
    app = build_application(settings, store=InMemoryFallbackStore(), transport=_backend({}), configure_logs=False)
    search = app.incident_search()

    assert search.results == []
    assert app.incidents.incidents == []
    await search.aclose()
    await app.aclose()


@pytest.mark.asyncio
async def test_auto_confirm_accepts():
    assert await auto_confirm("Delete?") is True


def test_build_fallback_store_by_backend(tmp_path):
    memory = build_fallback_store(AppSettings(storage_backend="memory"))
    file_store = build_fallback_store(
        AppSettings(storage_backend="file", storage_path=str(tmp_path / "store.json"))
    )

    assert isinstance(memory, InMemoryFallbackStore)
    assert isinstance(file_store, FileFallbackStore)
    assert file_store.path == tmp_path / "store.json"


@pytest.mark.asyncio
async def test_offline_start_lists_overdue_incidents(settings):
    def unreachable(request):
        raise httpx.ConnectError("connection refused")

    old_incident = {
        "id": "i-1",
        "title": "Cold-chain break",
        "detectionDate": "2024-01-02",
        "affectedArea": "Walk-in cooler",
        "severity": "Critical",
        "status": "Open",
        "reportedBy": "u-admin",
        "createdAt": "2024-01-02T08:00:00+00:00",
        "updatedAt": "2024-01-02T08:00:00+00:00",
    }
    store = InMemoryFallbackStore(
        {TOKEN_KEY: "tok-1", "currentUser": {**ADMIN, "id": "u-admin"}, "incidents": [old_incident]}
    )
    app = build_application(
        settings, store=store, transport=httpx.MockTransport(unreachable), configure_logs=False
    )

    assert await app.start() is True

    assert app.container.session.offline is True
    assert [i.id for i in app.overdue_incidents()] == ["i-1"]
    await app.aclose()
