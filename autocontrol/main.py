# autocontrol/main.py

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx

from autocontrol.application.debounce import IncidentSearch
from autocontrol.application.incident_manager import IncidentLifecycleManager
from autocontrol.application.incident_queries import overdue_incidents
from autocontrol.application.notifications import AlertHook, NotificationCenter
from autocontrol.application.ports import Confirmer, FallbackStore
from autocontrol.application.state_container import DomainStateContainer
from autocontrol.config.logging import configure_logging
from autocontrol.config.settings import AppSettings, get_settings
from autocontrol.domain.models import Incident
from autocontrol.infrastructure.gateway.http_gateway import HttpGateway
from autocontrol.infrastructure.storage.file_store import FileFallbackStore
from autocontrol.infrastructure.storage.memory_store import InMemoryFallbackStore
from autocontrol.infrastructure.storage.redis_store import RedisFallbackStore
from autocontrol.observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


async def auto_confirm(message: str) -> bool:
    """Headless confirmer: accepts every destructive operation. Interactive front ends inject their own."""
    logger.info("confirmation_auto_accepted", extra={"prompt": message})
    return True


def build_fallback_store(settings: AppSettings) -> FallbackStore:
    if settings.storage_backend == "memory":
        return InMemoryFallbackStore()
    if settings.storage_backend == "redis":
        return RedisFallbackStore(url=settings.redis_url, prefix=settings.redis_key_prefix)
    return FileFallbackStore(settings.storage_path)


@dataclass
class Application:
    """Everything one client session needs, wired once by build_application."""

    settings: AppSettings
    gateway: HttpGateway
    store: Any
    notifications: NotificationCenter
    container: DomainStateContainer
    incidents: IncidentLifecycleManager
    metrics: MetricsCollector = field(default_factory=MetricsCollector)

    async def start(self) -> bool:
        """Restore a stored session (if any) and run the initial load. True when signed in."""
        return await self.container.bootstrap()

    def incident_search(self) -> IncidentSearch:
        return IncidentSearch(
            lambda: self.container.incidents,
            delay_seconds=self.settings.search_debounce_seconds,
        )

    def overdue_incidents(self) -> List[Incident]:
        return overdue_incidents(
            self.container.incidents,
            max_days_open=self.settings.overdue_incident_days,
            now=self.container.now(),
        )

    async def aclose(self) -> None:
        await self.gateway.aclose()
        close = getattr(self.store, "aclose", None)
        if close is not None:
            await close()


def build_application(
    settings: Optional[AppSettings] = None,
    *,
    store: Optional[FallbackStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    confirmer: Optional[Confirmer] = None,
    alert: Optional[AlertHook] = None,
    configure_logs: bool = True,
) -> Application:
    """Composition root: the only place that constructs infrastructure."""
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(settings.log_level)

    metrics = MetricsCollector()
    store = store if store is not None else build_fallback_store(settings)
    notifications = NotificationCenter(alert=alert)
    gateway = HttpGateway(settings, transport=transport, metrics=metrics)
    container = DomainStateContainer(
        gateway,
        store,
        notifications,
        confirmer or auto_confirm,
        metrics=metrics,
    )
    # A 401 on any call tears the session down before the caller sees SessionExpiredError.
    gateway.on_unauthorized = container.teardown_session
    manager = IncidentLifecycleManager(container)
    logger.info(
        "application_built",
        extra={
            "app_name": settings.app_name,
            "environment": settings.environment,
            "storage_backend": settings.storage_backend,
        },
    )
    return Application(
        settings=settings,
        gateway=gateway,
        store=store,
        notifications=notifications,
        container=container,
        incidents=manager,
        metrics=metrics,
    )
