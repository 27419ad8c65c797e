# Application layer: the state container, incident manager and read-side projections.
# Only leaf modules are re-exported here; import the container and manager from their modules.

from autocontrol.application.exceptions import (
    ApiResponseError,
    ApplicationError,
    GatewayUnavailableError,
    SessionExpiredError,
)
from autocontrol.application.notifications import Notification, NotificationCenter, NotificationType

__all__ = [
    "ApiResponseError",
    "ApplicationError",
    "GatewayUnavailableError",
    "Notification",
    "NotificationCenter",
    "NotificationType",
    "SessionExpiredError",
]
