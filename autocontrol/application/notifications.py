"""
User-facing notifications (toasts). Every container operation reports through here.

Dispatch never raises into the caller: if delivering a notification fails (a broken
listener, say), it is downgraded to a basic alert and logged.
"""

import itertools
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 5000
SUCCESS_DURATION_MS = 4000
ERROR_DURATION_MS = 6000
WARNING_DURATION_MS = 5000
INFO_DURATION_MS = 4000

_sequence = itertools.count()


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: Optional[str] = None
    duration_ms: Optional[int] = DEFAULT_DURATION_MS
    persistent: bool = False
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        if self.persistent or not self.duration_ms:
            return False
        return now >= self.created_at + timedelta(milliseconds=self.duration_ms)


@dataclass(frozen=True)
class NotificationTemplate:
    type: NotificationType
    title: str
    message: Optional[str] = None
    duration_ms: Optional[int] = None
    persistent: bool = False


NotificationListener = Callable[[Notification], None]
AlertHook = Callable[[str], None]


def _notification_id() -> str:
    return f"{int(time.time() * 1000)}-{next(_sequence)}"


class NotificationCenter:
    """In-memory toast queue with listeners. Non-persistent toasts expire after their duration."""

    def __init__(self, alert: Optional[AlertHook] = None) -> None:
        self._notifications: List[Notification] = []
        self._listeners: List[NotificationListener] = []
        self._alert = alert

    @property
    def notifications(self) -> List[Notification]:
        return list(self._notifications)

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add(
        self,
        kind: NotificationType,
        title: str,
        message: Optional[str] = None,
        *,
        duration_ms: Optional[int] = DEFAULT_DURATION_MS,
        persistent: bool = False,
    ) -> Notification:
        """Queue a notification and hand it to every listener. Listener errors propagate."""
        notification = Notification(
            id=_notification_id(),
            type=kind,
            title=title,
            message=message,
            duration_ms=None if persistent else duration_ms,
            persistent=persistent,
            created_at=datetime.now(timezone.utc),
        )
        self._notifications.append(notification)
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def remove(self, notification_id: str) -> None:
        self._notifications = [n for n in self._notifications if n.id != notification_id]

    def clear_all(self) -> None:
        self._notifications = []

    def expire(self, now: Optional[datetime] = None) -> None:
        """Drop notifications whose display time has elapsed."""
        now = now or datetime.now(timezone.utc)
        self._notifications = [n for n in self._notifications if not n.is_expired(now)]

    # --- Safe dispatch ---

    def dispatch(
        self,
        kind: NotificationType,
        title: str,
        message: Optional[str] = None,
        *,
        duration_ms: Optional[int] = DEFAULT_DURATION_MS,
        persistent: bool = False,
    ) -> Optional[Notification]:
        """Like add(), but a failing dispatch is downgraded to a basic alert instead of raising."""
        try:
            return self.add(
                kind, title, message, duration_ms=duration_ms, persistent=persistent
            )
        except Exception as e:
            logger.warning(
                "notification_dispatch_failed",
                extra={"title": title, "notification_type": kind.value, "error": str(e)},
            )
            self._basic_alert(title, message)
            return None

    def _basic_alert(self, title: str, message: Optional[str]) -> None:
        text = f"{title}: {message}" if message else title
        if self._alert is None:
            logger.warning("basic_alert", extra={"alert": text})
            return
        try:
            self._alert(text)
        except Exception as e:
            logger.error("basic_alert_failed", extra={"alert": text, "error": str(e)})

    def emit(self, template: NotificationTemplate) -> Optional[Notification]:
        duration = template.duration_ms
        if duration is None:
            duration = _DEFAULT_DURATIONS[template.type]
        return self.dispatch(
            template.type,
            template.title,
            template.message,
            duration_ms=duration,
            persistent=template.persistent,
        )

    def success(self, title: str, message: Optional[str] = None, duration_ms: int = SUCCESS_DURATION_MS):
        return self.dispatch(NotificationType.SUCCESS, title, message, duration_ms=duration_ms)

    def error(self, title: str, message: Optional[str] = None, persistent: bool = False):
        return self.dispatch(
            NotificationType.ERROR,
            title,
            message,
            duration_ms=None if persistent else ERROR_DURATION_MS,
            persistent=persistent,
        )

    def warning(self, title: str, message: Optional[str] = None, duration_ms: int = WARNING_DURATION_MS):
        return self.dispatch(NotificationType.WARNING, title, message, duration_ms=duration_ms)

    def info(self, title: str, message: Optional[str] = None, duration_ms: int = INFO_DURATION_MS):
        return self.dispatch(NotificationType.INFO, title, message, duration_ms=duration_ms)


_DEFAULT_DURATIONS = {
    NotificationType.SUCCESS: SUCCESS_DURATION_MS,
    NotificationType.ERROR: ERROR_DURATION_MS,
    NotificationType.WARNING: WARNING_DURATION_MS,
    NotificationType.INFO: INFO_DURATION_MS,
}


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class IncidentNotifications:
    @staticmethod
    def created(title: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS,
            "Incident reported",
            f'Incident "{title}" has been recorded.',
        )

    @staticmethod
    def critical_created(title: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.ERROR,
            "Critical incident reported!",
            f'A critical incident was reported: "{title}". It requires immediate attention.',
            persistent=True,
        )

    @staticmethod
    def updated(title: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.INFO, "Incident updated", f'Incident "{title}" has been updated.'
        )

    @staticmethod
    def deleted(title: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS, "Incident deleted", f'Incident "{title}" has been deleted.'
        )

    @staticmethod
    def resolved(title: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS,
            "Incident resolved",
            f'Incident "{title}" has been marked as resolved.',
        )

    @staticmethod
    def reopened(title: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.WARNING, "Incident reopened", f'Incident "{title}" has been reopened.'
        )


class CorrectiveActionNotifications:
    @staticmethod
    def created(incident_title: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS,
            "Corrective action recorded",
            f'A corrective action was added to "{incident_title}".',
        )

    @staticmethod
    def completed(incident_title: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS,
            "Corrective action completed",
            f'A corrective action for "{incident_title}" has been completed.',
        )

    @staticmethod
    def updated() -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.INFO,
            "Corrective action updated",
            "The corrective action has been updated.",
        )

    @staticmethod
    def deleted() -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS,
            "Corrective action deleted",
            "The corrective action has been deleted.",
        )


class UserNotifications:
    @staticmethod
    def created(name: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS, "User created", f'User "{name}" has been created.'
        )

    @staticmethod
    def updated(name: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS, "User updated", f'User "{name}" has been updated.'
        )

    @staticmethod
    def deleted(name: str) -> NotificationTemplate:
        return NotificationTemplate(
            NotificationType.SUCCESS, "User deleted", f'User "{name}" has been deleted.'
        )

    @staticmethod
    def not_allowed(reason: str) -> NotificationTemplate:
        return NotificationTemplate(NotificationType.WARNING, "Action not allowed", reason)
