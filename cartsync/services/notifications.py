"""
User notifications for cart failures.

The sync engine decides when the user must be told about a failure;
a sink decides how (dialog, toast, chat message...).
"""
from abc import ABC, abstractmethod
from enum import Enum

from cartsync.logging import get_logger

logger = get_logger(__name__)


class Severity(str, Enum):
    """Notification severity, mapped by sinks to their own presentation."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationSink(ABC):
    """Receives user-facing (title, message, severity) notifications."""

    @abstractmethod
    async def notify(self, title: str, message: str, severity: Severity) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    """Fallback sink for headless sessions: writes notifications to the log."""

    async def notify(self, title: str, message: str, severity: Severity) -> None:
        if severity in (Severity.ERROR, Severity.WARNING):
            logger.warning(f"[{severity.value}] {title}: {message}")
        else:
            logger.info(f"[{severity.value}] {title}: {message}")
