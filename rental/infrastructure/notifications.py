"""Notifier that mirrors user-facing toasts into the application log."""

import logging

from rental.domain.enums import NotificationLevel
from rental.domain.ports import Notification

logger = logging.getLogger(__name__)

_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class LoggingNotifier:
    def notify(self, user_id: str, notification: Notification) -> None:
        logger.log(
            _LEVELS[notification.level],
            "[%s] %s: %s",
            user_id,
            notification.level.value,
            notification.message,
        )
