# src/taskflow/core/notify.py

from __future__ import annotations

import logging

from .ports import Notification, NotificationLevel

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Default Notifier: toasts go to the log (errors at WARNING)."""

    def notify(self, notification: Notification) -> None:
        level = logging.WARNING if notification.level == NotificationLevel.ERROR else logging.INFO
        if notification.rule_id:
            logger.log(level, "[rule %s] %s", notification.rule_id, notification.message)
        else:
            logger.log(level, "%s", notification.message)
