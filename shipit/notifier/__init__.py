"""Notifier module for reporting terminal pipeline status.

Delivery is best-effort: failures are logged and returned, never raised.

Public API:
    Notifier: Base class for channels.
    SlackNotifier: Slack incoming webhook.
    WebhookNotifier: Generic JSON webhook.
    LogNotifier: Log-only fallback.
    build_notifier: Choose a channel from Settings.
    Notification, RunStatus, DeliveryResult: Data models.
    NotificationError: Raised by channels, caught by Notifier.notify.
"""

from .exceptions import NotificationError
from .models import DeliveryResult, Notification, RunStatus
from .notifier import (
    LogNotifier,
    Notifier,
    SlackNotifier,
    WebhookNotifier,
    build_notifier,
)

__all__ = [
    "Notifier",
    "SlackNotifier",
    "WebhookNotifier",
    "LogNotifier",
    "build_notifier",
    "Notification",
    "RunStatus",
    "DeliveryResult",
    "NotificationError",
]
