"""Exceptions for the notifier module."""

from typing import Optional


class NotificationError(Exception):
    """Raised when a channel rejects or cannot receive a notification.

    Notifiers catch this themselves; it never fails a pipeline.
    """

    def __init__(self, channel: str, reason: str, status_code: Optional[int] = None):
        self.channel = channel
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to deliver notification to {channel}: {reason}")
