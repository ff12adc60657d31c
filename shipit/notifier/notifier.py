"""Best-effort delivery of pipeline status notifications."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from shipit.config import Settings

from .exceptions import NotificationError
from .models import DeliveryResult, Notification, RunStatus

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Abstract base class for notification channels.

    ``notify`` never raises: a failed delivery is logged and returned in
    the DeliveryResult, so a broken channel cannot fail a pipeline.

    To implement a new channel:
    1. Subclass Notifier
    2. Implement channel_name and _send()
    3. Raise NotificationError from _send() on any delivery problem
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Return the name of the channel."""
        pass

    @abstractmethod
    def _send(self, notification: Notification) -> None:
        """Deliver the notification.

        Raises:
            NotificationError: If delivery fails.
        """
        pass

    def notify(self, notification: Notification) -> DeliveryResult:
        """Deliver one notification, swallowing and logging failures."""
        result = DeliveryResult(channel=self.channel_name)
        try:
            self._send(notification)
        except NotificationError as e:
            logger.warning("Notification not delivered: %s", e)
            result.error = e.reason
            return result
        except Exception as e:
            logger.exception("Unexpected error notifying %s", self.channel_name)
            result.error = str(e)
            return result

        result.delivered = True
        logger.info(
            "Notified %s: run %s for %s",
            self.channel_name,
            notification.status.value,
            notification.artifact_id,
        )
        return result


class LogNotifier(Notifier):
    """Writes the notification to the log. Used when no webhook is set."""

    @property
    def channel_name(self) -> str:
        return "log"

    def _send(self, notification: Notification) -> None:
        level = logging.INFO if notification.status == RunStatus.SUCCEEDED else logging.ERROR
        logger.log(level, "Pipeline %s", notification.summary or notification.status.value)


class WebhookNotifier(Notifier):
    """POSTs the raw JSON payload to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self._url = url
        self._timeout = timeout_seconds
        self._client = client

    @property
    def channel_name(self) -> str:
        return "webhook"

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def build_payload(self, notification: Notification) -> dict[str, Any]:
        return notification.to_payload()

    def _send(self, notification: Notification) -> None:
        try:
            response = self._get_client().post(
                self._url, json=self.build_payload(notification)
            )
        except httpx.TimeoutException as e:
            raise NotificationError(self.channel_name, "request timed out") from e
        except httpx.HTTPError as e:
            raise NotificationError(self.channel_name, f"request failed: {e}") from e

        if not response.is_success:
            raise NotificationError(
                self.channel_name,
                f"unexpected status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )


class SlackNotifier(WebhookNotifier):
    """Posts to a Slack incoming webhook.

    The run fields are sent both as message attachment fields (for people)
    and at the top level of the payload (for workflow steps).
    """

    @property
    def channel_name(self) -> str:
        return "slack"

    def build_payload(self, notification: Notification) -> dict[str, Any]:
        succeeded = notification.status == RunStatus.SUCCEEDED
        title = (
            f"{notification.pipeline or 'Pipeline'} "
            f"{'succeeded' if succeeded else 'failed'}"
        )
        fields = [
            {"title": "Artifact", "value": notification.artifact_id, "short": True},
            {"title": "Branch", "value": notification.branch or "-", "short": True},
            {"title": "Actor", "value": notification.actor or "-", "short": True},
        ]
        if notification.failed_stages:
            fields.append(
                {
                    "title": "Failed stages",
                    "value": ", ".join(notification.failed_stages),
                    "short": True,
                }
            )

        payload = notification.to_payload()
        payload["text"] = notification.summary or title
        payload["attachments"] = [
            {
                "color": "good" if succeeded else "danger",
                "title": title,
                "fields": fields,
            }
        ]
        return payload


def build_notifier(settings: Settings) -> Notifier:
    """Pick the notification channel configured in ``settings``.

    Slack wins over a generic webhook; with neither, notifications are
    only logged.
    """
    if settings.slack_webhook_url:
        return SlackNotifier(settings.slack_webhook_url)
    if settings.notify_webhook_url:
        return WebhookNotifier(settings.notify_webhook_url)
    return LogNotifier()
