"""Notification collaborator.

The core only needs "deliver this message to these users and tell me how many
were reached". Delivery itself is either a webhook relay (push/email gateway)
or, when none is configured, the application log.
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from app.config import get_settings
from app.utils.http_client import AsyncHttpClient

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Delivery failed."""


class Notifier(Protocol):
    async def send(
        self,
        user_ids: Sequence[str],
        title: str,
        content: str,
        data: dict[str, Any] | None = None,
    ) -> int:
        """Deliver to ``user_ids`` and return the reach count."""
        ...


class LoggingNotifier:
    """Writes notifications to the log. Used when no relay is configured."""

    async def send(
        self,
        user_ids: Sequence[str],
        title: str,
        content: str,
        data: dict[str, Any] | None = None,
    ) -> int:
        logger.info(f"Notification: title={title!r} recipients={len(user_ids)}")
        return len(user_ids)


class WebhookNotifier:
    """Posts notifications to an HTTP relay in batches."""

    def __init__(
        self,
        url: str,
        batch_size: int = 500,
        http_client: AsyncHttpClient | None = None,
    ):
        self.url = url
        self.batch_size = batch_size
        self._http_client = http_client or AsyncHttpClient()

    async def send(
        self,
        user_ids: Sequence[str],
        title: str,
        content: str,
        data: dict[str, Any] | None = None,
    ) -> int:
        reached = 0
        try:
            async with self._http_client as client:
                for start in range(0, len(user_ids), self.batch_size):
                    batch = list(user_ids[start:start + self.batch_size])
                    # Any 2xx is delivery; the reply body is ignored
                    await client.post(
                        self.url,
                        json={
                            "user_ids": batch,
                            "title": title,
                            "content": content,
                            "data": data or {},
                        },
                    )
                    reached += len(batch)
        except httpx.HTTPError as e:
            raise NotificationError(f"Relay delivery failed after {reached} recipients: {e}") from e
        return reached


def get_notifier() -> Notifier:
    settings = get_settings()
    if settings.notification_webhook_url:
        return WebhookNotifier(
            settings.notification_webhook_url,
            batch_size=settings.notification_batch_size,
        )
    return LoggingNotifier()
