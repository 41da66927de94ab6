"""Best-effort chat notifications.

One message per saga run (and one per invoice batch) is posted to a webhook
as {"chat_id": ..., "text": ...}. Delivery problems are logged and dropped:
a notification can never change a saga's outcome.
"""

import logging
from typing import Optional

from core.errors import UpstreamUnavailable
from connectors import http

logger = logging.getLogger(__name__)


class Notifier:
    """Posts summary messages to the configured chat webhook."""

    def __init__(
        self,
        webhook_url: Optional[str],
        channel_id: Optional[str],
        timeout_seconds: float = http.DEFAULT_TIMEOUT_SECONDS,
    ):
        self.webhook_url = webhook_url
        self.channel_id = channel_id
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url and self.channel_id)

    async def send(self, text: str) -> bool:
        """Send a message. Returns True if the webhook accepted it."""
        if not self.enabled:
            logger.debug("Notifier not configured, message dropped")
            return False

        try:
            response = await http.request(
                "POST",
                self.webhook_url,
                json_body={"chat_id": self.channel_id, "text": text},
                timeout_seconds=self.timeout_seconds,
            )
        except UpstreamUnavailable as e:
            logger.warning(f"Notification not delivered: {e}")
            return False

        if not response.ok:
            logger.warning(f"Notification rejected with status {response.status}: {response.text[:200]}")
            return False

        logger.info("Notification delivered")
        return True
