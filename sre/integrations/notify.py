"""Progress notifiers.

The workflow reports progress through anything with an async notify(text)
method. Two implementations live here:

Webhook mode: set NOTIFY_WEBHOOK_URL in your .env — every message is POSTed
              as {"text": ...}, the shape chat incoming-webhooks accept.
Log mode:     leave it unset — messages only go to the log.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_SECONDS = 10


class LoggingNotifier:
    """Writes progress messages to the log."""

    async def notify(self, text: str) -> None:
        logger.info("notify: %s", text)


class WebhookNotifier:
    """POSTs progress messages to an incoming-webhook URL.

    Attributes:
        url: Webhook endpoint. Treat it as a secret; never commit it.
    """

    def __init__(self, url: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.url = url
        self._transport = transport

    async def notify(self, text: str) -> None:
        """Send one message.

        Raises:
            httpx.HTTPError: On a transport failure or non-2xx response.
                The workflow catches and logs it.
        """
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS, transport=self._transport) as client:
            response = await client.post(self.url, json={"text": text})
            response.raise_for_status()
        logger.debug("Webhook notification delivered (%d chars).", len(text))


def build_notifier(webhook_url: str | None):
    """Return a WebhookNotifier if a URL is configured, else a LoggingNotifier."""
    return WebhookNotifier(webhook_url) if webhook_url else LoggingNotifier()
