"""Notification transports used by notify_team steps."""

from abc import ABC, abstractmethod

import httpx

from runbookengine.core.config import get_settings
from runbookengine.core.logging import get_logger
from runbookengine.models.notification import NotificationPayload

logger = get_logger(__name__)


class NotificationTransport(ABC):
    """Abstract base class for notification transports."""

    @property
    @abstractmethod
    def transport_type(self) -> str:
        """Return transport type identifier."""
        pass

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> bool:
        """Deliver a notification.

        Args:
            payload: Notification to deliver

        Returns:
            True if the receiver accepted it
        """
        pass

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass


class WebhookTransport(NotificationTransport):
    """Posts notifications as JSON to the configured webhook endpoint."""

    def __init__(
        self,
        url: str | None = None,
        auth_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self._url = settings.notify_webhook_url if url is None else url
        self._auth_token = settings.notify_auth_token if auth_token is None else auth_token
        self._client = client or httpx.AsyncClient(timeout=settings.notify_timeout_seconds)

    @property
    def transport_type(self) -> str:
        return "webhook"

    async def send(self, payload: NotificationPayload) -> bool:
        if not self._url:
            logger.warning("Webhook transport has no URL configured", title=payload.title)
            return False

        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        try:
            response = await self._client.post(
                self._url,
                json=payload.model_dump(mode="json"),
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error("Webhook send error", error=str(e), title=payload.title)
            return False

        if response.is_success:
            logger.info("Webhook notification sent", title=payload.title)
            return True

        logger.warning(
            "Webhook send failed",
            status_code=response.status_code,
            body=response.text[:200],
        )
        return False

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()


_transport: NotificationTransport | None = None


def get_transport() -> NotificationTransport:
    """Get the process-wide notification transport."""
    global _transport
    if _transport is None:
        _transport = WebhookTransport()
    return _transport


async def close_transport() -> None:
    """Close the process-wide notification transport."""
    global _transport
    if _transport is not None:
        await _transport.close()
        _transport = None
