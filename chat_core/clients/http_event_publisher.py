import logging
from typing import Optional

import httpx

from chat_core.clients.base_event_publisher import BaseEventPublisher
from chat_core.models.api.events import ChatEvent

logger = logging.getLogger(__name__)


class HttpEventPublisher(BaseEventPublisher):
    """Posts domain events to the real-time transport using httpx."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._transport = transport

    async def publish(self, event: ChatEvent) -> None:
        """Deliver one event. Failures are logged; the change is already committed."""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=5.0
            ) as client:
                response = await client.post(
                    f"{self.base_url}/events",
                    json=event.model_dump(mode="json"),
                    headers=headers,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "Failed to deliver %s event for conversation %s: %s",
                event.event_type,
                event.conversation_id,
                e,
            )
