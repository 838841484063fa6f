import logging
from collections import deque
from typing import Deque, List, Type

from chat_core import config
from chat_core.clients.base_event_publisher import BaseEventPublisher
from chat_core.models.api.events import ChatEvent

logger = logging.getLogger(__name__)


class InMemoryEventPublisher(BaseEventPublisher):
    """Keeps the most recent events in memory. Used when no transport is configured.

    Only the last ``max_events`` events are retained; older ones are dropped.
    """

    def __init__(self, max_events: int = config.EVENT_BUFFER_SIZE) -> None:
        self._events: Deque[ChatEvent] = deque(maxlen=max_events)

    @property
    def events(self) -> List[ChatEvent]:
        return list(self._events)

    async def publish(self, event: ChatEvent) -> None:
        logger.debug(
            "Event %s for conversation %s", event.event_type, event.conversation_id
        )
        self._events.append(event)

    def of_type(self, event_class: Type[ChatEvent]) -> List[ChatEvent]:
        return [event for event in self._events if isinstance(event, event_class)]

    def clear(self) -> None:
        self._events.clear()
