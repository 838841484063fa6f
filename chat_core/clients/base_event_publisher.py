from abc import ABC, abstractmethod

from chat_core.models.api.events import ChatEvent


class BaseEventPublisher(ABC):
    """Abstract fan-out boundary towards connected clients.

    Called only after the originating transaction has committed.
    Implementations must not raise for delivery failures.
    """

    @abstractmethod
    async def publish(self, event: ChatEvent) -> None:
        """Hand a domain event to the transport."""
