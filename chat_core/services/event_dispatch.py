import logging

from chat_core.clients.base_event_publisher import BaseEventPublisher
from chat_core.models.api.events import ChatEvent

logger = logging.getLogger(__name__)


async def publish_after_commit(publisher: BaseEventPublisher, event: ChatEvent) -> None:
    """Hand an event to the publisher once its transaction has committed.

    The change is already durable, so a delivery failure is logged and the
    caller still gets its result.
    """
    try:
        await publisher.publish(event)
    except Exception:
        logger.exception(
            "Event publisher failed for %s in conversation %s",
            event.event_type,
            event.conversation_id,
        )
