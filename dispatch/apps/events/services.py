import logging

from django.conf import settings
from django.db import DatabaseError

from infrastructure.cache import add_cache_key

from .constants import EventTypes
from .models import OrderEvent

logger = logging.getLogger(__name__)


# Event Idempotency
def mark_event_published(event_id: str, ttl: int = 86400) -> bool:
    """Returns False when the event was already marked as published."""
    return add_cache_key(f"event:published:{event_id}", "published", ttl)


class EventService:
    """Audit trail of order lifecycle events, mirrored to Kafka.

    Recording an event never fails the transition that produced it: the
    state write is already committed, so errors are logged and dropped.
    """

    def __init__(self, publisher=None, enabled=None):
        self._publisher = publisher
        self.enabled = settings.DISPATCH_EVENTS_ENABLED if enabled is None else enabled

    @property
    def publisher(self):
        if self._publisher is None and self.enabled:
            from infrastructure.kafka_client import get_kafka_client

            self._publisher = get_kafka_client()
        return self._publisher

    def record(
        self,
        order_id,
        event_type,
        actor=None,
        from_phase="",
        to_phase="",
        driver_id=None,
        event_data=None,
    ):
        try:
            event = OrderEvent.objects.create(
                order_id=order_id,
                driver_id=driver_id,
                event_type=event_type,
                actor_role=actor.role if actor else "",
                actor_id=actor.user_id if actor else "",
                from_phase=from_phase or "",
                to_phase=to_phase or "",
                event_data=event_data or {},
            )
        except DatabaseError as e:
            logger.error(f"Failed to record {event_type} for order {order_id}: {e}")
            return None

        self.publish(event)
        return event

    def publish(self, event):
        publisher = self.publisher
        if publisher is None:
            return False
        if not mark_event_published(str(event.id)):
            logger.info(f"Event {event.id} already published, skipping")
            return True

        kafka_msg = {
            "event_id": str(event.id),
            "event_type": event.event_type,
            "timestamp": event.timestamp.isoformat(),
            "order_id": str(event.order_id),
            "driver_id": event.driver_id,
            "actor": {"role": event.actor_role, "id": event.actor_id},
            "from_phase": event.from_phase,
            "to_phase": event.to_phase,
            "data": event.event_data,
        }
        topic = EventTypes.TOPICS.get(event.event_type, EventTypes.TOPICS[EventTypes.ORDER_STATUS_CHANGED])
        return publisher.publish(topic=topic, event_data=kafka_msg, key=str(event.order_id))

    @staticmethod
    def get_order_events(order_id):
        return OrderEvent.objects.filter(order_id=order_id).order_by("timestamp")
