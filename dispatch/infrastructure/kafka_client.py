import json
import logging
from datetime import timedelta

from confluent_kafka import Producer
from confluent_kafka.error import KafkaError, KafkaException
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

logger = logging.getLogger(__name__)


class KafkaClient:
    def __init__(self, producer=None):
        self.producer = producer or Producer(
            {
                "bootstrap.servers": settings.KAFKA_BOOTSTRAP_SERVERS,
                "client.id": settings.KAFKA_CLIENT_ID,
                "message.timeout.ms": 5000,
            }
        )

    def publish(self, topic: str, event_data: dict, key=None):
        """Publish event to Kafka topic, with automatic DLQ on failure"""
        delivery_failed = {"failed": False, "error": None}

        def delivery_callback(err, msg):
            if err is not None:
                delivery_failed["failed"] = True
                delivery_failed["error"] = str(err)

        try:
            produce_kwargs = {
                "value": json.dumps(event_data, cls=DjangoJSONEncoder).encode("utf-8"),
                "callback": delivery_callback,
            }
            # Keyed by order id so one order's events stay in one partition, in order
            if key:
                produce_kwargs["key"] = key.encode("utf-8") if isinstance(key, str) else key

            self.producer.produce(topic, **produce_kwargs)
            self.producer.poll(0)
            self.producer.flush(timeout=5)
        except (KafkaError, KafkaException, BufferError) as e:
            logger.error(f"Kafka error publishing to {topic}: {e}")
            send_to_dlq(topic, event_data, str(e))
            return False

        if delivery_failed["failed"]:
            logger.error(f"Message delivery to {topic} failed: {delivery_failed['error']}")
            send_to_dlq(topic, event_data, delivery_failed["error"])
            return False
        return True

    def close(self):
        self.producer.flush()


def send_to_dlq(topic: str, event_data: dict, error_message: str, retry_count=0):
    """Send failed event to Dead Letter Queue"""
    from apps.events.models import DeadLetterQueue

    backoff_minutes = min(2 ** retry_count, 60)
    DeadLetterQueue.objects.create(
        topic=topic,
        event_data=json.loads(json.dumps(event_data, cls=DjangoJSONEncoder)),
        error_message=error_message,
        retry_count=retry_count,
        status=DeadLetterQueue.STATUS_PENDING,
        next_retry_at=timezone.now() + timedelta(minutes=backoff_minutes),
    )
    logger.info(f"Event sent to DLQ: {topic}")


_kafka_client = None


def get_kafka_client():
    global _kafka_client
    if _kafka_client is None:
        _kafka_client = KafkaClient()
    return _kafka_client
