"""
Management command to process Dead Letter Queue entries.
This should be run periodically to retry failed order events.
"""
import json
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.events.models import DeadLetterQueue
from infrastructure.kafka_client import get_kafka_client


class Command(BaseCommand):
    help = "Process Dead Letter Queue entries and retry failed Kafka events"

    def add_arguments(self, parser):
        parser.add_argument(
            "--max-retries",
            type=int,
            default=5,
            help="Maximum number of retry attempts per event (default: 5)",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=100,
            help="Number of DLQ entries to process in one run (default: 100)",
        )

    def handle(self, *args, **options):
        max_retries = options["max_retries"]
        batch_size = options["batch_size"]

        self.stdout.write("Processing Dead Letter Queue entries...")

        now = timezone.now()
        pending_entries = DeadLetterQueue.objects.filter(
            status=DeadLetterQueue.STATUS_PENDING,
            next_retry_at__lte=now,
            retry_count__lt=max_retries,
        ).order_by("next_retry_at")[:batch_size]

        kafka_client = get_kafka_client()
        succeeded = 0
        failed = 0

        for entry in pending_entries:
            # Claim the entry so a concurrent run skips it
            claimed = DeadLetterQueue.objects.filter(
                id=entry.id, status=DeadLetterQueue.STATUS_PENDING
            ).update(status=DeadLetterQueue.STATUS_RETRYING)
            if not claimed:
                continue

            key = entry.event_data.get("order_id")
            producer = kafka_client.producer
            try:
                producer.produce(entry.topic, value=json.dumps(entry.event_data).encode("utf-8"), key=key)
                remaining = producer.flush(timeout=5)
            except Exception as e:
                remaining = 1
                entry.error_message = str(e)

            if not remaining:
                entry.status = DeadLetterQueue.STATUS_PROCESSED
                entry.processed_at = timezone.now()
                succeeded += 1
            else:
                entry.retry_count += 1
                backoff_minutes = min(2 ** entry.retry_count, 60)
                entry.next_retry_at = timezone.now() + timedelta(minutes=backoff_minutes)
                entry.status = (
                    DeadLetterQueue.STATUS_FAILED
                    if entry.retry_count >= max_retries
                    else DeadLetterQueue.STATUS_PENDING
                )
                failed += 1
            entry.save()

        self.stdout.write(
            self.style.SUCCESS(
                f"DLQ processing completed. Succeeded: {succeeded}, Failed: {failed}"
            )
        )
