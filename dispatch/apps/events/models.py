from apps.core.models import TimeStampedUUIDModel
from django.db import models

from .constants import EventTypes


class OrderEvent(TimeStampedUUIDModel):
    order_id = models.UUIDField()
    driver_id = models.CharField(max_length=128, null=True, blank=True)
    event_type = models.CharField(max_length=100, choices=EventTypes.CHOICES)
    actor_role = models.CharField(max_length=20, blank=True)
    actor_id = models.CharField(max_length=128, blank=True)
    from_phase = models.CharField(max_length=32, blank=True)
    to_phase = models.CharField(max_length=32, blank=True)
    event_data = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_events"
        indexes = [
            models.Index(fields=["order_id"], name="order_events_order_idx"),
            models.Index(fields=["event_type"], name="order_events_type_idx"),
            models.Index(fields=["timestamp"], name="order_events_ts_idx"),
        ]
        ordering = ["-timestamp"]

    def __str__(self):
        return f"{self.event_type} - {self.order_id}"


class DeadLetterQueue(TimeStampedUUIDModel):
    STATUS_PENDING = "pending"
    STATUS_RETRYING = "retrying"
    STATUS_PROCESSED = "processed"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_RETRYING, "Retrying"),
        (STATUS_PROCESSED, "Processed"),
        (STATUS_FAILED, "Failed"),
    ]

    topic = models.CharField(max_length=255)
    event_data = models.JSONField(default=dict)
    error_message = models.TextField(blank=True)
    retry_count = models.IntegerField(default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    next_retry_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "dead_letter_queue"
        indexes = [
            models.Index(fields=["status", "next_retry_at"], name="dlq_status_retry_idx"),
        ]
