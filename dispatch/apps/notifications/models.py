from apps.core.actors import ROLE_CHOICES
from apps.core.models import TimeStampedUUIDModel
from django.db import models


class Notification(TimeStampedUUIDModel):
    """Copy of a push accepted by the gateway, kept for in-app display."""

    recipient_id = models.CharField(max_length=128)
    recipient_type = models.CharField(max_length=20, choices=ROLE_CHOICES, blank=True)
    order_id = models.UUIDField(null=True, blank=True)
    notification_type = models.CharField(max_length=100, blank=True)
    title = models.CharField(max_length=150, blank=True)
    body = models.TextField(blank=True)
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    sent_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "notifications"
        indexes = [
            models.Index(fields=["recipient_id", "is_read"], name="notif_recipient_read_idx"),
            models.Index(fields=["order_id"], name="notif_order_idx"),
        ]
        ordering = ["-sent_at"]
