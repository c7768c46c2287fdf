from apps.core.actors import ROLE_CHOICES
from apps.core.models import TimeStampedUUIDModel
from config.models import TimeStampedModel
from django.db import models


class ChatThread(TimeStampedModel):
    """Support thread of one user, keyed by that user's id.

    ``last_message`` and ``last_message_at`` are a list-rendering copy of
    the newest message. Unread counts are not stored: they are counted
    from the messages (see ``apps.chat.services``).
    """

    id = models.CharField(max_length=128, primary_key=True)
    owner_role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    owner_name = models.CharField(max_length=150, blank=True)
    order_id = models.UUIDField(null=True, blank=True)
    last_message = models.TextField(blank=True)
    last_message_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "chat_threads"
        ordering = ["-last_message_at"]

    def __str__(self):
        return f"Chat with {self.owner_name or self.id} ({self.owner_role})"


class ChatMessage(TimeStampedUUIDModel):
    thread = models.ForeignKey(ChatThread, on_delete=models.CASCADE, related_name="messages")
    sender_id = models.CharField(max_length=128)
    sender_name = models.CharField(max_length=150, blank=True)
    sender_role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    body = models.TextField()
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "chat_messages"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["thread", "is_read"], name="chat_msg_thread_read_idx"),
        ]
