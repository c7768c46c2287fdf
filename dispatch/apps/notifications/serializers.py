from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "recipient_id",
            "recipient_type",
            "order_id",
            "notification_type",
            "title",
            "body",
            "data",
            "is_read",
            "sent_at",
            "read_at",
        ]
        read_only_fields = fields
