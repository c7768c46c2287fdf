from rest_framework import serializers

from .models import ChatMessage, ChatThread


class ChatThreadSerializer(serializers.ModelSerializer):
    unread_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = ChatThread
        fields = [
            "id",
            "owner_role",
            "owner_name",
            "order_id",
            "last_message",
            "last_message_at",
            "unread_count",
        ]


class ChatMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ChatMessage
        fields = ["id", "sender_id", "sender_name", "sender_role", "body", "is_read", "created_at"]


class SendMessageSerializer(serializers.Serializer):
    body = serializers.CharField(max_length=4000)
    sender_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
