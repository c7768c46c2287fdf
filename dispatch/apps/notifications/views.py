import uuid

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.actors import ADMIN

from .models import Notification
from .serializers import NotificationSerializer


NOT_FOUND = {"error": "Notification not found", "code": "not_found"}


def _uuid(value):
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class NotificationViewSet(viewsets.ViewSet):
    """In-app copy of the pushes a user received. Admins may query any recipient."""

    def get_queryset(self, request):
        notifications = Notification.objects.all()
        if request.user.role != ADMIN:
            return notifications.filter(recipient_id=request.user.user_id)
        recipient_id = request.query_params.get("recipient_id")
        if recipient_id:
            notifications = notifications.filter(recipient_id=recipient_id)
        return notifications

    def list(self, request):
        notifications = self.get_queryset(request)
        order_id = request.query_params.get("order_id")
        if order_id:
            notifications = notifications.filter(order_id=_uuid(order_id))
        if request.query_params.get("unread", "").lower() == "true":
            notifications = notifications.filter(is_read=False)
        serializer = NotificationSerializer(notifications[:100], many=True)
        return Response(serializer.data)

    def retrieve(self, request, pk=None):
        notification = self.get_queryset(request).filter(pk=_uuid(pk)).first()
        if notification is None:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(NotificationSerializer(notification).data)

    @action(detail=True, methods=["post"], url_path="read")
    def mark_read(self, request, pk=None):
        updated = self.get_queryset(request).filter(pk=_uuid(pk), is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
        notification = self.get_queryset(request).filter(pk=_uuid(pk)).first()
        if notification is None:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response({"changed": bool(updated), "notification": NotificationSerializer(notification).data})

    @action(detail=False, methods=["post"], url_path="read-all")
    def mark_all_read(self, request):
        notifications = self.get_queryset(request).filter(is_read=False)
        order_id = request.data.get("order_id")
        if order_id:
            notifications = notifications.filter(order_id=_uuid(order_id))
        updated = notifications.update(is_read=True, read_at=timezone.now())
        return Response({"updated": updated})
