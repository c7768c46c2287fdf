from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.actors import ADMIN
from apps.core.exceptions import ActorNotAuthorized, DispatchError
from apps.core.responses import error_response

from .serializers import ChatMessageSerializer, ChatThreadSerializer, SendMessageSerializer
from .services import ChatService, unread_count


def get_chat_service():
    from apps.orders.services import get_notification_dispatcher

    return ChatService(notifier=get_notification_dispatcher())


class ChatThreadViewSet(viewsets.ViewSet):
    def list(self, request):
        try:
            threads = get_chat_service().threads_for(request.user.actor)
        except DispatchError as e:
            return error_response(e)
        return Response(ChatThreadSerializer(threads, many=True).data)

    def retrieve(self, request, pk=None):
        actor = request.user.actor
        try:
            thread = get_chat_service().get_thread(pk, actor)
        except DispatchError as e:
            return error_response(e)
        data = ChatThreadSerializer(thread).data
        data["unread_count"] = unread_count(thread.id, actor.role)
        return Response(data)

    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        service = get_chat_service()
        actor = request.user.actor
        if request.method == "GET":
            try:
                messages = service.messages(pk, actor)
            except DispatchError as e:
                return error_response(e)
            return Response(ChatMessageSerializer(messages, many=True).data)

        serializer = SendMessageSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            message = service.send_message(
                pk,
                actor,
                serializer.validated_data["body"],
                sender_name=serializer.validated_data["sender_name"] or request.user.display_name,
            )
        except DispatchError as e:
            return error_response(e)
        return Response(ChatMessageSerializer(message).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        try:
            updated = get_chat_service().mark_thread_read(pk, request.user.actor)
        except DispatchError as e:
            return error_response(e)
        return Response({"updated": updated})

    @action(detail=False, methods=["get"])
    def unread(self, request):
        if request.user.role != ADMIN:
            return error_response(ActorNotAuthorized("Only admins see unread counts by role"))
        try:
            counts = get_chat_service().unread_by_role()
        except DispatchError as e:
            return error_response(e)
        return Response(counts)
