"""
Support chat between users and admins.

Every user owns one thread; admins answer on it. A message is unread until
the other side reads the thread, and unread counts are always counted
from message state, so concurrent sends and reads cannot make them drift.
"""
import logging

from django.db.models import Count, Q
from django.utils import timezone

from apps.core.actors import ADMIN, Actor
from apps.core.exceptions import ActorNotAuthorized, DispatchError
from infrastructure.database import run_with_retry

from .models import ChatMessage, ChatThread

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


class ThreadNotFound(DispatchError):
    """Chat thread does not exist."""

    status_code = 404
    code = "thread_not_found"


def unread_filter(viewer_role, prefix=""):
    """Unread messages written by the viewer's counterpart."""
    unread = Q(**{f"{prefix}is_read": False})
    from_admin = Q(**{f"{prefix}sender_role": ADMIN})
    return unread & (~from_admin if viewer_role == ADMIN else from_admin)


def unread_count(thread_id, viewer_role):
    return ChatMessage.objects.filter(unread_filter(viewer_role), thread_id=thread_id).count()


class ChatService:
    def __init__(self, notifier=None):
        self.notifier = notifier

    def threads_for(self, actor):
        """Threads visible to ``actor``, each annotated with ``unread_count``."""
        actor = Actor(*actor).validate()
        threads = ChatThread.objects.annotate(
            unread_count=Count("messages", filter=unread_filter(actor.role, prefix="messages__"))
        )
        if actor.role != ADMIN:
            threads = threads.filter(id=actor.user_id)
        return run_with_retry(lambda: list(threads.order_by("-last_message_at", "-created_at")))

    def get_thread(self, thread_id, actor):
        actor = Actor(*actor).validate()
        if actor.role != ADMIN and thread_id != actor.user_id:
            raise ActorNotAuthorized("Users can only read their own chat")
        thread = run_with_retry(ChatThread.objects.filter(id=thread_id).first)
        if thread is None:
            raise ThreadNotFound(f"Chat thread {thread_id} not found", thread_id=thread_id)
        return thread

    def messages(self, thread_id, actor):
        thread = self.get_thread(thread_id, actor)
        return run_with_retry(lambda: list(thread.messages.order_by("created_at")))

    def send_message(self, thread_id, actor, body, sender_name=""):
        actor = Actor(*actor).validate()
        body = (body or "").strip()
        if not body:
            raise DispatchError("Message body is empty")

        if actor.role == ADMIN:
            thread = self.get_thread(thread_id, actor)
        elif thread_id != actor.user_id:
            raise ActorNotAuthorized("Users can only write to their own chat")
        else:
            thread, created = run_with_retry(
                ChatThread.objects.get_or_create,
                id=actor.user_id,
                defaults={"owner_role": actor.role, "owner_name": sender_name},
            )
            if created:
                logger.info(f"Opened chat thread for {actor.role} {actor.user_id}")

        message = run_with_retry(
            ChatMessage.objects.create,
            thread=thread,
            sender_id=actor.user_id,
            sender_name=sender_name,
            sender_role=actor.role,
            body=body,
        )
        run_with_retry(
            ChatThread.objects.filter(id=thread.id).update,
            last_message=body[:PREVIEW_LENGTH],
            last_message_at=message.created_at,
            updated_at=timezone.now(),
        )

        if actor.role == ADMIN and self.notifier is not None:
            self.notifier.dispatch(
                thread.id,
                "New message from support",
                body[:PREVIEW_LENGTH],
                {"type": "chat_message", "threadId": thread.id, "recipientRole": thread.owner_role},
            )
        return message

    def mark_thread_read(self, thread_id, actor):
        """Mark the counterpart's messages read. Returns how many changed."""
        actor = Actor(*actor).validate()
        self.get_thread(thread_id, actor)
        return run_with_retry(
            ChatMessage.objects.filter(unread_filter(actor.role), thread_id=thread_id).update,
            is_read=True,
            read_at=timezone.now(),
        )

    def unread_by_role(self):
        """Unread user messages waiting for an admin, per user role."""
        rows = (
            ChatMessage.objects.filter(unread_filter(ADMIN))
            .values("thread__owner_role")
            .annotate(unread=Count("id"))
            .order_by()
        )
        return {row["thread__owner_role"]: row["unread"] for row in run_with_retry(lambda: list(rows))}
