"""
Trust boundary with the identity provider.

The gateway in front of this service authenticates the caller and forwards
the opaque user id in ``X-User-Id``. The role is resolved once from the
``Account`` role index.
"""
from channels.db import database_sync_to_async
from rest_framework import authentication, exceptions

from .services import resolve_account

USER_ID_HEADER = "HTTP_X_USER_ID"


class IdentityHeaderAuthentication(authentication.BaseAuthentication):
    def authenticate(self, request):
        user_id = request.META.get(USER_ID_HEADER)
        if not user_id:
            return None
        account = resolve_account(user_id)
        if account is None:
            raise exceptions.AuthenticationFailed("Unknown user")
        return (account, None)

    def authenticate_header(self, request):
        return "X-User-Id"


class IdentityHeaderMiddleware:
    """Channels middleware resolving the websocket caller's account."""

    def __init__(self, inner):
        self.inner = inner

    async def __call__(self, scope, receive, send):
        headers = dict(scope.get("headers", []))
        user_id = headers.get(b"x-user-id", b"").decode("utf-8")
        scope = dict(scope)
        scope["account"] = await database_sync_to_async(resolve_account)(user_id)
        return await self.inner(scope, receive, send)
