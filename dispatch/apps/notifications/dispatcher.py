"""
Notification Dispatcher.

Resolves a user id to a delivery token through an ordered fallback chain
and pushes the message. Delivery is best-effort: a dropped notification is
logged and never undoes the state change that triggered it.
"""
import logging
import time
import uuid

from django.conf import settings
from django.db import DatabaseError, close_old_connections

from apps.accounts.models import Account, Customer, DeviceToken
from apps.core.exceptions import NotificationUndeliverable, StoreUnavailable
from infrastructure.database import backoff_delay, run_with_retry

from .models import Notification

logger = logging.getLogger(__name__)


def _account_token(user_id):
    return Account.objects.filter(user_id=user_id).values_list("fcm_token", flat=True).first()


def _customer_token(user_id):
    return Customer.objects.filter(user_id=user_id).values_list("fcm_token", flat=True).first()


def _device_token(user_id):
    return DeviceToken.objects.filter(user_id=user_id).values_list("token", flat=True).first()


def _order_uuid(value):
    try:
        return uuid.UUID(str(value)) if value else None
    except ValueError:
        return None


# Lookup order: users/{id}, customers/{id}, device_tokens/{id}
TOKEN_SOURCES = (
    ("users", _account_token),
    ("customers", _customer_token),
    ("device_tokens", _device_token),
)


class NotificationDispatcher:
    def __init__(self, gateway, token_sources=TOKEN_SOURCES, executor=None, retry_attempts=None):
        self.gateway = gateway
        self.token_sources = token_sources
        self.executor = executor
        self.retry_attempts = retry_attempts or settings.DISPATCH_NOTIFY_RETRY_ATTEMPTS

    def resolve_token(self, user_id):
        """First non-empty token along the fallback chain, or None."""
        for source, lookup in self.token_sources:
            try:
                token = run_with_retry(lookup, user_id)
            except StoreUnavailable as e:
                logger.warning(f"Token lookup in {source} failed for user {user_id}: {e}")
                continue
            if token:
                logger.debug(f"Resolved delivery token for user {user_id} from {source}")
                return token
            logger.debug(f"No delivery token for user {user_id} in {source}")
        return None

    def notify(self, user_id, title, body, data=None):
        """Push to ``user_id``. Returns True when the gateway accepted it; never raises."""
        data = dict(data or {})
        try:
            self._deliver(user_id, title, body, data)
        except NotificationUndeliverable as e:
            logger.warning(f"Notification dropped for user {user_id}: {e.message}")
            return False
        self._log(user_id, title, body, data)
        return True

    def dispatch(self, user_id, title, body, data=None):
        """Fire-and-forget ``notify``: runs on the executor when one is configured."""
        if self.executor is None:
            return self.notify(user_id, title, body, data)
        self.executor.submit(self._notify_in_background, user_id, title, body, data)
        return None

    def _notify_in_background(self, user_id, title, body, data):
        # Executor threads sit outside the request cycle that recycles connections
        close_old_connections()
        try:
            return self.notify(user_id, title, body, data)
        finally:
            close_old_connections()

    def _deliver(self, user_id, title, body, data):
        if not user_id:
            raise NotificationUndeliverable("No recipient")
        token = self.resolve_token(user_id)
        if not token:
            raise NotificationUndeliverable("No delivery token registered", user_id=user_id)

        for attempt in range(self.retry_attempts):
            if self.gateway.send(token, title, body, data):
                return
            if attempt + 1 < self.retry_attempts:
                time.sleep(backoff_delay(attempt))
        raise NotificationUndeliverable(
            f"Gateway refused the message after {self.retry_attempts} attempts", user_id=user_id
        )

    def _log(self, user_id, title, body, data):
        try:
            Notification.objects.create(
                recipient_id=user_id,
                recipient_type=data.get("recipientRole", ""),
                order_id=_order_uuid(data.get("orderId")),
                notification_type=data.get("type", ""),
                title=title,
                body=body,
                data=data,
            )
        except DatabaseError as e:
            logger.error(f"Failed to store notification log for user {user_id}: {e}")
