"""
Default wiring of the order lifecycle core.

The core classes take their collaborators as arguments; these factories
build the production defaults once per process.
"""
import functools
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings

from apps.drivers.store import DriverStore
from apps.events.services import EventService
from apps.notifications.dispatcher import NotificationDispatcher
from apps.notifications.gateway import FcmGateway

from .lifecycle import OrderLifecycle
from .store import OrderStore


@functools.lru_cache(maxsize=None)
def get_order_store():
    return OrderStore()


@functools.lru_cache(maxsize=None)
def get_driver_store():
    return DriverStore()


@functools.lru_cache(maxsize=None)
def get_notification_dispatcher():
    executor = None
    if settings.DISPATCH_NOTIFY_IN_BACKGROUND:
        executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="notify")
    return NotificationDispatcher(FcmGateway(), executor=executor)


@functools.lru_cache(maxsize=None)
def get_event_service():
    return EventService()


def get_order_lifecycle():
    return OrderLifecycle(
        get_order_store(),
        get_driver_store(),
        get_notification_dispatcher(),
        get_event_service(),
    )


def get_scheduled_order_activator():
    from .scheduler import ScheduledOrderActivator

    return ScheduledOrderActivator(get_order_lifecycle())
