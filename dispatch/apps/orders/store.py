"""
Order Store Adapter.

Reads, conditional point writes and change-feed subscriptions against the
``orders`` table. There are no multi-record transactions: every write is a
single ``UPDATE ... WHERE`` on one order, guarded by the fields the caller
read, so concurrent actors race on the guard instead of overwriting each
other.
"""
import asyncio
import logging
import uuid

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.exceptions import OrderNotFound
from infrastructure.database import store_connectivity, store_retry

from .models import Order
from .serializers import OrderSerializer

logger = logging.getLogger(__name__)


def order_group(order_id):
    return f"order_{order_id}"


def snapshot(order):
    return dict(OrderSerializer(order).data)


class OrderStore:
    def __init__(self, channel_layer=None, connectivity=None):
        self._channel_layer = channel_layer
        self.connectivity = connectivity or store_connectivity

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    @property
    def is_degraded(self):
        return self.connectivity.is_degraded

    # Reads

    @store_retry
    def find(self, order_id):
        try:
            order_id = uuid.UUID(str(order_id))
        except ValueError:
            return None
        return Order.objects.filter(id=order_id).first()

    def get(self, order_id):
        order = self.find(order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found", order_id=order_id)
        return order

    @store_retry
    def filter(self, **lookups):
        return list(Order.objects.filter(**lookups).order_by("created_at"))

    # Writes

    @store_retry
    def _insert(self, fields, order_id=None):
        if order_id is not None:
            fields = dict(fields, id=order_id)
        with transaction.atomic():
            return Order.objects.create(**fields)

    def create(self, fields, order_id=None):
        """Insert a new order. Returns ``(order, created)``.

        Inserting an id that already exists returns the stored order
        untouched, which makes re-submission of the same order harmless.
        """
        try:
            order = self._insert(fields, order_id=order_id)
        except IntegrityError:
            existing = self.find(order_id) if order_id is not None else None
            if existing is None:
                raise
            logger.info(f"Order {order_id} already exists, not recreating")
            return existing, False
        self.broadcast(order)
        return order, True

    @store_retry
    def _conditional_update(self, order_id, expected, changes):
        changes = dict(changes, updated_at=timezone.now())
        return Order.objects.filter(id=order_id, **expected).update(**changes)

    def compare_and_set(self, order_id, expected, changes):
        """Apply ``changes`` only if every field in ``expected`` still holds.

        Returns the updated order, or None when the guard did not match
        (another actor got there first, or the order is gone).
        """
        updated = self._conditional_update(order_id, expected, changes)
        if not updated:
            logger.info(f"Conditional write on order {order_id} lost: expected {expected}")
            return None
        order = self.find(order_id)
        if order is not None:
            self.broadcast(order)
        return order

    @store_retry
    def update_fields(self, order_id, changes):
        """Unconditional write of fields no other actor contends for."""
        changes = dict(changes, updated_at=timezone.now())
        return Order.objects.filter(id=order_id).update(**changes)

    # Change feed

    def broadcast(self, order):
        """Push the order's snapshot to its subscribers, in write order."""
        try:
            async_to_sync(self.channel_layer.group_send)(
                order_group(order.id),
                {"type": "order.update", "data": snapshot(order)},
            )
        except Exception as e:
            # The write is authoritative; subscribers re-read on reconnect
            logger.error(f"Failed to broadcast order {order.id}: {e}")

    async def subscribe(self, order_id):
        subscription = OrderSubscription(self.channel_layer, order_id)
        await subscription.open()
        return subscription


class OrderSubscription:
    """A cancellable, typed stream of snapshots for one order.

    Use as ``async with await store.subscribe(order_id) as feed`` and
    iterate with ``async for snapshot in feed``. Cancelling leaves the
    channel group; iteration then stops.
    """

    def __init__(self, channel_layer, order_id):
        self.channel_layer = channel_layer
        self.order_id = str(order_id)
        self.group = order_group(order_id)
        self.channel_name = None
        self.cancelled = False

    async def open(self):
        self.channel_name = await self.channel_layer.new_channel()
        await self.channel_layer.group_add(self.group, self.channel_name)
        return self

    async def cancel(self):
        if self.cancelled:
            return
        self.cancelled = True
        if self.channel_name is not None:
            await self.channel_layer.group_discard(self.group, self.channel_name)

    async def next(self, timeout=None):
        if self.cancelled:
            raise StopAsyncIteration
        try:
            message = await asyncio.wait_for(
                self.channel_layer.receive(self.channel_name), timeout
            )
        except asyncio.CancelledError:
            await self.cancel()
            raise
        return message["data"]

    def __aiter__(self):
        return self

    async def __anext__(self):
        return await self.next()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.cancel()
