import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from apps.core.actors import DRIVER, Actor
from apps.core.exceptions import DispatchError
from apps.orders import phases
from apps.orders.store import snapshot

from .serializers import LocationSerializer
from .services import driver_group, get_assignment_coordinator

logger = logging.getLogger(__name__)

UNAUTHENTICATED = 4401
FORBIDDEN = 4403


class DriverConsumer(AsyncWebsocketConsumer):
    """A driver's own channel. Delivery offers go out; location, availability and accept/reject come in."""

    async def connect(self):
        self.driver_id = self.scope["url_route"]["kwargs"]["driver_id"]
        self.group_name = driver_group(self.driver_id)
        self.joined = False

        account = self.scope.get("account")
        if account is None:
            await self.close(code=UNAUTHENTICATED)
            return
        self.actor = account.actor
        if self.actor.role != DRIVER or self.actor.user_id != self.driver_id:
            await self.close(code=FORBIDDEN)
            return

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        self.joined = True
        await self.accept()

        unlinked = await self.unlinked_orders()
        if unlinked:
            await self.send_json({"type": "unlinked_orders", "data": unlinked})

    async def disconnect(self, close_code):
        if getattr(self, "joined", False):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        try:
            data = json.loads(text_data or "")
        except json.JSONDecodeError:
            await self.send_error("Malformed message", "bad_request")
            return

        message_type = data.get("type")
        handler = {
            "ping": self.handle_ping,
            "location": self.handle_location,
            "availability": self.handle_availability,
            "accept": self.handle_accept,
            "reject": self.handle_reject,
            "self_assign": self.handle_self_assign,
        }.get(message_type)
        if handler is None:
            await self.send_error(f"Unknown message type: {message_type}", "bad_request")
            return

        try:
            await handler(data)
        except DispatchError as e:
            logger.info(f"Driver {self.driver_id} {message_type} refused: {e.message}")
            await self.send_json({"type": "error", **e.as_dict()})

    async def handle_ping(self, data):
        await self.send_json({"type": "pong"})

    async def handle_location(self, data):
        serializer = LocationSerializer(data=data)
        if not serializer.is_valid():
            await self.send_error(str(serializer.errors), "bad_request")
            return
        location = await self.update_location(**serializer.validated_data)
        await self.send_json({"type": "location_ack", "data": location})

    async def handle_availability(self, data):
        available = await self.set_availability(bool(data.get("available")))
        await self.send_json({"type": "availability", "available": available})

    async def handle_accept(self, data):
        changed = await self.accept_order(data.get("order_id"))
        await self.send_json({"type": "accept_result", "order_id": data.get("order_id"), "changed": changed})

    async def handle_reject(self, data):
        changed = await self.reject_order(data.get("order_id"))
        await self.send_json({"type": "reject_result", "order_id": data.get("order_id"), "changed": changed})

    async def handle_self_assign(self, data):
        changed = await self.self_assign(data.get("order_id"))
        await self.send_json(
            {"type": "self_assign_result", "order_id": data.get("order_id"), "changed": changed}
        )

    # Group messages

    async def delivery_offer(self, event):
        await self.send_json({"type": "delivery_offer", "data": event["data"]})

    async def delivery_unlinked(self, event):
        await self.send_json({"type": "unlinked_order", "data": event["data"]})

    async def driver_update(self, event):
        await self.send_json({"type": "driver_update", "data": event["data"]})

    async def send_error(self, message, code):
        await self.send_json({"type": "error", "error": message, "code": code})

    async def send_json(self, content):
        await self.send(text_data=json.dumps(content))

    # Store access

    @database_sync_to_async
    def update_location(self, latitude, longitude):
        return get_assignment_coordinator().update_location(self.driver_id, latitude, longitude)

    @database_sync_to_async
    def set_availability(self, available):
        return get_assignment_coordinator().set_availability(self.driver_id, available).is_available

    @database_sync_to_async
    def accept_order(self, order_id):
        # Accepting an offer and self-claiming an open order are the same request
        coordinator = get_assignment_coordinator()
        result = coordinator.lifecycle.transition(
            order_id, Actor(DRIVER, self.driver_id), phases.DRIVER_ACCEPTED
        )
        return result.changed

    @database_sync_to_async
    def reject_order(self, order_id):
        return get_assignment_coordinator().reject(order_id, self.driver_id).changed

    @database_sync_to_async
    def self_assign(self, order_id):
        return get_assignment_coordinator().self_assign(order_id, self.driver_id).changed

    @database_sync_to_async
    def unlinked_orders(self):
        coordinator = get_assignment_coordinator()
        driver = coordinator.drivers.find(self.driver_id)
        if driver is None or not driver.is_available or driver.current_order_id:
            return []
        return [snapshot(order) for order in coordinator.unlinked_orders()]
