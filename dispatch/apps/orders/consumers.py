import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from apps.core.actors import ADMIN, CUSTOMER, DRIVER, RESTAURANT
from apps.core.exceptions import DispatchError
from apps.orders import phases
from apps.orders import services
from apps.orders.store import order_group, snapshot

logger = logging.getLogger(__name__)

# Close codes
UNAUTHENTICATED = 4401
FORBIDDEN = 4403
NOT_FOUND = 4404


def can_watch(order, actor):
    if actor.role == ADMIN:
        return True
    if actor.role == CUSTOMER:
        return order.customer_id == actor.user_id
    if actor.role == RESTAURANT:
        return order.restaurant_id == actor.user_id
    # Drivers see their own order, or an open one they could claim
    return order.driver_id == actor.user_id or (
        order.order_status == phases.READY_FOR_PICKUP and order.is_delivery and not order.driver_id
    )


class OrderConsumer(AsyncWebsocketConsumer):
    """Live view of one order plus transition requests from its parties."""

    async def connect(self):
        self.order_id = self.scope["url_route"]["kwargs"]["order_id"]
        self.group_name = order_group(self.order_id)
        self.joined = False

        account = self.scope.get("account")
        if account is None:
            await self.close(code=UNAUTHENTICATED)
            return
        self.actor = account.actor

        order = await self.get_order(self.order_id)
        if order is None:
            await self.close(code=NOT_FOUND)
            return
        if not can_watch(order, self.actor):
            await self.close(code=FORBIDDEN)
            return

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        self.joined = True
        await self.accept()

        # Initial snapshot; later ones arrive through the group
        await self.send_json({"type": "order_status", "data": await self.get_snapshot(order)})

    async def disconnect(self, close_code):
        if getattr(self, "joined", False):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        try:
            data = json.loads(text_data or "")
        except json.JSONDecodeError:
            await self.send_json({"type": "error", "error": "Malformed message", "code": "bad_request"})
            return

        message_type = data.get("type")
        if message_type == "ping":
            await self.send_json({"type": "pong"})
        elif message_type == "transition":
            await self.handle_transition(data)
        else:
            await self.send_json(
                {"type": "error", "error": f"Unknown message type: {message_type}", "code": "bad_request"}
            )

    async def handle_transition(self, data):
        target = data.get("target")
        try:
            changed = await self.apply_transition(target, data.get("driver_id"))
        except DispatchError as e:
            logger.info(f"Websocket transition on order {self.order_id} refused: {e.message}")
            await self.send_json({"type": "error", **e.as_dict()})
            return
        await self.send_json({"type": "transition_result", "target": target, "changed": changed})

    async def order_update(self, event):
        await self.send_json({"type": "order_status", "data": event["data"]})

    async def location_update(self, event):
        await self.send_json({"type": "location_update", "data": event["data"]})

    async def send_json(self, content):
        await self.send(text_data=json.dumps(content))

    @database_sync_to_async
    def get_order(self, order_id):
        return services.get_order_store().find(order_id)

    @database_sync_to_async
    def get_snapshot(self, order):
        return snapshot(order)

    @database_sync_to_async
    def apply_transition(self, target, driver_id=None):
        if self.actor.role == DRIVER:
            driver_id = None
        result = services.get_order_lifecycle().transition(
            self.order_id, self.actor, target, driver_id=driver_id
        )
        return result.changed
