import uuid

import pytest
from channels.db import database_sync_to_async
from channels.layers import channel_layers
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from apps.accounts.authentication import IdentityHeaderMiddleware
from apps.drivers.assignment import AssignmentCoordinator
from apps.drivers.models import Driver
from apps.drivers.routing import websocket_urlpatterns as driver_routes
from apps.orders import phases, services
from apps.orders.lifecycle import OrderLifecycle
from apps.orders.models import Order
from apps.orders.routing import websocket_urlpatterns as order_routes
from apps.orders.store import OrderStore

from .conftest import CUSTOMER_ID, RESTAURANT_ID, make_account, make_driver

pytestmark = pytest.mark.django_db(transaction=True)

application = IdentityHeaderMiddleware(URLRouter([*order_routes, *driver_routes]))


@pytest.fixture
def live(monkeypatch, driver_store, dispatcher, events, connectivity):
    """Lifecycle and coordinator broadcasting on the process channel layer."""
    channel_layers.backends.clear()
    store = OrderStore(connectivity=connectivity)
    lifecycle = OrderLifecycle(store, driver_store, dispatcher, events)
    coordinator = AssignmentCoordinator(lifecycle, auto_reoffer=True)
    monkeypatch.setattr(services, "get_order_store", lambda: store)
    monkeypatch.setattr(services, "get_order_lifecycle", lambda: lifecycle)
    monkeypatch.setattr("apps.drivers.consumers.get_assignment_coordinator", lambda: coordinator)
    return coordinator


def connect_as(user_id, path):
    headers = [(b"x-user-id", user_id.encode())] if user_id else []
    return WebsocketCommunicator(application, path, headers=headers)


async def receive_types(communicator, count):
    messages = [await communicator.receive_json_from(timeout=1) for _ in range(count)]
    return {message["type"]: message for message in messages}


class TestOrderFeed:
    async def test_party_gets_snapshot_then_updates(self, live, place, restaurant):
        order = await database_sync_to_async(place)()
        communicator = connect_as(CUSTOMER_ID, f"/ws/orders/{order.id}/")

        connected, _ = await communicator.connect()
        assert connected
        initial = await communicator.receive_json_from(timeout=1)
        assert initial["type"] == "order_status"
        assert initial["data"]["order_status"] == phases.PENDING

        await database_sync_to_async(live.lifecycle.transition)(order.id, restaurant, phases.ACCEPTED)

        update = await communicator.receive_json_from(timeout=1)
        assert update["type"] == "order_status"
        assert update["data"]["order_status"] == phases.ACCEPTED
        await communicator.disconnect()

    @pytest.mark.parametrize(
        "user_id, order_known, close_code",
        [
            (None, True, 4401),
            ("stranger-customer", True, 4403),
            (CUSTOMER_ID, False, 4404),
        ],
    )
    async def test_refused_connections(self, live, place, user_id, order_known, close_code):
        order = await database_sync_to_async(place)()
        await database_sync_to_async(make_account)("stranger-customer", "customer")
        order_id = order.id if order_known else uuid.uuid4()
        communicator = connect_as(user_id, f"/ws/orders/{order_id}/")

        connected, code = await communicator.connect()

        assert not connected
        assert code == close_code

    async def test_transition_over_the_socket(self, live, place):
        order = await database_sync_to_async(place)()
        communicator = connect_as(RESTAURANT_ID, f"/ws/orders/{order.id}/")
        await communicator.connect()
        await communicator.receive_json_from(timeout=1)

        await communicator.send_json_to({"type": "transition", "target": phases.ACCEPTED})

        received = await receive_types(communicator, 2)
        assert received["transition_result"]["changed"] is True
        assert received["order_status"]["data"]["order_status"] == phases.ACCEPTED
        await communicator.disconnect()

    async def test_refused_transition_is_reported(self, live, place):
        order = await database_sync_to_async(place)()
        communicator = connect_as(CUSTOMER_ID, f"/ws/orders/{order.id}/")
        await communicator.connect()
        await communicator.receive_json_from(timeout=1)

        await communicator.send_json_to({"type": "transition", "target": phases.ACCEPTED})
        error = await communicator.receive_json_from(timeout=1)
        assert error["type"] == "error"
        assert error["code"] == "actor_not_authorized"

        await communicator.send_json_to({"type": "ping"})
        assert await communicator.receive_json_from(timeout=1) == {"type": "pong"}
        await communicator.send_to(text_data="not json")
        assert (await communicator.receive_json_from(timeout=1))["code"] == "bad_request"
        await communicator.disconnect()

    async def test_driver_may_watch_an_open_order(self, live, ready_order):
        order = await database_sync_to_async(ready_order)()
        await database_sync_to_async(make_driver)("drv-1")
        communicator = connect_as("drv-1", f"/ws/orders/{order.id}/")

        connected, _ = await communicator.connect()

        assert connected
        await communicator.disconnect()


class TestDriverChannel:
    async def test_only_the_driver_connects(self, live, parties):
        await database_sync_to_async(make_driver)("drv-1")
        await database_sync_to_async(make_driver)("drv-2")

        connected, code = await connect_as("drv-2", "/ws/drivers/drv-1/").connect()
        assert not connected
        assert code == 4403

        connected, code = await connect_as(CUSTOMER_ID, "/ws/drivers/drv-1/").connect()
        assert code == 4403

    async def test_offer_accept_and_location(self, live, ready_order):
        order = await database_sync_to_async(ready_order)()
        await database_sync_to_async(make_driver)("drv-1")
        communicator = connect_as("drv-1", "/ws/drivers/drv-1/")
        assert (await communicator.connect())[0]

        await database_sync_to_async(live.assign)(order.id)
        offer = await communicator.receive_json_from(timeout=1)
        assert offer["type"] == "delivery_offer"
        assert offer["data"]["id"] == str(order.id)

        await communicator.send_json_to({"type": "accept", "order_id": str(order.id)})
        accepted = await communicator.receive_json_from(timeout=1)
        assert accepted == {"type": "accept_result", "order_id": str(order.id), "changed": True}

        await communicator.send_json_to({"type": "location", "latitude": 40.71, "longitude": -74.0})
        ack = await communicator.receive_json_from(timeout=1)
        assert ack["type"] == "location_ack"
        assert ack["data"]["order_id"] == str(order.id)

        await communicator.send_json_to({"type": "availability", "available": True})
        refused = await communicator.receive_json_from(timeout=1)
        assert refused["code"] == "driver_unavailable"
        await communicator.disconnect()

        order = await database_sync_to_async(Order.objects.get)(id=order.id)
        assert order.order_status == phases.DRIVER_ACCEPTED

    async def test_reject_over_the_socket(self, live, ready_order, restaurant):
        order = await database_sync_to_async(ready_order)()
        await database_sync_to_async(make_driver)("drv-1")
        await database_sync_to_async(live.lifecycle.transition)(
            order.id, restaurant, phases.ASSIGNED_DRIVER, driver_id="drv-1"
        )
        communicator = connect_as("drv-1", "/ws/drivers/drv-1/")
        await communicator.connect()

        await communicator.send_json_to({"type": "reject", "order_id": str(order.id)})
        result = await communicator.receive_json_from(timeout=1)

        assert result == {"type": "reject_result", "order_id": str(order.id), "changed": True}
        driver = await database_sync_to_async(Driver.objects.get)(user_id="drv-1")
        assert driver.rejected_orders_count == 1
        await communicator.disconnect()

    async def test_unknown_message_type(self, live, parties):
        await database_sync_to_async(make_driver)("drv-1")
        communicator = connect_as("drv-1", "/ws/drivers/drv-1/")
        await communicator.connect()

        await communicator.send_json_to({"type": "teleport"})
        error = await communicator.receive_json_from(timeout=1)

        assert error["code"] == "bad_request"
        await communicator.disconnect()


    async def test_free_driver_sees_and_takes_unlinked_orders(self, live, ready_order):
        order = await database_sync_to_async(ready_order)()
        await database_sync_to_async(
            Order.objects.filter(id=order.id).update
        )(order_status=phases.ASSIGNED_DRIVER)
        await database_sync_to_async(make_driver)("drv-1")
        communicator = connect_as("drv-1", "/ws/drivers/drv-1/")
        assert (await communicator.connect())[0]

        pending = await communicator.receive_json_from(timeout=1)
        assert pending["type"] == "unlinked_orders"
        assert [entry["id"] for entry in pending["data"]] == [str(order.id)]

        await communicator.send_json_to({"type": "self_assign", "order_id": str(order.id)})
        result = await communicator.receive_json_from(timeout=1)
        assert result == {"type": "self_assign_result", "order_id": str(order.id), "changed": True}
        await communicator.disconnect()

        driver = await database_sync_to_async(Driver.objects.get)(user_id="drv-1")
        assert driver.current_order_id == order.id
