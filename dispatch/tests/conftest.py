import pytest
from django.utils import timezone

from apps.accounts.models import Account, Customer, DeviceToken, Restaurant
from apps.core.actors import ADMIN, CUSTOMER, DRIVER, RESTAURANT, Actor
from apps.drivers.assignment import AssignmentCoordinator
from apps.drivers.models import Driver
from apps.drivers.store import DriverStore
from apps.events.services import EventService
from apps.notifications.dispatcher import NotificationDispatcher
from apps.orders import phases
from apps.orders.lifecycle import OrderLifecycle
from apps.orders.store import OrderStore
from infrastructure.database import StoreConnectivity


class FakeGateway:
    def __init__(self, accept=True):
        self.accept = accept
        self.sent = []

    def send(self, token, title, body, data=None):
        self.sent.append({"token": token, "title": title, "body": body, "data": dict(data or {})})
        return self.accept

    def titles_for(self, token):
        return [message["title"] for message in self.sent if message["token"] == token]


class FakePublisher:
    def __init__(self):
        self.published = []

    def publish(self, topic, event_data, key=None):
        self.published.append({"topic": topic, "event": event_data, "key": key})
        return True


class RecordingChannelLayer:
    """Stands in for the channel layer where only the sent messages matter."""

    def __init__(self):
        self.sent = []

    async def group_send(self, group, message):
        self.sent.append((group, message))

    def messages_for(self, group):
        return [message for sent_group, message in self.sent if sent_group == group]


CUSTOMER_ID = "cust-1"
RESTAURANT_ID = "rest-1"
ADMIN_ID = "admin-1"


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def channel_layer():
    return RecordingChannelLayer()


@pytest.fixture
def connectivity():
    return StoreConnectivity()


@pytest.fixture
def dispatcher(gateway):
    return NotificationDispatcher(gateway)


@pytest.fixture
def events(publisher):
    return EventService(publisher=publisher, enabled=True)


@pytest.fixture
def order_store(channel_layer, connectivity):
    return OrderStore(channel_layer=channel_layer, connectivity=connectivity)


@pytest.fixture
def driver_store(connectivity):
    return DriverStore(connectivity=connectivity)


@pytest.fixture
def lifecycle(order_store, driver_store, dispatcher, events):
    return OrderLifecycle(order_store, driver_store, dispatcher, events)


@pytest.fixture
def coordinator(lifecycle, channel_layer):
    return AssignmentCoordinator(lifecycle, auto_reoffer=True, channel_layer=channel_layer)


# Actors

@pytest.fixture
def customer():
    return Actor(CUSTOMER, CUSTOMER_ID)


@pytest.fixture
def restaurant():
    return Actor(RESTAURANT, RESTAURANT_ID)


@pytest.fixture
def admin():
    return Actor(ADMIN, ADMIN_ID)


# Records

def make_account(user_id, role, token="", name=""):
    return Account.objects.create(user_id=user_id, role=role, fcm_token=token, display_name=name)


def make_driver(user_id, latitude=None, longitude=None, available=True, located_at=None, **extra):
    now = timezone.now()
    make_account(user_id, DRIVER, token=f"token-{user_id}", name=user_id.title())
    return Driver.objects.create(
        user_id=user_id,
        name=user_id.title(),
        is_available=available,
        available_since=extra.pop("available_since", now if available else None),
        latitude=latitude,
        longitude=longitude,
        location_updated_at=located_at or (now if latitude is not None else None),
        **extra,
    )


@pytest.fixture
def parties(db):
    """Customer, restaurant and admin accounts with delivery tokens."""
    make_account(CUSTOMER_ID, CUSTOMER, token="token-customer")
    Customer.objects.create(user_id=CUSTOMER_ID, full_name="Casey Customer")
    make_account(RESTAURANT_ID, RESTAURANT, token="token-restaurant", name="Luigi's")
    Restaurant.objects.create(
        user_id=RESTAURANT_ID, name="Luigi's", is_open=True, latitude=40.7128, longitude=-74.0060
    )
    make_account(ADMIN_ID, ADMIN)
    DeviceToken.objects.create(user_id=ADMIN_ID, token="token-admin-device")


def order_payload(delivery_option=phases.DELIVERY, customer_id=CUSTOMER_ID, restaurant_id=RESTAURANT_ID, **overrides):
    payload = {
        "customer_id": customer_id,
        "restaurant_id": restaurant_id,
        "restaurant_name": "Luigi's",
        "items": [
            {"product_id": "pizza", "name": "Margherita", "quantity": 2, "unit_price": "9.50", "line_total": "19.00"},
            {"product_id": "soda", "name": "Soda", "quantity": 1, "unit_price": "2.00", "line_total": "2.00"},
        ],
        "subtotal": "21.00",
        "tip_amount": "3.00",
        "delivery_fee": "2.50" if delivery_option == phases.DELIVERY else "0.00",
        "total": "26.50" if delivery_option == phases.DELIVERY else "24.00",
        "delivery_option": delivery_option,
        "payment_method": "card",
        "payment_completed": True,
    }
    if delivery_option == phases.DELIVERY:
        payload["address"] = {"street": "1 Main St", "city": "New York", "zip_code": "10001"}
    payload.update(overrides)
    return payload


KITCHEN_PATH = (phases.ACCEPTED, phases.PREPARING, phases.READY_FOR_PICKUP)


@pytest.fixture
def place(lifecycle, customer, parties):
    def _place(delivery_option=phases.DELIVERY, **overrides):
        return lifecycle.place_order(order_payload(delivery_option, **overrides), actor=customer).order

    return _place


@pytest.fixture
def ready_order(place, lifecycle, restaurant):
    """A delivery order the kitchen has finished."""

    def _ready(delivery_option=phases.DELIVERY):
        order = place(delivery_option)
        for target in KITCHEN_PATH:
            order = lifecycle.transition(order.id, restaurant, target).order
        return order

    return _ready
