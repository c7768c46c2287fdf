import uuid
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from apps.notifications.models import Notification
from apps.orders import phases
from apps.orders.models import Order, ScheduledOrder

from .conftest import ADMIN_ID, CUSTOMER_ID, RESTAURANT_ID, make_driver, order_payload

pytestmark = pytest.mark.django_db

ORDERS = "/api/v1/orders/"
DRIVERS = "/api/v1/drivers/"
NOTIFICATIONS = "/api/v1/notifications/"
CHAT = "/api/v1/chat/threads/"


@pytest.fixture(autouse=True)
def wiring(monkeypatch, lifecycle, order_store, dispatcher, coordinator):
    monkeypatch.setattr("apps.orders.services.get_order_lifecycle", lambda: lifecycle)
    monkeypatch.setattr("apps.orders.services.get_order_store", lambda: order_store)
    monkeypatch.setattr("apps.orders.services.get_notification_dispatcher", lambda: dispatcher)
    monkeypatch.setattr("apps.drivers.services.get_assignment_coordinator", lambda: coordinator)
    monkeypatch.setattr("apps.drivers.views.get_assignment_coordinator", lambda: coordinator)


@pytest.fixture
def as_user(parties):
    def _client(user_id):
        client = APIClient()
        client.credentials(HTTP_X_USER_ID=user_id)
        return client

    return _client


@pytest.fixture
def placed(as_user):
    response = as_user(CUSTOMER_ID).post(ORDERS, order_payload(), format="json")
    assert response.status_code == 201
    return response.json()


def move(client, order_id, target, **extra):
    return client.post(f"{ORDERS}{order_id}/transition/", {"target": target, **extra}, format="json")


class TestAuthentication:
    def test_anonymous_calls_are_refused(self, parties):
        assert APIClient().get(ORDERS).status_code == 401

    def test_unknown_user_is_refused(self, as_user):
        assert as_user("stranger").get(ORDERS).status_code == 401

    def test_health_needs_no_identity(self):
        response = APIClient().get("/health/")
        assert response.status_code == 200
        assert response.json()["service"] == "order-dispatch"


class TestOrders:
    def test_place_and_resubmit(self, as_user):
        client = as_user(CUSTOMER_ID)
        order_id = str(uuid.uuid4())
        payload = dict(order_payload(), order_id=order_id)

        first = client.post(ORDERS, payload, format="json")
        again = client.post(ORDERS, payload, format="json")

        assert first.status_code == 201
        assert first.json()["order_status"] == phases.PENDING
        assert again.status_code == 200
        assert Order.objects.filter(id=order_id).count() == 1

    def test_malformed_payload(self, as_user):
        response = as_user(CUSTOMER_ID).post(ORDERS, order_payload(total="0.01"), format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_order_payload"

    def test_orders_are_scoped_to_their_parties(self, placed, as_user):
        make_driver("drv-1")

        assert [order["id"] for order in as_user(CUSTOMER_ID).get(ORDERS).json()] == [placed["id"]]
        assert [order["id"] for order in as_user(RESTAURANT_ID).get(ORDERS).json()] == [placed["id"]]
        assert as_user(ADMIN_ID).get(ORDERS, {"order_status": phases.PENDING}).json()[0]["id"] == placed["id"]
        assert as_user("drv-1").get(ORDERS).json() == []
        assert as_user("drv-1").get(f"{ORDERS}{placed['id']}/").status_code == 403

    def test_lookup_errors(self, as_user):
        client = as_user(ADMIN_ID)
        assert client.get(f"{ORDERS}{uuid.uuid4()}/").status_code == 404
        response = client.get(f"{ORDERS}not-an-id/")
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_order_payload"

    def test_transitions_report_refusals(self, placed, as_user):
        restaurant = as_user(RESTAURANT_ID)
        order_id = placed["id"]

        assert move(as_user(CUSTOMER_ID), order_id, phases.ACCEPTED).status_code == 403
        assert move(restaurant, order_id, phases.DELIVERED).status_code == 409
        assert move(restaurant, order_id, "teleported").status_code == 400

        accepted = move(restaurant, order_id, phases.ACCEPTED)
        assert accepted.status_code == 200
        assert accepted.json()["changed"] is True
        assert accepted.json()["order"]["status"] == phases.STATUS_IN_PROGRESS
        assert move(restaurant, order_id, phases.ACCEPTED).json()["changed"] is False

    def test_event_trail(self, placed, as_user):
        move(as_user(RESTAURANT_ID), placed["id"], phases.ACCEPTED)

        events = as_user(CUSTOMER_ID).get(f"{ORDERS}{placed['id']}/events/").json()

        assert [event["event_type"] for event in events] == ["order_created", "order_status_changed"]
        assert events[1]["to_phase"] == phases.ACCEPTED


class TestDelivery:
    def kitchen(self, client, order_id):
        for target in (phases.ACCEPTED, phases.PREPARING, phases.READY_FOR_PICKUP):
            assert move(client, order_id, target).status_code == 200

    def test_assign_reject_and_deliver(self, placed, as_user):
        restaurant = as_user(RESTAURANT_ID)
        order_id = placed["id"]
        self.kitchen(restaurant, order_id)

        waiting = restaurant.post(f"{DRIVERS}assign/", {"order_id": order_id}, format="json")
        assert waiting.status_code == 202
        assert waiting.json()["assigned"] is False

        make_driver("drv-1")
        assigned = restaurant.post(f"{DRIVERS}assign/", {"order_id": order_id}, format="json")
        assert assigned.json()["order"]["driver_id"] == "drv-1"

        rejected = as_user("drv-1").post(f"{ORDERS}{order_id}/reject/")
        assert rejected.status_code == 200
        assert rejected.json()["changed"] is True

        make_driver("drv-2")
        assert restaurant.post(
            f"{DRIVERS}assign/", {"order_id": order_id, "driver_id": "drv-2"}, format="json"
        ).status_code == 200

        driver = as_user("drv-2")
        for target in (phases.DRIVER_ACCEPTED, phases.PICKED_UP, phases.DELIVERED):
            assert move(driver, order_id, target).status_code == 200
        assert driver.get(f"{DRIVERS}drv-2/").json()["total_deliveries"] == 1

    def test_driver_self_claims_a_ready_order(self, placed, as_user):
        self.kitchen(as_user(RESTAURANT_ID), placed["id"])
        make_driver("drv-1")

        response = move(as_user("drv-1"), placed["id"], phases.DRIVER_ACCEPTED)

        assert response.status_code == 200
        assert response.json()["order"]["driver_id"] == "drv-1"

    def test_only_the_restaurant_assigns(self, placed, as_user):
        self.kitchen(as_user(RESTAURANT_ID), placed["id"])
        response = as_user(CUSTOMER_ID).post(f"{DRIVERS}assign/", {"order_id": placed["id"]}, format="json")
        assert response.status_code == 403

    def test_driver_manages_only_their_own_record(self, as_user):
        make_driver("drv-1")
        make_driver("drv-2")
        driver = as_user("drv-1")

        assert driver.post(f"{DRIVERS}drv-2/availability/", {"available": False}, format="json").status_code == 403
        assert driver.post(f"{DRIVERS}drv-1/availability/", {"available": False}, format="json").json()[
            "is_available"
        ] is False
        assert driver.post(f"{DRIVERS}drv-1/location/", {"latitude": 95, "longitude": 0}, format="json").status_code == 400
        located = driver.post(f"{DRIVERS}drv-1/location/", {"latitude": 40.7, "longitude": -74.0}, format="json")
        assert located.json()["latitude"] == 40.7
        assert driver.get(DRIVERS).status_code == 403
        assert len(as_user(ADMIN_ID).get(DRIVERS).json()) == 2

    def test_eta_from_the_driver(self, placed, as_user):
        self.kitchen(as_user(RESTAURANT_ID), placed["id"])
        make_driver("drv-1")
        driver = as_user("drv-1")
        move(driver, placed["id"], phases.DRIVER_ACCEPTED)

        assert driver.post(f"{ORDERS}{placed['id']}/eta/", {"minutes": "soon"}, format="json").status_code == 400
        response = driver.post(f"{ORDERS}{placed['id']}/eta/", {"minutes": 20}, format="json")
        assert response.status_code == 200
        assert response.json()["estimated_delivery_time"] is not None

    def test_reconcile_is_admin_only(self, as_user):
        assert as_user(RESTAURANT_ID).post(f"{DRIVERS}reconcile/").status_code == 403
        assert as_user(ADMIN_ID).post(f"{DRIVERS}reconcile/").json()["unresolved"] == 0

    def test_unlinked_orders_are_listed_for_drivers(self, as_user, ready_order):
        order = ready_order()
        Order.objects.filter(id=order.id).update(order_status=phases.ASSIGNED_DRIVER)
        make_driver("drv-1")

        assert as_user(RESTAURANT_ID).get(f"{DRIVERS}unlinked/").status_code == 403
        response = as_user("drv-1").get(f"{DRIVERS}unlinked/")
        assert response.status_code == 200
        assert [entry["id"] for entry in response.json()] == [str(order.id)]
        assert len(as_user(ADMIN_ID).get(f"{DRIVERS}unlinked/").json()) == 1


class TestScheduledOrders:
    def test_customer_schedules_their_own_order(self, as_user):
        client = as_user(CUSTOMER_ID)
        when = (timezone.now() + timedelta(hours=2)).isoformat()

        created = client.post(ORDERS + "scheduled/", {"payload": order_payload(), "scheduled_for": when}, format="json")
        assert created.status_code == 201
        assert ScheduledOrder.objects.get().payload["total"] == "26.50"
        assert len(client.get(ORDERS + "scheduled/").json()) == 1

        foreign = client.post(
            ORDERS + "scheduled/",
            {"payload": order_payload(customer_id="someone-else"), "scheduled_for": when},
            format="json",
        )
        assert foreign.status_code == 403

    def test_invalid_scheduled_payload(self, as_user):
        response = as_user(CUSTOMER_ID).post(
            ORDERS + "scheduled/", {"payload": order_payload(items=[]), "scheduled_for": "tomorrow"}, format="json"
        )
        assert response.status_code == 400
        assert ScheduledOrder.objects.count() == 0


class TestNotifications:
    def test_inbox_and_read_marks(self, placed, as_user):
        move(as_user(RESTAURANT_ID), placed["id"], phases.ACCEPTED)
        client = as_user(CUSTOMER_ID)

        inbox = client.get(NOTIFICATIONS).json()
        assert [item["title"] for item in inbox] == ["Order Confirmed"]

        read = client.post(f"{NOTIFICATIONS}{inbox[0]['id']}/read/")
        assert read.json()["changed"] is True
        assert client.get(NOTIFICATIONS, {"unread": "true"}).json() == []

    def test_other_users_notifications_are_hidden(self, placed, as_user):
        restaurant_copy = Notification.objects.get(recipient_id=RESTAURANT_ID)
        client = as_user(CUSTOMER_ID)

        assert client.get(f"{NOTIFICATIONS}{restaurant_copy.id}/").status_code == 404
        assert client.get(f"{NOTIFICATIONS}bogus/").status_code == 404
        assert as_user(ADMIN_ID).get(NOTIFICATIONS, {"recipient_id": RESTAURANT_ID}).json()[0]["title"] == "New Order"

    def test_read_all_for_an_order(self, placed, as_user):
        restaurant = as_user(RESTAURANT_ID)
        for target in (phases.ACCEPTED, phases.PREPARING):
            move(restaurant, placed["id"], target)
        client = as_user(CUSTOMER_ID)

        response = client.post(f"{NOTIFICATIONS}read-all/", {"order_id": placed["id"]}, format="json")

        assert response.json() == {"updated": 2}


class TestChat:
    def test_support_conversation(self, as_user, gateway):
        customer = as_user(CUSTOMER_ID)
        admin = as_user(ADMIN_ID)

        sent = customer.post(f"{CHAT}{CUSTOMER_ID}/messages/", {"body": "Help"}, format="json")
        assert sent.status_code == 201
        assert admin.get(f"{CHAT}unread/").json() == {"customer": 1}

        admin.post(f"{CHAT}{CUSTOMER_ID}/messages/", {"body": "On it"}, format="json")
        assert customer.get(f"{CHAT}{CUSTOMER_ID}/").json()["unread_count"] == 1
        assert gateway.titles_for("token-customer") == ["New message from support"]

        assert customer.post(f"{CHAT}{CUSTOMER_ID}/read/").json() == {"updated": 1}
        assert [m["body"] for m in customer.get(f"{CHAT}{CUSTOMER_ID}/messages/").json()] == ["Help", "On it"]
        assert customer.get(f"{CHAT}unread/").status_code == 403

    def test_threads_of_others_are_private(self, as_user):
        as_user(CUSTOMER_ID).post(f"{CHAT}{CUSTOMER_ID}/messages/", {"body": "Help"}, format="json")
        assert as_user(RESTAURANT_ID).get(f"{CHAT}{CUSTOMER_ID}/").status_code == 403
        assert [thread["id"] for thread in as_user(ADMIN_ID).get(CHAT).json()] == [CUSTOMER_ID]
