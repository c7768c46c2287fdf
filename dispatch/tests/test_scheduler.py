import uuid
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.accounts.models import Restaurant
from apps.core.exceptions import StoreUnavailable
from apps.orders import phases
from apps.orders.models import Order, ScheduledOrder
from apps.orders.scheduler import ScheduledOrderActivator

from .conftest import CUSTOMER_ID, RESTAURANT_ID, order_payload

pytestmark = pytest.mark.django_db


@pytest.fixture
def activator(lifecycle, parties):
    return ScheduledOrderActivator(lifecycle, claim_ttl_seconds=300)


def schedule(minutes=-1, **payload_overrides):
    payload = order_payload(**payload_overrides)
    return ScheduledOrder.objects.create(
        customer_id=payload.pop("customer_id"),
        restaurant_id=payload.pop("restaurant_id"),
        payload=payload,
        scheduled_for=timezone.now() + timedelta(minutes=minutes),
    )


def test_due_order_goes_live_under_the_scheduled_id(activator, gateway):
    record = schedule()

    report = activator.run_once()

    assert report == {"activated": 1, "duplicates": 0, "closed": 0, "failed": 0}
    order = Order.objects.get(id=record.id)
    assert order.order_status == phases.PENDING
    assert order.customer_id == CUSTOMER_ID
    assert order.restaurant_id == RESTAURANT_ID
    assert not ScheduledOrder.objects.exists()
    assert gateway.titles_for("token-customer") == ["Your Scheduled Order is Processing"]
    assert gateway.titles_for("token-restaurant") == ["New Order"]


def test_future_orders_wait(activator):
    schedule(minutes=30)

    assert activator.run_once()["activated"] == 0
    assert Order.objects.count() == 0
    assert ScheduledOrder.objects.count() == 1


def test_closed_restaurant_keeps_the_record_for_later(activator):
    Restaurant.objects.filter(user_id=RESTAURANT_ID).update(is_open=False)
    record = schedule()

    assert activator.run_once()["closed"] == 1

    record.refresh_from_db()
    assert record.claim_token is None
    assert Order.objects.count() == 0

    Restaurant.objects.filter(user_id=RESTAURANT_ID).update(is_open=True)
    assert activator.run_once()["activated"] == 1


def test_already_placed_order_is_cleaned_up_without_duplicating(activator, lifecycle, gateway):
    record = schedule()
    payload = dict(record.payload, customer_id=CUSTOMER_ID, restaurant_id=RESTAURANT_ID)
    # A previous sweep placed the order and crashed before deleting the record
    lifecycle.place_order(payload, order_id=record.id)

    report = activator.run_once()

    assert report["duplicates"] == 1
    assert Order.objects.filter(id=record.id).count() == 1
    assert not ScheduledOrder.objects.exists()
    assert gateway.titles_for("token-restaurant") == ["New Order"]


def test_record_held_by_a_live_claim_is_skipped(activator):
    record = schedule()
    ScheduledOrder.objects.filter(id=record.id).update(claim_token=uuid.uuid4(), claimed_at=timezone.now())

    assert activator.run_once() == {"activated": 0, "duplicates": 0, "closed": 0, "failed": 0}
    assert Order.objects.count() == 0


def test_stale_claim_is_taken_over(activator):
    record = schedule()
    ScheduledOrder.objects.filter(id=record.id).update(
        claim_token=uuid.uuid4(), claimed_at=timezone.now() - timedelta(hours=1)
    )

    assert activator.run_once()["activated"] == 1
    assert Order.objects.filter(id=record.id).exists()


def test_claim_lost_to_another_sweep(activator):
    record = schedule()
    now = timezone.now()
    due = activator.due(now)
    ScheduledOrder.objects.filter(id=record.id).update(claim_token=uuid.uuid4(), claimed_at=now)

    assert activator._claim(due[0], now) is None


def test_malformed_payload_is_marked_and_not_retried(activator):
    record = schedule(total="1.00")

    assert activator.run_once()["failed"] == 1

    record.refresh_from_db()
    assert "invalid_order_payload" in record.failure_reason
    assert Order.objects.count() == 0
    assert activator.run_once()["failed"] == 0


def test_store_outage_leaves_the_claim_to_expire(lifecycle, parties):
    class Unreachable:
        def __init__(self, inner):
            self.inner = inner
            self.notifier = inner.notifier

        def place_order(self, *args, **kwargs):
            raise StoreUnavailable("down")

    activator = ScheduledOrderActivator(Unreachable(lifecycle), claim_ttl_seconds=300)
    record = schedule()

    assert activator.run_once() == {"activated": 0, "duplicates": 0, "closed": 0, "failed": 0}
    record.refresh_from_db()
    assert record.claim_token is not None


def test_sweep_command_runs_once(monkeypatch, activator):
    schedule()
    monkeypatch.setattr(
        "apps.orders.management.commands.activate_scheduled_orders.get_scheduled_order_activator",
        lambda: activator,
    )
    out = StringIO()

    call_command("activate_scheduled_orders", "--once", stdout=out)

    assert "Activated 1" in out.getvalue()
