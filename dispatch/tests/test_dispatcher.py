import uuid

import pytest
import requests
from django.db import OperationalError

from apps.accounts.models import Customer, DeviceToken
from apps.notifications.dispatcher import TOKEN_SOURCES, NotificationDispatcher
from apps.notifications.gateway import FcmGateway
from apps.notifications.models import Notification

from .conftest import FakeGateway, make_account

pytestmark = pytest.mark.django_db


class TestTokenResolution:
    def test_account_token_wins(self, dispatcher):
        make_account("u-1", "customer", token="from-account")
        Customer.objects.create(user_id="u-1", full_name="U", fcm_token="from-customer")
        DeviceToken.objects.create(user_id="u-1", token="from-device")

        assert dispatcher.resolve_token("u-1") == "from-account"

    def test_falls_back_to_customer_then_device(self, dispatcher):
        make_account("u-1", "customer")
        Customer.objects.create(user_id="u-1", full_name="U", fcm_token="from-customer")
        DeviceToken.objects.create(user_id="u-2", token="from-device")

        assert dispatcher.resolve_token("u-1") == "from-customer"
        assert dispatcher.resolve_token("u-2") == "from-device"
        assert dispatcher.resolve_token("u-3") is None

    def test_unreachable_source_is_skipped(self, gateway):
        def broken(user_id):
            raise OperationalError("connection refused")

        sources = (("broken", broken),) + TOKEN_SOURCES
        dispatcher = NotificationDispatcher(gateway, token_sources=sources)
        DeviceToken.objects.create(user_id="u-1", token="from-device")

        assert dispatcher.resolve_token("u-1") == "from-device"


class TestNotify:
    def test_delivered_push_is_logged(self, dispatcher, gateway):
        make_account("u-1", "customer", token="tok")
        order_id = uuid.uuid4()

        delivered = dispatcher.notify(
            "u-1", "Order Ready", "Your order is ready.",
            {"orderId": str(order_id), "type": "order_ready_for_pickup", "recipientRole": "customer"},
        )

        assert delivered is True
        assert gateway.sent == [{
            "token": "tok",
            "title": "Order Ready",
            "body": "Your order is ready.",
            "data": {"orderId": str(order_id), "type": "order_ready_for_pickup", "recipientRole": "customer"},
        }]
        log = Notification.objects.get()
        assert log.recipient_id == "u-1"
        assert log.recipient_type == "customer"
        assert log.order_id == order_id
        assert log.notification_type == "order_ready_for_pickup"
        assert log.is_read is False

    def test_user_without_token_is_dropped_quietly(self, dispatcher, gateway):
        assert dispatcher.notify("nobody", "Hi", "there") is False
        assert gateway.sent == []
        assert Notification.objects.count() == 0

    def test_refusing_gateway_is_retried_then_dropped(self):
        gateway = FakeGateway(accept=False)
        dispatcher = NotificationDispatcher(gateway, retry_attempts=3)
        make_account("u-1", "customer", token="tok")

        assert dispatcher.notify("u-1", "Hi", "there") is False
        assert len(gateway.sent) == 3
        assert Notification.objects.count() == 0

    def test_malformed_order_id_is_not_stored(self, dispatcher):
        make_account("u-1", "customer", token="tok")
        dispatcher.notify("u-1", "Hi", "there", {"orderId": "not-a-uuid"})
        assert Notification.objects.get().order_id is None

    def test_dispatch_runs_on_the_executor(self, gateway, monkeypatch):
        recycled = []
        monkeypatch.setattr(
            "apps.notifications.dispatcher.close_old_connections", lambda: recycled.append(True)
        )

        class RecordingExecutor:
            def __init__(self):
                self.submitted = []

            def submit(self, fn, *args):
                self.submitted.append((fn, args))

        executor = RecordingExecutor()
        dispatcher = NotificationDispatcher(gateway, executor=executor)
        make_account("u-1", "customer", token="tok")

        assert dispatcher.dispatch("u-1", "Hi", "there", {"type": "x"}) is None
        assert gateway.sent == []

        fn, args = executor.submitted[0]
        assert fn(*args) is True
        assert gateway.titles_for("tok") == ["Hi"]
        # Worker threads recycle their database connection around each push
        assert len(recycled) == 2


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


class TestFcmGateway:
    def test_payload_shape(self):
        payload = FcmGateway.build_payload("tok", "Title", "Body", {"orderId": "o-1", "attempt": 2})

        assert payload == {
            "to": "tok",
            "notification": {"title": "Title", "body": "Body", "sound": "default", "badge": 1},
            "data": {"orderId": "o-1", "attempt": "2"},
            "priority": "high",
        }

    def test_accepted_message(self):
        session = FakeSession(FakeResponse(200))
        gateway = FcmGateway(endpoint="https://push.test/send", server_key="k", timeout=1, session=session)

        assert gateway.send("tok", "T", "B") is True
        url, kwargs = session.calls[0]
        assert url == "https://push.test/send"
        assert kwargs["headers"]["Authorization"] == "key=k"
        assert kwargs["json"]["to"] == "tok"
        assert kwargs["timeout"] == 1

    @pytest.mark.parametrize(
        "session",
        [
            FakeSession(FakeResponse(500, "boom")),
            FakeSession(error=requests.ConnectionError("down")),
        ],
    )
    def test_refused_or_unreachable(self, session):
        gateway = FcmGateway(server_key="k", session=session)
        assert gateway.send("tok", "T", "B") is False

    def test_missing_server_key_never_calls_out(self):
        session = FakeSession(FakeResponse(200))
        gateway = FcmGateway(server_key="", session=session)

        assert gateway.send("tok", "T", "B") is False
        assert session.calls == []
