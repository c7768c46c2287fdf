from django.urls import re_path

from .consumers import OrderConsumer

ORDER_ID = r"(?P<order_id>[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})"

websocket_urlpatterns = [
    re_path(rf"^ws/orders/{ORDER_ID}/$", OrderConsumer.as_asgi()),
]
