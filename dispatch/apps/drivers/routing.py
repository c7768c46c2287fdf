from django.urls import re_path

from .consumers import DriverConsumer

websocket_urlpatterns = [
    re_path(r"^ws/drivers/(?P<driver_id>[\w.@-]+)/$", DriverConsumer.as_asgi()),
]
