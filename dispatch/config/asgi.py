"""
ASGI config for the dispatch project.

HTTP goes to Django; websockets go to the order and driver change feeds.
"""

import os

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator
from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

django_asgi_app = get_asgi_application()

from apps.accounts.authentication import IdentityHeaderMiddleware
from apps.drivers.routing import websocket_urlpatterns as driver_websocket_urlpatterns
from apps.orders.routing import websocket_urlpatterns as order_websocket_urlpatterns

ws_urlpatterns = [
    *order_websocket_urlpatterns,
    *driver_websocket_urlpatterns,
]

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AllowedHostsOriginValidator(
            IdentityHeaderMiddleware(URLRouter(ws_urlpatterns))
        ),
    }
)
