from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import (
    OrderViewSet,
    ScheduledOrderViewSet,
)

app_name = "orders"

# Router for viewsets (no API root view, the order list owns "")
router = SimpleRouter()
router.register(r"scheduled", ScheduledOrderViewSet, basename="scheduled-order")
router.register(r"", OrderViewSet, basename="order")

urlpatterns = [
    path("", include(router.urls)),
]
