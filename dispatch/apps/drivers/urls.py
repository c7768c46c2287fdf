from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import DriverViewSet

app_name = "drivers"

router = SimpleRouter()
router.register(r"", DriverViewSet, basename="driver")

urlpatterns = [
    path("", include(router.urls)),
]
