from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import ChatThreadViewSet

app_name = "chat"

router = SimpleRouter()
router.register(r"threads", ChatThreadViewSet, basename="chat-thread")

urlpatterns = [
    path("", include(router.urls)),
]
