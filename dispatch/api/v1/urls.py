from django.urls import include, path

urlpatterns = [
    path("orders/", include("apps.orders.urls")),
    path("drivers/", include("apps.drivers.urls")),
    path("notifications/", include("apps.notifications.urls")),
    path("chat/", include("apps.chat.urls")),
]
