from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import StoreUnavailable
from infrastructure.cache import check_cache_connection
from infrastructure.database import check_database_connection, store_connectivity


class HealthCheckView(APIView):
    """Basic health check endpoint"""

    authentication_classes = []
    permission_classes = []

    def get(self, request):
        return Response(
            {
                "status": "degraded" if store_connectivity.is_degraded else "healthy",
                "service": "order-dispatch",
                "store": store_connectivity.as_dict(),
            },
            status=status.HTTP_200_OK,
        )


class ReadinessCheckView(APIView):
    """Readiness check - verifies all dependencies"""

    authentication_classes = []
    permission_classes = []

    def get(self, request):
        checks = {
            "database": self._check_database(),
            "cache": check_cache_connection(),
        }

        all_healthy = all(checks.values())

        return Response(
            {"status": "ready" if all_healthy else "not_ready", "checks": checks},
            status=status.HTTP_200_OK
            if all_healthy
            else status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    def _check_database(self):
        try:
            check_database_connection()
        except StoreUnavailable as e:
            store_connectivity.mark_failed(e)
            return False
        store_connectivity.mark_ok()
        return True
