from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.actors import ADMIN, DRIVER, RESTAURANT
from apps.core.exceptions import ActorNotAuthorized, DispatchError
from apps.core.responses import error_response
from apps.orders import phases
from apps.orders.serializers import OrderSerializer

from .models import Driver
from .serializers import (
    AssignSerializer,
    AvailabilitySerializer,
    DriverSerializer,
    LocationSerializer,
)
from .services import get_assignment_coordinator


def _require_self(actor, driver_id):
    if actor.role == ADMIN:
        return
    if actor.role != DRIVER or actor.user_id != driver_id:
        raise ActorNotAuthorized("Drivers can only manage their own record")


def _require_restaurant_of(actor, order):
    if actor.role == ADMIN:
        return
    if actor.role != RESTAURANT or order.restaurant_id != actor.user_id:
        raise ActorNotAuthorized("Only the order's restaurant can assign a driver")


class DriverViewSet(viewsets.ViewSet):
    def list(self, request):
        if request.user.role != ADMIN:
            return error_response(ActorNotAuthorized("Only admins can list drivers"))
        coordinator = get_assignment_coordinator()
        try:
            if request.query_params.get("available", "").lower() == "true":
                drivers = coordinator.drivers.available()
            else:
                drivers = list(Driver.objects.order_by("name"))
        except DispatchError as e:
            return error_response(e)
        return Response(DriverSerializer(drivers, many=True).data)

    def retrieve(self, request, pk=None):
        try:
            _require_self(request.user.actor, pk)
            driver = get_assignment_coordinator().drivers.get(pk)
        except DispatchError as e:
            return error_response(e)
        return Response(DriverSerializer(driver).data)

    @action(detail=True, methods=["post"])
    def availability(self, request, pk=None):
        serializer = AvailabilitySerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            _require_self(request.user.actor, pk)
            driver = get_assignment_coordinator().set_availability(
                pk, serializer.validated_data["available"]
            )
        except DispatchError as e:
            return error_response(e)
        return Response(DriverSerializer(driver).data)

    @action(detail=True, methods=["post"])
    def location(self, request, pk=None):
        serializer = LocationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            _require_self(request.user.actor, pk)
            location = get_assignment_coordinator().update_location(pk, **serializer.validated_data)
        except DispatchError as e:
            return error_response(e)
        return Response(location)

    @action(detail=False, methods=["post"])
    def assign(self, request):
        """Assign a driver to a ready order: the named one, or the best candidate."""
        serializer = AssignSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        actor = request.user.actor
        order_id = serializer.validated_data["order_id"]
        driver_id = serializer.validated_data.get("driver_id")
        coordinator = get_assignment_coordinator()
        try:
            _require_restaurant_of(actor, coordinator.orders.get(order_id))
            if driver_id:
                order = coordinator.lifecycle.transition(
                    order_id, actor, phases.ASSIGNED_DRIVER, driver_id=driver_id
                ).order
            else:
                order = coordinator.assign(order_id)
        except DispatchError as e:
            return error_response(e)

        if order is None:
            return Response(
                {"assigned": False, "detail": "No available driver"}, status=status.HTTP_202_ACCEPTED
            )
        return Response({"assigned": True, "order": OrderSerializer(order).data})

    @action(detail=False, methods=["post"], url_path="self-assign")
    def self_assign(self, request):
        actor = request.user.actor
        if actor.role != DRIVER:
            return error_response(ActorNotAuthorized("Only drivers can take an order"))
        serializer = AssignSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            result = get_assignment_coordinator().self_assign(
                serializer.validated_data["order_id"], actor.user_id
            )
        except DispatchError as e:
            return error_response(e)
        return Response({"changed": result.changed, "order": OrderSerializer(result.order).data})

    @action(detail=False, methods=["get"])
    def unlinked(self, request):
        """Orders waiting on a driver link that any available driver may self-assign."""
        if request.user.role not in (DRIVER, ADMIN):
            return error_response(ActorNotAuthorized("Only drivers can see unlinked orders"))
        try:
            orders = get_assignment_coordinator().unlinked_orders()
        except DispatchError as e:
            return error_response(e)
        return Response(OrderSerializer(orders, many=True).data)

    @action(detail=False, methods=["post"])
    def reconcile(self, request):
        if request.user.role != ADMIN:
            return error_response(ActorNotAuthorized("Only admins can reconcile assignments"))
        try:
            report = get_assignment_coordinator().reconcile()
        except DispatchError as e:
            return error_response(e)
        return Response(report)
