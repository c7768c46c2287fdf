import logging
import uuid

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.actors import ADMIN, CUSTOMER, DRIVER, RESTAURANT
from apps.core.exceptions import (
    ActorNotAuthorized,
    DispatchError,
    InvalidOrderPayload,
)
from apps.core.responses import error_response
from apps.events.services import EventService
from infrastructure.database import run_with_retry

from . import services
from .models import Order, ScheduledOrder
from .serializers import (
    OrderSerializer,
    ScheduledOrderCreateSerializer,
    ScheduledOrderSerializer,
    TransitionSerializer,
    to_json_safe,
)

logger = logging.getLogger(__name__)

PARTY_FIELDS = {
    CUSTOMER: "customer_id",
    RESTAURANT: "restaurant_id",
    DRIVER: "driver_id",
}


def _parse_order_id(value):
    if value in (None, ""):
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidOrderPayload(f"Invalid order id: {value!r}")


def _visible_orders(actor):
    orders = Order.objects.all()
    if actor.role != ADMIN:
        orders = orders.filter(**{PARTY_FIELDS[actor.role]: actor.user_id})
    return orders


class OrderViewSet(viewsets.ViewSet):
    def list(self, request):
        actor = request.user.actor
        orders = _visible_orders(actor)
        for field in ("status", "order_status"):
            value = request.query_params.get(field)
            if value:
                orders = orders.filter(**{field: value})
        try:
            orders = run_with_retry(lambda: list(orders.order_by("-created_at")[:100]))
        except DispatchError as e:
            return error_response(e)
        serializer = OrderSerializer(orders, many=True)
        return Response(serializer.data)

    def retrieve(self, request, pk=None):
        actor = request.user.actor
        try:
            order = services.get_order_store().get(_parse_order_id(pk))
            if actor.role != ADMIN and getattr(order, PARTY_FIELDS[actor.role]) != actor.user_id:
                raise ActorNotAuthorized("Not a party to this order")
        except DispatchError as e:
            return error_response(e)
        return Response(OrderSerializer(order).data)

    def create(self, request):
        lifecycle = services.get_order_lifecycle()
        try:
            order_id = _parse_order_id(request.data.get("order_id"))
            result = lifecycle.place_order(request.data, order_id=order_id, actor=request.user.actor)
        except DispatchError as e:
            return error_response(e)
        return Response(
            OrderSerializer(result.order).data,
            status=status.HTTP_201_CREATED if result.changed else status.HTTP_200_OK,
        )

    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):
        serializer = TransitionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        lifecycle = services.get_order_lifecycle()
        try:
            result = lifecycle.transition(
                _parse_order_id(pk),
                request.user.actor,
                serializer.validated_data["target"],
                driver_id=serializer.validated_data.get("driver_id"),
            )
        except DispatchError as e:
            logger.info(f"Transition on order {pk} refused: {e.message}")
            return error_response(e)
        return Response({"changed": result.changed, "order": OrderSerializer(result.order).data})

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        from apps.drivers.services import get_assignment_coordinator

        if request.user.role != DRIVER:
            return error_response(ActorNotAuthorized("Only the assigned driver can reject an order"))
        try:
            result = get_assignment_coordinator().reject(_parse_order_id(pk), request.user.user_id)
        except DispatchError as e:
            return error_response(e)
        return Response({"changed": result.changed, "order": OrderSerializer(result.order).data})

    @action(detail=True, methods=["post"])
    def eta(self, request, pk=None):
        try:
            minutes = int(request.data.get("minutes"))
        except (TypeError, ValueError):
            return Response({"minutes": "An integer is required"}, status=status.HTTP_400_BAD_REQUEST)
        try:
            order = services.get_order_lifecycle().set_estimated_delivery(
                _parse_order_id(pk), request.user.actor, minutes
            )
        except DispatchError as e:
            return error_response(e)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["get"])
    def events(self, request, pk=None):
        actor = request.user.actor
        try:
            order = services.get_order_store().get(_parse_order_id(pk))
            if actor.role != ADMIN and getattr(order, PARTY_FIELDS[actor.role]) != actor.user_id:
                raise ActorNotAuthorized("Not a party to this order")
        except DispatchError as e:
            return error_response(e)
        events = EventService.get_order_events(order.id).values(
            "id", "event_type", "actor_role", "actor_id", "from_phase", "to_phase", "driver_id", "timestamp"
        )
        return Response(to_json_safe(list(events)))


class ScheduledOrderViewSet(viewsets.ViewSet):
    def list(self, request):
        actor = request.user.actor
        records = ScheduledOrder.objects.all()
        if actor.role == CUSTOMER:
            records = records.filter(customer_id=actor.user_id)
        elif actor.role == RESTAURANT:
            records = records.filter(restaurant_id=actor.user_id)
        elif actor.role != ADMIN:
            return error_response(ActorNotAuthorized("Drivers have no scheduled orders"))
        serializer = ScheduledOrderSerializer(records.order_by("scheduled_for"), many=True)
        return Response(serializer.data)

    def create(self, request):
        actor = request.user.actor
        serializer = ScheduledOrderCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        payload = serializer.validated_data["payload"]
        if actor.role not in (CUSTOMER, ADMIN) or (
            actor.role == CUSTOMER and payload["customer_id"] != actor.user_id
        ):
            return error_response(ActorNotAuthorized("Customers can only schedule their own orders"))

        try:
            record = run_with_retry(
                ScheduledOrder.objects.create,
                customer_id=payload["customer_id"],
                restaurant_id=payload["restaurant_id"],
                payload=to_json_safe(request.data["payload"]),
                scheduled_for=serializer.validated_data["scheduled_for"],
            )
        except DispatchError as e:
            return error_response(e)
        logger.info(f"Scheduled order {record.id} for {record.scheduled_for.isoformat()}")
        return Response(ScheduledOrderSerializer(record).data, status=status.HTTP_201_CREATED)
