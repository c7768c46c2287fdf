"""
Order Lifecycle State Machine.

Owns the permitted phase changes of an order and their side effects. Any
number of actors may call in concurrently: each change is one conditional
write guarded by the phase that was read, and a lost race is resolved by
re-reading and re-validating, never by overwriting.
"""
import logging
from datetime import timedelta
from typing import NamedTuple

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from apps.core.actors import ADMIN, CUSTOMER, DRIVER, RESTAURANT, Actor
from apps.core.exceptions import (
    ActorNotAuthorized,
    DriverUnavailable,
    InvalidTransition,
    StoreUnavailable,
)
from apps.events.constants import EventTypes
from apps.notifications import messages

from . import phases
from .models import Order
from .serializers import decode_order_payload

logger = logging.getLogger(__name__)


class TransitionResult(NamedTuple):
    order: Order
    changed: bool


class OrderLifecycle:
    def __init__(self, store, drivers, notifier, events, max_attempts=None):
        self.store = store
        self.drivers = drivers
        self.notifier = notifier
        self.events = events
        self.max_attempts = max_attempts or settings.DISPATCH_TRANSITION_ATTEMPTS

    # Creation

    def place_order(self, payload, order_id=None, actor=None):
        """Create an order at ``pending`` from a customer payload.

        Re-placing an existing ``order_id`` is a no-op returning the stored
        order with ``changed=False``.
        """
        fields = decode_order_payload(payload)
        if actor is not None:
            actor = Actor(*actor).validate()
            if actor.role == CUSTOMER and actor.user_id != fields["customer_id"]:
                raise ActorNotAuthorized("Customers can only place their own orders")
            if actor.role not in (CUSTOMER, ADMIN):
                raise ActorNotAuthorized(f"{actor.role} cannot place orders")

        fields.update(order_status=phases.PENDING, status=phases.coarse_status(phases.PENDING))
        order, created = self.store.create(fields, order_id=order_id)
        if not created:
            return TransitionResult(order, False)

        logger.info(f"Order {order.id} placed by customer {order.customer_id}")
        self.events.record(
            order.id, EventTypes.ORDER_CREATED, actor=actor, to_phase=phases.PENDING,
            event_data={"total": str(order.total)},
        )
        self._notify(order, RESTAURANT, order.restaurant_id, phases.PENDING, "new_order")
        return TransitionResult(order, True)

    # Transitions

    def transition(self, order_id, actor, target, driver_id=None):
        """Move ``order_id`` to phase ``target`` on behalf of ``actor``.

        Applying a transition the order already reflects is a no-op success.
        """
        actor = Actor(*actor).validate()
        if target not in phases.PHASES:
            raise InvalidTransition(f"Unknown phase {target!r}", target=target)

        for attempt in range(self.max_attempts):
            order = self.store.get(order_id)
            if order.order_status == target:
                self._check_duplicate(order, actor, target, driver_id)
                return TransitionResult(order, False)

            edge = self._edge_for(order, actor, target)
            if edge.links_driver:
                result = self._apply_with_driver(order, actor, edge, driver_id)
            else:
                result = self._apply(order, actor, edge)
            if result is not None:
                return result
            logger.info(
                f"Order {order_id} changed under {actor.role} {actor.user_id} "
                f"(attempt {attempt + 1}); re-reading"
            )

        raise InvalidTransition(
            f"Order {order_id} kept changing, {target} was not applied", order_id=order_id
        )

    def reject_assignment(self, order_id, actor):
        """Driver declines an assigned order; it goes back to ``ready_for_pickup``.

        The order is written first, so a failure can never leave the phase
        advanced with no driver able to take it. The driver side follows;
        if it fails, repeating the rejection finishes it.
        """
        actor = Actor(*actor).validate()
        if actor.role != DRIVER:
            raise ActorNotAuthorized("Only the assigned driver can reject an order")

        order = self.store.get(order_id)
        if self._rejected_before(order, actor):
            return self._complete_rejection(order, actor)
        if order.order_status not in (phases.ASSIGNED_DRIVER, phases.DRIVER_ACCEPTED):
            raise InvalidTransition(
                f"Cannot reject an order in {order.order_status}", order_id=order_id
            )
        if order.driver_id != actor.user_id:
            raise ActorNotAuthorized("Order is not assigned to this driver", order_id=order_id)

        attempt = order.denial_count
        self.drivers.note_rejection(actor.user_id, order.id, attempt)
        updated = self.store.compare_and_set(
            order.id,
            {
                "order_status": order.order_status,
                "driver_id": actor.user_id,
                "denial_count": attempt,
            },
            {
                "order_status": phases.READY_FOR_PICKUP,
                "status": phases.coarse_status(phases.READY_FOR_PICKUP),
                "driver_id": None,
                "driver_name": None,
                "assigned_time": None,
                "driver_accepted_time": None,
                "denial_count": F("denial_count") + 1,
            },
        )
        if updated is None:
            current = self.store.get(order_id)
            if self._rejected_before(current, actor):
                return self._complete_rejection(current, actor)
            self._discard_rejection_quietly(actor.user_id, order.id, attempt)
            raise InvalidTransition(
                f"Order {order_id} changed to {current.order_status} before the rejection landed",
                order_id=order_id,
            )
        return self._complete_rejection(updated, actor, attempt, from_phase=order.order_status)

    def link_unassigned_driver(self, order_id, driver_id):
        """Fill in ``driver_id`` on an order that reads ``assigned_driver`` without one.

        This is a claim: it only succeeds while ``driver_id`` is still unset,
        so two drivers racing for the same order cannot both win.
        """
        order = self.store.get(order_id)
        if order.order_status != phases.ASSIGNED_DRIVER:
            raise InvalidTransition(f"Order {order_id} is not awaiting a driver link")
        if order.driver_id:
            if order.driver_id == driver_id:
                return TransitionResult(order, False)
            raise DriverUnavailable(f"Order {order_id} is already linked to another driver")

        driver = self.drivers.get(driver_id)
        if not self.drivers.claim(driver_id, order.id):
            raise DriverUnavailable(f"Driver {driver_id} is not available", driver_id=driver_id)
        updated = self.store.compare_and_set(
            order.id,
            {"order_status": phases.ASSIGNED_DRIVER, "driver_id__isnull": True},
            {"driver_id": driver_id, "driver_name": driver.name},
        )
        if updated is None:
            self.drivers.release(driver_id, order.id)
            raise DriverUnavailable(f"Order {order_id} was linked to another driver first")
        self.events.record(
            order.id, EventTypes.ASSIGNMENT_REPAIRED, actor=Actor(DRIVER, driver_id),
            from_phase=phases.ASSIGNED_DRIVER, to_phase=phases.ASSIGNED_DRIVER, driver_id=driver_id,
        )
        return TransitionResult(updated, True)

    def set_estimated_delivery(self, order_id, actor, minutes):
        actor = Actor(*actor).validate()
        order = self.store.get(order_id)
        if actor.role not in (DRIVER, ADMIN):
            raise ActorNotAuthorized("Only drivers estimate delivery times")
        self._check_party(order, actor)
        if order.is_terminal:
            raise InvalidTransition(f"Order {order_id} is already {order.order_status}")
        eta = timezone.now() + timedelta(minutes=minutes)
        self.store.update_fields(order.id, {"estimated_delivery_time": eta})
        return self.store.get(order_id)

    # Internals

    def _edge_for(self, order, actor, target):
        edge = phases.find_edge(order.order_status, target)
        if edge is None:
            raise InvalidTransition(
                f"Cannot move order from {order.order_status} to {target}",
                order_id=order.id, current=order.order_status, target=target,
            )
        if actor.role not in edge.roles:
            raise ActorNotAuthorized(
                f"{actor.role} cannot move an order from {edge.source} to {edge.target}",
                order_id=order.id,
            )
        if edge.mode and edge.mode != order.delivery_option:
            raise InvalidTransition(
                f"{target} does not apply to {order.delivery_option} orders", order_id=order.id
            )
        self._check_party(order, actor, edge)
        return edge

    def _check_party(self, order, actor, edge=None):
        if actor.role == ADMIN:
            return
        if actor.role == RESTAURANT:
            party = order.restaurant_id
        elif actor.role == CUSTOMER:
            party = order.customer_id
        elif edge is not None and edge.links_driver:
            # Self-claim: any driver may try, the claim decides
            return
        else:
            party = order.driver_id
        if party != actor.user_id:
            raise ActorNotAuthorized(
                f"{actor.role} {actor.user_id} is not a party to order {order.id}",
                order_id=order.id,
            )

    def _check_duplicate(self, order, actor, target, driver_id):
        """A repeat of an applied transition must come from someone who could have made it."""
        if actor.role not in phases.roles_reaching(target):
            raise ActorNotAuthorized(f"{actor.role} cannot move an order to {target}")
        if target in phases.DRIVER_LINKED_PHASES:
            wanted = actor.user_id if actor.role == DRIVER else driver_id
            if wanted and order.driver_id != wanted:
                raise InvalidTransition(
                    f"Order {order.id} is already assigned to another driver", order_id=order.id
                )
        if actor.role != DRIVER:
            self._check_party(order, actor)

    def _rejected_before(self, order, actor):
        return (
            order.driver_id != actor.user_id
            and actor.user_id in self.drivers.rejected_driver_ids(order.id)
        )

    def _landed_rejection(self, order, actor):
        """Attempt of a rejection whose order write landed but whose driver write did not."""
        for rejection in self.drivers.pending_rejections(order_id=order.id, driver_id=actor.user_id):
            if rejection.attempt < order.denial_count:
                return rejection.attempt
        return None

    def _complete_rejection(self, order, actor, attempt=None, from_phase=None):
        """Count the rejection and free the driver; one already counted is a no-op."""
        if attempt is None:
            attempt = self._landed_rejection(order, actor)
            if attempt is None:
                return TransitionResult(order, False)
        if not self.drivers.record_rejection(actor.user_id, order.id, attempt):
            return TransitionResult(order, False)

        logger.info(f"Driver {actor.user_id} rejected order {order.id}")
        self.events.record(
            order.id, EventTypes.DRIVER_REJECTED, actor=actor,
            from_phase=from_phase, to_phase=phases.READY_FOR_PICKUP, driver_id=actor.user_id,
        )
        if order.order_status == phases.READY_FOR_PICKUP:
            self._notify(
                order, RESTAURANT, order.restaurant_id, phases.READY_FOR_PICKUP, "driver_rejected"
            )
        return TransitionResult(order, True)

    def _discard_rejection_quietly(self, driver_id, order_id, attempt):
        try:
            self.drivers.discard_rejection(driver_id, order_id, attempt)
        except StoreUnavailable as e:
            logger.error(
                f"Could not discard rejection of order {order_id} by driver {driver_id}: {e}; "
                "left for reconciliation"
            )

    def _changes_for(self, target, now):
        changes = {
            "order_status": target,
            "status": phases.coarse_status(target),
        }
        timestamp_field = phases.PHASE_TIMESTAMP_FIELDS.get(target)
        if timestamp_field:
            changes[timestamp_field] = now
        return changes

    def _apply(self, order, actor, edge):
        expected = {"order_status": edge.source}
        if order.driver_id and edge.source in phases.DRIVER_LINKED_PHASES:
            expected["driver_id"] = order.driver_id

        updated = self.store.compare_and_set(
            order.id, expected, self._changes_for(edge.target, timezone.now())
        )
        if updated is None:
            return None
        self._after_transition(order, updated, actor, edge)
        return TransitionResult(updated, True)

    def _apply_with_driver(self, order, actor, edge, driver_id):
        if actor.role == DRIVER:
            driver_id = actor.user_id
        if not driver_id:
            raise InvalidTransition(f"A driver is required to move an order to {edge.target}")
        if order.driver_id:
            raise InvalidTransition(f"Order {order.id} already has a driver", order_id=order.id)

        driver = self.drivers.get(driver_id)
        if not self.drivers.claim(driver_id, order.id):
            raise DriverUnavailable(f"Driver {driver_id} is not available", driver_id=driver_id)

        now = timezone.now()
        changes = self._changes_for(edge.target, now)
        changes.update(driver_id=driver_id, driver_name=driver.name, assigned_time=now)
        try:
            updated = self.store.compare_and_set(
                order.id,
                {"order_status": edge.source, "driver_id__isnull": True},
                changes,
            )
        except StoreUnavailable:
            self._release_quietly(driver_id, order.id)
            raise
        if updated is None:
            # Lost the order race; hand the driver back before re-reading
            self._release_quietly(driver_id, order.id)
            return None

        logger.info(f"Order {order.id} linked to driver {driver_id} ({edge.target})")
        self._after_transition(order, updated, actor, edge)
        return TransitionResult(updated, True)

    def _release_quietly(self, driver_id, order_id):
        try:
            self.drivers.release(driver_id, order_id)
        except StoreUnavailable as e:
            logger.error(
                f"Could not release driver {driver_id} from order {order_id}: {e}; "
                "left for reconciliation"
            )

    def _after_transition(self, before, order, actor, edge):
        target = edge.target
        if target == phases.DELIVERED and order.driver_id:
            try:
                self.drivers.complete_delivery(order.driver_id, order.id)
            except StoreUnavailable as e:
                logger.error(
                    f"Order {order.id} delivered but driver {order.driver_id} not released: {e}"
                )
        elif target in (phases.CANCELLED, phases.REJECTED) and before.driver_id:
            self._release_quietly(before.driver_id, order.id)

        event_type = EventTypes.DRIVER_ASSIGNED if edge.links_driver else EventTypes.ORDER_STATUS_CHANGED
        self.events.record(
            order.id, event_type, actor=actor, from_phase=edge.source, to_phase=target,
            driver_id=order.driver_id or before.driver_id,
        )
        self._notify_counterparts(before, order, actor, target)

    def _notify_counterparts(self, before, order, actor, target):
        kind = messages.notification_type(target)
        if actor.role == CUSTOMER:
            self._notify(order, RESTAURANT, order.restaurant_id, target, kind)
        else:
            self._notify(order, CUSTOMER, order.customer_id, target, kind)

        if target == phases.ASSIGNED_DRIVER:
            self._notify(order, DRIVER, order.driver_id, target, "delivery_assigned")
        elif target == phases.CANCELLED and before.driver_id and actor.role != DRIVER:
            self._notify(order, DRIVER, before.driver_id, target, "delivery_cancelled")

    def _notify(self, order, role, user_id, phase, kind):
        rendered = messages.render_for(role, phase, order)
        if rendered is None or not user_id:
            return
        title, body = rendered
        self.notifier.dispatch(user_id, title, body, messages.payload(order, phase, kind, role))
