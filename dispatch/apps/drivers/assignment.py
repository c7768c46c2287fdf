"""
Driver Assignment Coordinator.

Matches ready delivery orders to available drivers, handles rejections
with re-offer and repairs linkage drift between order and driver records.
Every link goes through the lifecycle machine, which claims the driver
record before writing the order.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from apps.accounts.services import get_restaurant
from apps.core.actors import DRIVER, SYSTEM, Actor
from apps.core.exceptions import (
    DispatchError,
    DriverUnavailable,
    InconsistentAssignment,
    InvalidTransition,
)
from apps.orders import phases
from apps.orders.store import order_group, snapshot

from .geo import distance_km, is_location_fresh
from .services import send_to_driver, send_to_group, set_driver_location

logger = logging.getLogger(__name__)


class AssignmentCoordinator:
    def __init__(self, lifecycle, drivers=None, orders=None, auto_reoffer=None, channel_layer=None):
        self.lifecycle = lifecycle
        self.drivers = drivers or lifecycle.drivers
        self.orders = orders or lifecycle.store
        self.auto_reoffer = settings.DISPATCH_AUTO_REOFFER if auto_reoffer is None else auto_reoffer
        self.channel_layer = channel_layer

    # Matching

    def rank_candidates(self, order, now=None):
        """Drivers that may take ``order``, best first.

        Nearest to the restaurant first, then fewest rejections, then
        longest idle. Drivers without a fresh location go last.
        """
        now = now or timezone.now()
        restaurant = get_restaurant(order.restaurant_id)
        pickup = restaurant.location if restaurant else None
        rejected = self.drivers.rejected_driver_ids(order.id)

        def sort_key(driver):
            distance = None
            if pickup and driver.location and is_location_fresh(driver.location_updated_at, now):
                distance = distance_km(pickup, driver.location)
            idle_since = driver.available_since or now
            return (
                distance is None,
                distance if distance is not None else 0.0,
                driver.rejected_orders_count,
                idle_since,
            )

        return sorted(self.drivers.available(exclude_ids=rejected), key=sort_key)

    def assign(self, order_id):
        """Offer a ready delivery order to drivers in rank order.

        Returns the updated order, or None when no driver could be claimed.
        """
        order = self.orders.get(order_id)
        if (
            order.order_status != phases.READY_FOR_PICKUP
            or order.driver_id
            or not order.is_delivery
        ):
            logger.info(f"Order {order_id} is not awaiting a driver ({order.order_status})")
            return None

        for driver in self.rank_candidates(order):
            try:
                result = self.lifecycle.transition(
                    order.id, SYSTEM, phases.ASSIGNED_DRIVER, driver_id=driver.user_id
                )
            except DriverUnavailable as e:
                logger.info(f"Skipping driver {driver.user_id} for order {order_id}: {e.message}")
                continue
            except InvalidTransition as e:
                logger.info(f"Order {order_id} moved on during assignment: {e.message}")
                return None
            send_to_driver(
                driver.user_id, "delivery.offer", snapshot(result.order), self.channel_layer
            )
            return result.order

        self.orders.update_fields(
            order.id,
            {
                "assignment_retry_count": F("assignment_retry_count") + 1,
                "last_assignment_retry_at": timezone.now(),
            },
        )
        logger.warning(f"No available driver for order {order_id}")
        return None

    def reject(self, order_id, driver_id):
        """Driver rejection followed by a re-offer to the next candidate."""
        result = self.lifecycle.reject_assignment(order_id, Actor(DRIVER, driver_id))
        if result.changed and self.auto_reoffer:
            try:
                self.assign(order_id)
            except DispatchError as e:
                # The rejection stands; the retry sweep picks the order up
                logger.error(f"Re-offer of order {order_id} failed: {e.message}")
        return result

    def self_assign(self, order_id, driver_id):
        return self.lifecycle.link_unassigned_driver(order_id, driver_id)

    def unlinked_orders(self):
        """Orders reading ``assigned_driver`` with no driver on record, oldest first."""
        return self.orders.filter(order_status=phases.ASSIGNED_DRIVER, driver_id__isnull=True)

    def announce_unlinked(self, order):
        """Offer an unlinked order to available drivers; the first to self-assign takes it."""
        candidates = self.rank_candidates(order)
        for driver in candidates:
            send_to_driver(driver.user_id, "delivery.unlinked", snapshot(order), self.channel_layer)
        return len(candidates)

    def retry_unassigned_orders(self, max_retries=10, max_age_hours=24):
        now = timezone.now()
        cutoff = now - timedelta(hours=max_age_hours)
        result = {"retried": 0, "assigned": 0, "cancelled": 0, "skipped": 0}

        waiting = self.orders.filter(
            order_status=phases.READY_FOR_PICKUP,
            delivery_option=phases.DELIVERY,
            driver_id__isnull=True,
        )
        for order in waiting:
            try:
                if order.created_at < cutoff:
                    self.lifecycle.transition(order.id, SYSTEM, phases.CANCELLED)
                    logger.warning(f"Cancelled order {order.id}: no driver within {max_age_hours}h")
                    result["cancelled"] += 1
                    continue
                if order.assignment_retry_count >= max_retries:
                    result["skipped"] += 1
                    continue
                result["retried"] += 1
                if self.assign(order.id) is not None:
                    result["assigned"] += 1
            except DispatchError as e:
                logger.error(f"Retry of order {order.id} failed: {e.message}")
        return result

    # Reconciliation

    def reconcile(self, grace_seconds=60):
        """Repair order/driver linkage that drifted apart.

        Records touched within ``grace_seconds`` are left alone: a claim in
        flight links the driver a moment before the order, and a rejection
        is noted a moment before the order is handed back.
        """
        now = timezone.now()
        cutoff = now - timedelta(seconds=grace_seconds)
        report = {
            "checked": 0,
            "released": 0,
            "relinked": 0,
            "unresolved": 0,
            "rejections": 0,
            "unlinked": 0,
        }

        for rejection in self.drivers.pending_rejections(older_than=cutoff):
            order = self.orders.find(rejection.order_id)
            if order is not None and order.denial_count > rejection.attempt:
                # The order was handed back but the driver record never followed
                if self.drivers.record_rejection(
                    rejection.driver_id, rejection.order_id, rejection.attempt
                ):
                    report["rejections"] += 1
            else:
                self.drivers.discard_rejection(
                    rejection.driver_id, rejection.order_id, rejection.attempt
                )

        for driver in self.drivers.linked_drivers():
            if driver.updated_at and driver.updated_at > cutoff:
                continue
            report["checked"] += 1
            order = self.orders.find(driver.current_order_id)
            if order is not None and not order.is_terminal and order.driver_id == driver.user_id:
                continue
            issue = InconsistentAssignment(
                f"Driver {driver.user_id} points at order {driver.current_order_id} "
                "which does not point back",
                driver_id=driver.user_id,
                order_id=driver.current_order_id,
            )
            logger.warning(issue.message)
            if self.drivers.release(driver.user_id, driver.current_order_id):
                report["released"] += 1
            else:
                report["unresolved"] += 1

        linked = self.orders.filter(
            order_status__in=list(phases.DRIVER_LINKED_PHASES), driver_id__isnull=False
        )
        for order in linked:
            report["checked"] += 1
            driver = self.drivers.find(order.driver_id)
            if driver is not None and driver.current_order_id == order.id:
                continue
            issue = InconsistentAssignment(
                f"Order {order.id} is linked to driver {order.driver_id} "
                "whose record lost the pointer",
                driver_id=order.driver_id,
                order_id=order.id,
            )
            logger.warning(issue.message)
            if driver is not None and driver.current_order_id is None and self.drivers.link(
                driver.user_id, order.id
            ):
                report["relinked"] += 1
            else:
                report["unresolved"] += 1

        for order in self.unlinked_orders():
            if order.updated_at and order.updated_at > cutoff:
                continue
            report["checked"] += 1
            issue = InconsistentAssignment(
                f"Order {order.id} reads {phases.ASSIGNED_DRIVER} without a driver",
                order_id=order.id,
            )
            logger.warning(issue.message)
            report["unlinked"] += 1
            self.announce_unlinked(order)

        logger.info(f"Reconciliation finished: {report}")
        return report

    # Driver-owned fields

    def set_availability(self, driver_id, available):
        updated = self.drivers.set_availability(driver_id, available)
        driver = self.drivers.get(driver_id)
        if not updated and available and driver.current_order_id:
            raise DriverUnavailable(
                f"Driver {driver_id} is on order {driver.current_order_id}", driver_id=driver_id
            )
        logger.info(f"Driver {driver_id} is now {'available' if available else 'unavailable'}")
        return driver

    def update_location(self, driver_id, latitude, longitude):
        now = timezone.now()
        if not self.drivers.set_location(driver_id, latitude, longitude, at=now):
            raise DriverUnavailable(f"Driver {driver_id} not found", driver_id=driver_id)

        location = {
            "driver_id": driver_id,
            "latitude": latitude,
            "longitude": longitude,
            "timestamp": now.isoformat(),
        }
        set_driver_location(driver_id, location, ttl=settings.DISPATCH_LOCATION_FRESH_SECONDS)

        driver = self.drivers.get(driver_id)
        if driver.current_order_id:
            location["order_id"] = str(driver.current_order_id)
            send_to_group(
                order_group(driver.current_order_id), "location.update", location, self.channel_layer
            )
        return location
