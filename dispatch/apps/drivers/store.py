"""
Driver record writes.

``current_order_id`` is only ever set through ``claim`` (conditional on the
driver being available and unlinked) and only ever cleared when it still
points at the order being released.
"""
import logging

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.core.exceptions import DriverUnavailable
from infrastructure.database import store_connectivity, store_retry

from .models import Driver, DriverRejection

logger = logging.getLogger(__name__)


class DriverStore:
    def __init__(self, connectivity=None):
        self.connectivity = connectivity or store_connectivity

    @store_retry
    def find(self, driver_id):
        return Driver.objects.filter(user_id=driver_id).first()

    def get(self, driver_id):
        driver = self.find(driver_id)
        if driver is None:
            raise DriverUnavailable(f"Driver {driver_id} not found", driver_id=driver_id)
        return driver

    @store_retry
    def available(self, exclude_ids=()):
        return list(
            Driver.objects.filter(
                is_active=True, is_available=True, current_order_id__isnull=True
            ).exclude(user_id__in=list(exclude_ids))
        )

    @store_retry
    def linked_drivers(self):
        return list(Driver.objects.filter(current_order_id__isnull=False))

    @store_retry
    def claim(self, driver_id, order_id):
        """Link the driver to ``order_id`` if it is free.

        True only when this call made the link. A driver already pointing at
        ``order_id`` was claimed by someone else, and only that caller may
        release it.
        """
        claimed = Driver.objects.filter(
            user_id=driver_id,
            is_active=True,
            is_available=True,
            current_order_id__isnull=True,
        ).update(is_available=False, current_order_id=order_id, updated_at=timezone.now())
        return claimed == 1

    @store_retry
    def release(self, driver_id, order_id):
        now = timezone.now()
        return Driver.objects.filter(user_id=driver_id, current_order_id=order_id).update(
            is_available=True, current_order_id=None, available_since=now, updated_at=now
        )

    @store_retry
    def link(self, driver_id, order_id):
        """Restore a lost pointer for a driver that is not linked elsewhere."""
        return Driver.objects.filter(
            Q(current_order_id__isnull=True) | Q(current_order_id=order_id),
            user_id=driver_id,
        ).update(is_available=False, current_order_id=order_id, updated_at=timezone.now())

    @store_retry
    def complete_delivery(self, driver_id, order_id):
        now = timezone.now()
        released = Driver.objects.filter(user_id=driver_id, current_order_id=order_id).update(
            is_available=True,
            current_order_id=None,
            available_since=now,
            last_delivery_at=now,
            total_deliveries=F("total_deliveries") + 1,
            updated_at=now,
        )
        if not released:
            logger.warning(
                f"Driver {driver_id} was not linked to delivered order {order_id}; "
                "leaving driver record for reconciliation"
            )
        return released

    @store_retry
    def note_rejection(self, driver_id, order_id, attempt):
        """Mark the driver as declining ``order_id`` before the order is handed back."""
        DriverRejection.objects.get_or_create(order_id=order_id, driver_id=driver_id, attempt=attempt)

    @store_retry
    def discard_rejection(self, driver_id, order_id, attempt):
        deleted, _ = DriverRejection.objects.filter(
            order_id=order_id, driver_id=driver_id, attempt=attempt, counted=False
        ).delete()
        return deleted

    @store_retry
    def record_rejection(self, driver_id, order_id, attempt=0):
        """Count the rejection and free the driver.

        Runs as one transaction and counts each rejection once, so a retried
        call never increments twice. Returns True when this call counted it.
        """
        now = timezone.now()
        with transaction.atomic():
            rejection, _ = DriverRejection.objects.get_or_create(
                order_id=order_id, driver_id=driver_id, attempt=attempt
            )
            if not DriverRejection.objects.filter(pk=rejection.pk, counted=False).update(counted=True):
                return False
            updated = Driver.objects.filter(
                Q(current_order_id=order_id) | Q(current_order_id__isnull=True),
                user_id=driver_id,
            ).update(
                rejected_orders_count=F("rejected_orders_count") + 1,
                is_available=True,
                current_order_id=None,
                available_since=now,
                updated_at=now,
            )
            if not updated:
                # Linked to another order meanwhile: count the rejection only
                Driver.objects.filter(user_id=driver_id).update(
                    rejected_orders_count=F("rejected_orders_count") + 1, updated_at=now
                )
        return True

    @store_retry
    def pending_rejections(self, order_id=None, driver_id=None, older_than=None):
        """Rejections whose driver side has not been written yet."""
        rejections = DriverRejection.objects.filter(counted=False)
        if order_id is not None:
            rejections = rejections.filter(order_id=order_id)
        if driver_id is not None:
            rejections = rejections.filter(driver_id=driver_id)
        if older_than is not None:
            rejections = rejections.filter(created_at__lte=older_than)
        return list(rejections.order_by("created_at"))

    @store_retry
    def rejected_driver_ids(self, order_id):
        return set(
            DriverRejection.objects.filter(order_id=order_id).values_list("driver_id", flat=True)
        )

    @store_retry
    def set_availability(self, driver_id, available):
        now = timezone.now()
        if available:
            # A driver holding an order cannot go available
            return Driver.objects.filter(
                user_id=driver_id, current_order_id__isnull=True
            ).update(is_available=True, available_since=now, updated_at=now)
        return Driver.objects.filter(user_id=driver_id).update(
            is_available=False, available_since=None, updated_at=now
        )

    @store_retry
    def set_location(self, driver_id, latitude, longitude, at=None):
        at = at or timezone.now()
        return Driver.objects.filter(user_id=driver_id).update(
            latitude=latitude, longitude=longitude, location_updated_at=at, updated_at=at
        )
