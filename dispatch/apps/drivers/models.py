from config.models import TimeStampedModel
from django.db import models


class Driver(TimeStampedModel):
    """A driver record, written by two parties.

    The driver client owns availability and location; the assignment
    coordinator owns ``current_order_id``. Both only ever write it with
    conditional updates.
    """

    user_id = models.CharField(max_length=128, primary_key=True)
    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True)
    is_available = models.BooleanField(default=False)
    available_since = models.DateTimeField(null=True, blank=True)
    current_order_id = models.UUIDField(null=True, blank=True)

    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    location_updated_at = models.DateTimeField(null=True, blank=True)

    rejected_orders_count = models.IntegerField(default=0)
    rating = models.FloatField(default=0.0)
    total_deliveries = models.IntegerField(default=0)
    last_delivery_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "drivers"
        indexes = [
            models.Index(fields=["is_available", "is_active"], name="drivers_available_idx"),
            models.Index(fields=["current_order_id"], name="drivers_current_order_idx"),
        ]

    def __str__(self):
        return f"{self.name} - ({self.user_id})"

    @property
    def location(self):
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


class DriverRejection(models.Model):
    """A driver declining an order.

    Written before the order is handed back, keyed by the order's
    ``denial_count`` at that moment. ``counted`` flips once the driver's
    counter has been incremented for it.
    """

    order_id = models.UUIDField()
    driver_id = models.CharField(max_length=128)
    attempt = models.IntegerField(default=0)
    counted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "driver_rejections"
        constraints = [
            models.UniqueConstraint(
                fields=["order_id", "driver_id", "attempt"], name="unique_driver_rejection"
            ),
        ]
        indexes = [
            models.Index(fields=["order_id"], name="driver_rejections_order_idx"),
        ]
