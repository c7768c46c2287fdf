from apps.core.models import TimeStampedUUIDModel
from django.db import models

from . import phases


class Order(TimeStampedUUIDModel):
    customer_id = models.CharField(max_length=128)
    restaurant_id = models.CharField(max_length=128)
    restaurant_name = models.CharField(max_length=150, blank=True)
    driver_id = models.CharField(max_length=128, null=True, blank=True)
    driver_name = models.CharField(max_length=150, null=True, blank=True)

    # Price snapshot, never rewritten after creation
    items = models.JSONField(default=list)
    subtotal = models.DecimalField(max_digits=10, decimal_places=2)
    tip_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    delivery_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=10, decimal_places=2)

    delivery_option = models.CharField(max_length=20, choices=phases.DELIVERY_OPTION_CHOICES)
    payment_method = models.CharField(max_length=50)
    payment_completed = models.BooleanField(default=False)

    status = models.CharField(
        max_length=20, choices=phases.STATUS_CHOICES, default=phases.STATUS_PENDING
    )
    order_status = models.CharField(
        max_length=32, choices=phases.PHASE_CHOICES, default=phases.PENDING
    )

    address = models.JSONField(null=True, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    accepted_time = models.DateTimeField(null=True, blank=True)
    preparing_time = models.DateTimeField(null=True, blank=True)
    ready_time = models.DateTimeField(null=True, blank=True)
    assigned_time = models.DateTimeField(null=True, blank=True)
    driver_accepted_time = models.DateTimeField(null=True, blank=True)
    picked_up_time = models.DateTimeField(null=True, blank=True)
    delivering_time = models.DateTimeField(null=True, blank=True)
    delivered_time = models.DateTimeField(null=True, blank=True)
    rejected_time = models.DateTimeField(null=True, blank=True)
    cancelled_time = models.DateTimeField(null=True, blank=True)
    estimated_delivery_time = models.DateTimeField(null=True, blank=True)

    denial_count = models.IntegerField(
        default=0, help_text="Number of times delivery was declined by drivers"
    )
    assignment_retry_count = models.IntegerField(
        default=0, help_text="Number of times assignment was retried"
    )
    last_assignment_retry_at = models.DateTimeField(
        null=True, blank=True, help_text="Last time assignment was retried"
    )

    class Meta:
        db_table = "orders"
        indexes = [
            models.Index(fields=["order_status"], name="orders_phase_idx"),
            models.Index(fields=["customer_id"], name="orders_customer_idx"),
            models.Index(fields=["restaurant_id"], name="orders_restaurant_idx"),
            models.Index(fields=["driver_id"], name="orders_driver_idx"),
            models.Index(fields=["created_at"], name="orders_created_idx"),
        ]

    def __str__(self):
        return f"Order {self.id} - {self.order_status}"

    @property
    def is_terminal(self):
        return self.order_status in phases.TERMINAL_PHASES

    @property
    def is_delivery(self):
        return self.delivery_option == phases.DELIVERY


class ScheduledOrder(TimeStampedUUIDModel):
    customer_id = models.CharField(max_length=128)
    restaurant_id = models.CharField(max_length=128)
    payload = models.JSONField(help_text="Validated order payload placed at activation")
    scheduled_for = models.DateTimeField()
    claim_token = models.UUIDField(null=True, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(blank=True)

    class Meta:
        db_table = "scheduled_orders"
        indexes = [
            models.Index(fields=["scheduled_for"], name="scheduled_for_idx"),
        ]

    def __str__(self):
        return f"Scheduled order {self.id} for {self.scheduled_for.isoformat()}"
