KAFKA_TOPICS = {
    "ORDER_CREATED": "dispatch.order.created",
    "ORDER_STATUS_CHANGED": "dispatch.order.status.changed",
    "DRIVER_ASSIGNED": "dispatch.driver.assigned",
    "DRIVER_REJECTED": "dispatch.driver.rejected",
    "DEAD_LETTER_QUEUE": "dispatch.dlq",
}


# Event Types
class EventTypes:
    ORDER_CREATED = "order_created"
    ORDER_STATUS_CHANGED = "order_status_changed"
    DRIVER_ASSIGNED = "driver_assigned"
    DRIVER_REJECTED = "driver_rejected"
    ASSIGNMENT_REPAIRED = "assignment_repaired"

    CHOICES = [
        (ORDER_CREATED, "Order Created"),
        (ORDER_STATUS_CHANGED, "Order Status Changed"),
        (DRIVER_ASSIGNED, "Driver Assigned"),
        (DRIVER_REJECTED, "Driver Rejected"),
        (ASSIGNMENT_REPAIRED, "Assignment Repaired"),
    ]

    TOPICS = {
        ORDER_CREATED: KAFKA_TOPICS["ORDER_CREATED"],
        ORDER_STATUS_CHANGED: KAFKA_TOPICS["ORDER_STATUS_CHANGED"],
        DRIVER_ASSIGNED: KAFKA_TOPICS["DRIVER_ASSIGNED"],
        DRIVER_REJECTED: KAFKA_TOPICS["DRIVER_REJECTED"],
        ASSIGNMENT_REPAIRED: KAFKA_TOPICS["ORDER_STATUS_CHANGED"],
    }
