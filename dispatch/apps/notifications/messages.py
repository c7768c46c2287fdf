"""
Phase-keyed push templates.

``{restaurant}`` is filled with the order's restaurant name.
"""
from apps.core.actors import CUSTOMER, DRIVER, RESTAURANT
from apps.orders import phases

PHASE_TEMPLATES = {
    phases.ACCEPTED: ("Order Confirmed", "{restaurant} has accepted your order."),
    phases.PREPARING: ("Order Being Prepared", "{restaurant} is preparing your order."),
    phases.READY_FOR_PICKUP: ("Order Ready", "Your order from {restaurant} is ready."),
    phases.ASSIGNED_DRIVER: ("Driver Assigned", "A driver has been assigned to your order from {restaurant}."),
    phases.DRIVER_ACCEPTED: ("Order Accepted!", "Your order from {restaurant} has been accepted by the driver."),
    phases.PICKED_UP: (
        "Order Picked Up!",
        "Your order from {restaurant} has been picked up and is on its way to you.",
    ),
    phases.DELIVERING: ("Almost There", "Your order from {restaurant} is being delivered."),
    phases.DELIVERED: ("Order Delivered", "Your order from {restaurant} has been delivered. Enjoy!"),
    phases.REJECTED: ("Order Rejected", "{restaurant} could not accept your order."),
    phases.CANCELLED: ("Order Cancelled", "Your order from {restaurant} has been cancelled."),
}

RESTAURANT_TEMPLATES = {
    phases.PENDING: ("New Order", "You have a new order to review."),
    phases.CANCELLED: ("Order Cancelled", "The customer cancelled their order."),
    phases.READY_FOR_PICKUP: ("Driver Unavailable", "The assigned driver declined; finding another driver."),
}

DRIVER_TEMPLATES = {
    phases.ASSIGNED_DRIVER: ("New Delivery", "You have been assigned an order from {restaurant}."),
    phases.CANCELLED: ("Delivery Cancelled", "The order from {restaurant} was cancelled."),
}

SCHEDULED_ORDER_PROCESSING = (
    "Your Scheduled Order is Processing",
    "Your scheduled order from {restaurant} is now being processed.",
)

# Push types the clients already route on; other phases use order_<phase>
NOTIFICATION_TYPES = {
    phases.ACCEPTED: "order_confirmed",
    phases.DRIVER_ACCEPTED: "order_accepted",
}

TEMPLATES_BY_ROLE = {
    CUSTOMER: PHASE_TEMPLATES,
    RESTAURANT: RESTAURANT_TEMPLATES,
    DRIVER: DRIVER_TEMPLATES,
}


def notification_type(phase):
    return NOTIFICATION_TYPES.get(phase, f"order_{phase}")


def render(template, order):
    title, body = template
    return title, body.format(restaurant=order.restaurant_name or "the restaurant")


def render_for(role, phase, order):
    """Title and body for ``role`` when ``order`` enters ``phase``; None if silent."""
    template = TEMPLATES_BY_ROLE.get(role, {}).get(phase)
    if template is None:
        return None
    return render(template, order)


def payload(order, phase, kind, recipient_role):
    return {
        "orderId": str(order.id),
        "status": phases.coarse_status(phase),
        "orderStatus": phase,
        "type": kind,
        "recipientRole": recipient_role,
    }
