"""
Order phases (``order_status``) and the permitted edge table.

The coarse ``status`` field is a projection of the phase and is never
written independently.
"""
from apps.core.actors import ADMIN, CUSTOMER, DRIVER, RESTAURANT

PENDING = "pending"
ACCEPTED = "accepted"
PREPARING = "preparing"
READY_FOR_PICKUP = "ready_for_pickup"
ASSIGNED_DRIVER = "assigned_driver"
DRIVER_ACCEPTED = "driver_accepted"
PICKED_UP = "picked_up"
DELIVERING = "delivering"
DELIVERED = "delivered"
REJECTED = "rejected"
CANCELLED = "cancelled"

PHASES = (
    PENDING,
    ACCEPTED,
    PREPARING,
    READY_FOR_PICKUP,
    ASSIGNED_DRIVER,
    DRIVER_ACCEPTED,
    PICKED_UP,
    DELIVERING,
    DELIVERED,
    REJECTED,
    CANCELLED,
)
PHASE_CHOICES = [(phase, phase.replace("_", " ").title()) for phase in PHASES]

TERMINAL_PHASES = frozenset({DELIVERED, REJECTED, CANCELLED})
NON_TERMINAL_PHASES = tuple(phase for phase in PHASES if phase not in TERMINAL_PHASES)

# Phases in which an order is linked to a driver
DRIVER_LINKED_PHASES = frozenset({ASSIGNED_DRIVER, DRIVER_ACCEPTED, PICKED_UP, DELIVERING})

# Coarse status
STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
STATUS_CHOICES = [
    (STATUS_PENDING, "Pending"),
    (STATUS_IN_PROGRESS, "In Progress"),
    (STATUS_DELIVERED, "Delivered"),
    (STATUS_CANCELLED, "Cancelled"),
]

# Fulfillment modes
PICKUP = "pickup"
DELIVERY = "delivery"
DELIVERY_OPTION_CHOICES = [(PICKUP, "Pickup"), (DELIVERY, "Delivery")]


def coarse_status(phase):
    if phase == PENDING:
        return STATUS_PENDING
    if phase == DELIVERED:
        return STATUS_DELIVERED
    if phase in (CANCELLED, REJECTED):
        return STATUS_CANCELLED
    return STATUS_IN_PROGRESS


PHASE_TIMESTAMP_FIELDS = {
    ACCEPTED: "accepted_time",
    PREPARING: "preparing_time",
    READY_FOR_PICKUP: "ready_time",
    ASSIGNED_DRIVER: "assigned_time",
    DRIVER_ACCEPTED: "driver_accepted_time",
    PICKED_UP: "picked_up_time",
    DELIVERING: "delivering_time",
    DELIVERED: "delivered_time",
    REJECTED: "rejected_time",
    CANCELLED: "cancelled_time",
}


class Edge:
    __slots__ = ("source", "target", "roles", "mode", "links_driver")

    def __init__(self, source, target, roles, mode=None, links_driver=False):
        self.source = source
        self.target = target
        self.roles = frozenset(roles)
        # Restricts the edge to one fulfillment mode
        self.mode = mode
        # The edge writes the driver linkage (claim)
        self.links_driver = links_driver

    def __repr__(self):
        return f"Edge({self.source} -> {self.target})"


_EDGES = [
    Edge(PENDING, ACCEPTED, {RESTAURANT, ADMIN}),
    Edge(ACCEPTED, PREPARING, {RESTAURANT, ADMIN}),
    Edge(PREPARING, READY_FOR_PICKUP, {RESTAURANT, ADMIN}),
    Edge(READY_FOR_PICKUP, ASSIGNED_DRIVER, {RESTAURANT, ADMIN}, mode=DELIVERY, links_driver=True),
    Edge(READY_FOR_PICKUP, DRIVER_ACCEPTED, {DRIVER}, mode=DELIVERY, links_driver=True),
    Edge(ASSIGNED_DRIVER, DRIVER_ACCEPTED, {DRIVER}, mode=DELIVERY),
    Edge(DRIVER_ACCEPTED, PICKED_UP, {DRIVER}, mode=DELIVERY),
    Edge(PICKED_UP, DELIVERING, {DRIVER}, mode=DELIVERY),
    Edge(PICKED_UP, DELIVERED, {DRIVER}, mode=DELIVERY),
    Edge(DELIVERING, DELIVERED, {DRIVER}, mode=DELIVERY),
    Edge(READY_FOR_PICKUP, DELIVERED, {RESTAURANT, ADMIN}, mode=PICKUP),
]
for _phase in NON_TERMINAL_PHASES:
    _EDGES.append(
        Edge(_phase, CANCELLED, {RESTAURANT, ADMIN, CUSTOMER} if _phase == PENDING else {RESTAURANT, ADMIN})
    )
    _EDGES.append(Edge(_phase, REJECTED, {RESTAURANT, ADMIN}))

EDGES = {(edge.source, edge.target): edge for edge in _EDGES}


def find_edge(source, target):
    return EDGES.get((source, target))


def roles_reaching(target):
    """Roles that own at least one edge into ``target``."""
    roles = set()
    for edge in _EDGES:
        if edge.target == target:
            roles |= edge.roles
    return roles
