from typing import NamedTuple

from .exceptions import ActorNotAuthorized

CUSTOMER = "customer"
RESTAURANT = "restaurant"
DRIVER = "driver"
ADMIN = "admin"

ROLES = (CUSTOMER, RESTAURANT, DRIVER, ADMIN)
ROLE_CHOICES = [(role, role.title()) for role in ROLES]


class Actor(NamedTuple):
    """An authenticated party originating a state change."""

    role: str
    user_id: str

    def validate(self):
        if self.role not in ROLES:
            raise ActorNotAuthorized(f"Unknown actor role: {self.role!r}", role=self.role)
        if not self.user_id:
            raise ActorNotAuthorized("Actor has no user id", role=self.role)
        return self


# Authority used by the periodic sweeps (assignment, activation, timeouts)
SYSTEM = Actor(ADMIN, "system")
