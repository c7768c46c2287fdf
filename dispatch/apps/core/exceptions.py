"""
Error taxonomy of the order lifecycle core.

Every error carries an HTTP status and a stable ``code`` so the REST views
and websocket consumers can report it to the acting client unchanged.
"""


class DispatchError(Exception):
    status_code = 400
    code = "dispatch_error"

    def __init__(self, message=None, **context):
        self.message = message or self.__class__.__doc__ or self.code
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        payload = {"error": self.message, "code": self.code}
        if self.context:
            payload["context"] = {key: str(value) for key, value in self.context.items()}
        return payload


class InvalidTransition(DispatchError):
    """The requested phase change is not permitted from the current phase."""

    status_code = 409
    code = "invalid_transition"


class ActorNotAuthorized(DispatchError):
    """The acting role does not own this transition."""

    status_code = 403
    code = "actor_not_authorized"


class OrderNotFound(DispatchError):
    """Order does not exist."""

    status_code = 404
    code = "order_not_found"


class DriverUnavailable(DispatchError):
    """Driver is not available for assignment."""

    status_code = 409
    code = "driver_unavailable"


class NotificationUndeliverable(DispatchError):
    """Notification could not be delivered."""

    status_code = 202
    code = "notification_undeliverable"


class StoreUnavailable(DispatchError):
    """The order store is unreachable; retry later."""

    status_code = 503
    code = "store_unavailable"


class InconsistentAssignment(DispatchError):
    """Order and driver records disagree about the assignment."""

    status_code = 409
    code = "inconsistent_assignment"


class InvalidOrderPayload(DispatchError):
    """Order payload failed validation."""

    status_code = 400
    code = "invalid_order_payload"
