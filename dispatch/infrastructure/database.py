import functools
import logging
import threading
import time

from django.conf import settings
from django.db import DatabaseError, IntegrityError, InterfaceError, OperationalError, connection
from django.utils import timezone

from apps.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def check_database_connection():
    # Check if the database is configured correctly
    if not settings.DATABASES:
        logger.error("DATABASES setting is not configured !!")
        raise ValueError("DATABASES setting is not configured")

    try:
        connection.ensure_connection()
        logger.info("Database connection established")
    except DatabaseError as e:
        logger.error(f"Database connection error: {e}")
        raise StoreUnavailable(f"Database connection error: {e}")


class StoreConnectivity:
    """Tracks the outcome of the latest store operations.

    Consumers poll ``is_degraded`` (or register a listener) to surface
    degraded-mode behaviour instead of stalling silently.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners = []
        self.connected = True
        self.last_error = None
        self.last_changed_at = timezone.now()

    @property
    def is_degraded(self):
        return not self.connected

    def add_listener(self, callback):
        self._listeners.append(callback)

    def remove_listener(self, callback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def mark_ok(self):
        self._set(True, None)

    def mark_failed(self, error):
        self._set(False, str(error))

    def _set(self, connected, error):
        with self._lock:
            changed = connected != self.connected
            self.connected = connected
            self.last_error = error
            if changed:
                self.last_changed_at = timezone.now()
        if changed:
            if connected:
                logger.info("Store connectivity restored")
            else:
                logger.warning(f"Store connectivity degraded: {error}")
            for callback in list(self._listeners):
                callback(connected)

    def as_dict(self):
        return {
            "connected": self.connected,
            "last_error": self.last_error,
            "last_changed_at": self.last_changed_at.isoformat(),
        }


store_connectivity = StoreConnectivity()


def backoff_delay(attempt, base=None, cap=None):
    base = settings.DISPATCH_STORE_RETRY_BASE_DELAY if base is None else base
    cap = settings.DISPATCH_STORE_RETRY_MAX_DELAY if cap is None else cap
    return min(base * (2 ** attempt), cap)


def run_with_retry(operation, *args, attempts=None, connectivity=None, **kwargs):
    """Run a store operation, retrying transient database errors.

    After the last attempt the error is raised as ``StoreUnavailable``.
    Integrity errors and anything non-transient propagate unchanged.
    """
    attempts = attempts or settings.DISPATCH_STORE_RETRY_ATTEMPTS
    connectivity = connectivity or store_connectivity
    for attempt in range(attempts):
        try:
            result = operation(*args, **kwargs)
        except IntegrityError:
            raise
        except TRANSIENT_ERRORS as e:
            connectivity.mark_failed(e)
            logger.warning(
                f"Store operation {getattr(operation, '__name__', operation)} failed "
                f"(attempt {attempt + 1}/{attempts}): {e}"
            )
            if attempt + 1 < attempts:
                time.sleep(backoff_delay(attempt))
                continue
            raise StoreUnavailable(f"Store unavailable after {attempts} attempts: {e}")
        connectivity.mark_ok()
        return result


def store_retry(func):
    """Decorator form of ``run_with_retry`` for store adapter methods."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        return run_with_retry(
            func, self, *args, connectivity=getattr(self, "connectivity", None), **kwargs
        )

    return wrapper
