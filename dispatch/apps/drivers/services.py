import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from infrastructure.cache import get_cache_key_value, set_cache_key

logger = logging.getLogger(__name__)


def driver_group(driver_id):
    return f"driver_{driver_id}"


# Driver Location Cache
def set_driver_location(driver_id: str, location_data: Dict[str, Any], ttl: int = 300):
    return set_cache_key(f"driver:location:{driver_id}", location_data, ttl)


def get_driver_location(driver_id: str) -> Optional[Dict[str, Any]]:
    return get_cache_key_value(f"driver:location:{driver_id}")


def send_to_group(group, message_type, data, channel_layer=None):
    """Best-effort push to a channel group; the store write already happened."""
    channel_layer = channel_layer or get_channel_layer()
    if channel_layer is None:
        return False
    try:
        async_to_sync(channel_layer.group_send)(group, {"type": message_type, "data": data})
    except Exception as e:
        logger.error(f"Failed to send {message_type} to {group}: {e}")
        return False
    return True


def send_to_driver(driver_id, message_type, data, channel_layer=None):
    return send_to_group(driver_group(driver_id), message_type, data, channel_layer)


def get_assignment_coordinator():
    from apps.orders.services import get_order_lifecycle

    from .assignment import AssignmentCoordinator

    return AssignmentCoordinator(get_order_lifecycle())
