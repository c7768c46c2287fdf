import logging

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


def check_cache_connection():
    # Check if the cache is configured correctly
    if not settings.CACHES:
        logger.error("CACHES setting is not configured !!")
        raise ValueError("CACHES setting is not configured")

    # Round-trip a key to confirm the backend answers
    try:
        cache.set("health_check", "ok", 10)
        connected = cache.get("health_check") == "ok"
    except Exception as e:
        logger.error(f"Cache connection error: {e}")
        return False
    if connected:
        logger.info("Cache connection established")
    else:
        logger.error("Cache connection failed !!")
    return connected


def get_cache_key_value(key):
    try:
        value = cache.get(key)
        if value is None:
            logger.debug(f"Cache miss for key: {key}")
        return value
    except Exception as e:
        logger.error(f"Cache get error for key: {key}, error: {e}")
        return None


def set_cache_key(key, value, ttl=None):
    try:
        cache.set(key, value, ttl)
        logger.debug(f"Cache set for key: {key}")
        return True
    except Exception as e:
        logger.error(f"Cache set error for key: {key}, error: {e}")
        return False


def add_cache_key(key, value, ttl=None):
    """Set ``key`` only if absent. Returns True when this call created it."""
    try:
        return cache.add(key, value, ttl)
    except Exception as e:
        logger.error(f"Cache add error for key: {key}, error: {e}")
        return False
