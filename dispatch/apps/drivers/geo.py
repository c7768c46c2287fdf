from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from geopy.distance import geodesic


def distance_km(origin, destination):
    """Geodesic distance between two ``(lat, lng)`` points."""
    return geodesic(origin, destination).kilometers


def is_location_fresh(updated_at, now=None, max_age_seconds=None):
    if updated_at is None:
        return False
    now = now or timezone.now()
    max_age_seconds = max_age_seconds or settings.DISPATCH_LOCATION_FRESH_SECONDS
    return now - updated_at <= timedelta(seconds=max_age_seconds)
