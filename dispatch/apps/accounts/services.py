import logging

from infrastructure.database import run_with_retry

from .models import Account, Restaurant

logger = logging.getLogger(__name__)


def resolve_account(user_id):
    """Single role-index lookup for an authenticated user id."""
    if not user_id:
        return None
    return run_with_retry(Account.objects.filter(user_id=user_id).first)


def get_restaurant(restaurant_id):
    return run_with_retry(Restaurant.objects.filter(user_id=restaurant_id).first)


def is_restaurant_open(restaurant_id):
    restaurant = get_restaurant(restaurant_id)
    if restaurant is None:
        logger.warning(f"Restaurant {restaurant_id} not found, treating as closed")
        return False
    return restaurant.is_open
