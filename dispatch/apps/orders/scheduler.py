"""
Scheduled Order Activator.

Turns due scheduled orders into live ones. Each record is claimed with a
conditional write before it is processed, and the live order reuses the
scheduled record's id, so overlapping sweeps (or a sweep that crashed
half-way) never place the same order twice.
"""
import logging
import uuid
from datetime import timedelta

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from apps.accounts.services import is_restaurant_open
from apps.core.actors import CUSTOMER
from apps.core.exceptions import InvalidOrderPayload, StoreUnavailable
from apps.notifications import messages
from infrastructure.database import run_with_retry

from .models import ScheduledOrder

logger = logging.getLogger(__name__)


class ScheduledOrderActivator:
    def __init__(self, lifecycle, claim_ttl_seconds=None, is_open=is_restaurant_open):
        self.lifecycle = lifecycle
        self.claim_ttl_seconds = claim_ttl_seconds or settings.DISPATCH_SCHEDULE_CLAIM_TTL_SECONDS
        self.is_open = is_open

    def due(self, now):
        """Unfailed records whose time has come and that nobody holds a live claim on."""
        stale_before = now - timedelta(seconds=self.claim_ttl_seconds)
        return run_with_retry(
            lambda: list(
                ScheduledOrder.objects.filter(scheduled_for__lte=now, failure_reason="")
                .filter(Q(claim_token__isnull=True) | Q(claimed_at__lt=stale_before))
                .order_by("scheduled_for")
            )
        )

    def run_once(self, now=None):
        now = now or timezone.now()
        report = {"activated": 0, "duplicates": 0, "closed": 0, "failed": 0}

        for record in self.due(now):
            token = self._claim(record, now)
            if token is None:
                logger.debug(f"Scheduled order {record.id} claimed by another sweep")
                continue
            try:
                outcome = self._activate(record, token)
            except StoreUnavailable as e:
                # The claim expires and the next sweep retries
                logger.error(f"Activation of scheduled order {record.id} failed: {e.message}")
                continue
            report[outcome] += 1

        if any(report.values()):
            logger.info(f"Scheduled order sweep: {report}")
        return report

    def _claim(self, record, now):
        token = uuid.uuid4()
        claimed = run_with_retry(
            ScheduledOrder.objects.filter(id=record.id, claim_token=record.claim_token).update,
            claim_token=token,
            claimed_at=now,
        )
        return token if claimed else None

    def _held(self, record, token):
        return ScheduledOrder.objects.filter(id=record.id, claim_token=token)

    def _activate(self, record, token):
        if not self.is_open(record.restaurant_id):
            logger.info(
                f"Restaurant {record.restaurant_id} is closed, "
                f"scheduled order {record.id} waits for the next sweep"
            )
            run_with_retry(self._held(record, token).update, claim_token=None, claimed_at=None)
            return "closed"

        payload = dict(record.payload or {})
        payload.update(customer_id=record.customer_id, restaurant_id=record.restaurant_id)
        try:
            result = self.lifecycle.place_order(payload, order_id=record.id)
        except InvalidOrderPayload as e:
            logger.error(f"Scheduled order {record.id} has a malformed payload: {e.as_dict()}")
            run_with_retry(self._held(record, token).update, failure_reason=str(e.as_dict()))
            return "failed"

        deleted, _ = run_with_retry(self._held(record, token).delete)
        if deleted:
            title, body = messages.render(messages.SCHEDULED_ORDER_PROCESSING, result.order)
            self.lifecycle.notifier.dispatch(
                record.customer_id,
                title,
                body,
                messages.payload(
                    result.order, result.order.order_status, "scheduled_order_processing", CUSTOMER
                ),
            )
        return "activated" if result.changed else "duplicates"
