"""
Management command running the scheduled order sweep.
Runs forever on a fixed interval unless ``--once`` is given.
"""
import time

from django.conf import settings
from django.core.management.base import BaseCommand

from apps.core.exceptions import StoreUnavailable
from apps.orders.services import get_scheduled_order_activator


class Command(BaseCommand):
    help = "Place scheduled orders whose time has come"

    def add_arguments(self, parser):
        parser.add_argument(
            "--interval",
            type=int,
            default=settings.DISPATCH_SCHEDULE_INTERVAL_SECONDS,
            help="Seconds between sweeps (default: DISPATCH_SCHEDULE_INTERVAL_SECONDS)",
        )
        parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")

    def handle(self, *args, **options):
        activator = get_scheduled_order_activator()
        interval = options["interval"]

        while True:
            try:
                report = activator.run_once()
            except StoreUnavailable as e:
                self.stderr.write(self.style.ERROR(f"Sweep failed: {e.message}"))
                if options["once"]:
                    raise
            else:
                self.stdout.write(
                    self.style.SUCCESS(
                        f"Activated {report['activated']}, duplicates {report['duplicates']}, "
                        f"closed {report['closed']}, failed {report['failed']}"
                    )
                )
            if options["once"]:
                return
            time.sleep(interval)
