"""
Management command to retry assignment for unassigned orders.
This should be run periodically (e.g., every 5 minutes) via cron.
"""
from django.core.management.base import BaseCommand

from apps.drivers.services import get_assignment_coordinator


class Command(BaseCommand):
    help = "Retry assignment for delivery orders that are ready but have no driver"

    def add_arguments(self, parser):
        parser.add_argument(
            "--max-retries",
            type=int,
            default=10,
            help="Maximum number of retry attempts per order (default: 10)",
        )
        parser.add_argument(
            "--max-age-hours",
            type=int,
            default=24,
            help="Maximum age in hours before cancelling the order (default: 24)",
        )

    def handle(self, *args, **options):
        self.stdout.write("Starting retry process for unassigned orders...")

        result = get_assignment_coordinator().retry_unassigned_orders(
            max_retries=options["max_retries"],
            max_age_hours=options["max_age_hours"],
        )

        self.stdout.write(
            self.style.SUCCESS(
                f"Retry process completed. Retried: {result['retried']}, "
                f"Assigned: {result['assigned']}, Cancelled: {result['cancelled']}, "
                f"Skipped: {result['skipped']}"
            )
        )
