from django.core.management.base import BaseCommand

from apps.drivers.services import get_assignment_coordinator


class Command(BaseCommand):
    help = "Repair order/driver linkage that drifted apart"

    def add_arguments(self, parser):
        parser.add_argument(
            "--grace-seconds",
            type=int,
            default=60,
            help="Skip records written more recently than this (default: 60)",
        )

    def handle(self, *args, **options):
        report = get_assignment_coordinator().reconcile(grace_seconds=options["grace_seconds"])
        style = self.style.WARNING if report["unresolved"] or report["unlinked"] else self.style.SUCCESS
        self.stdout.write(
            style(
                f"Checked {report['checked']}, released {report['released']}, "
                f"relinked {report['relinked']}, unresolved {report['unresolved']}, "
                f"rejections completed {report['rejections']}, unlinked {report['unlinked']}"
            )
        )
