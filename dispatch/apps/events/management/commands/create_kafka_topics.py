"""
Creates the order event topics on the configured Kafka cluster.
"""
from confluent_kafka.admin import AdminClient, NewTopic
from confluent_kafka.error import KafkaException
from django.conf import settings
from django.core.management.base import BaseCommand

from apps.events.constants import KAFKA_TOPICS


class Command(BaseCommand):
    help = "Create the order event and dead letter topics"

    def add_arguments(self, parser):
        parser.add_argument(
            "--partitions",
            type=int,
            default=3,
            help="Partitions per topic; events are keyed by order id (default: 3)",
        )
        parser.add_argument(
            "--replication-factor",
            type=int,
            default=1,
            help="Replication factor per topic (default: 1)",
        )

    def handle(self, *args, **options):
        if not settings.KAFKA_BOOTSTRAP_SERVERS:
            self.stdout.write(self.style.ERROR("KAFKA_BOOTSTRAP_SERVERS is not configured"))
            return

        admin_client = AdminClient({"bootstrap.servers": settings.KAFKA_BOOTSTRAP_SERVERS})
        new_topics = [
            NewTopic(
                topic,
                num_partitions=options["partitions"],
                replication_factor=options["replication_factor"],
            )
            for topic in KAFKA_TOPICS.values()
        ]

        ready = 0
        for topic, future in admin_client.create_topics(new_topics).items():
            try:
                future.result()
            except KafkaException as e:
                if "already exists" not in str(e).lower():
                    self.stdout.write(self.style.ERROR(f"Could not create {topic}: {e}"))
                    continue
                self.stdout.write(self.style.WARNING(f"{topic} already exists"))
            else:
                self.stdout.write(self.style.SUCCESS(f"Created {topic}"))
            ready += 1

        self.stdout.write(self.style.SUCCESS(f"{ready}/{len(new_topics)} topics ready"))
