# Generated manually for the order event trail and Dead Letter Queue

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='OrderEvent',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order_id', models.UUIDField()),
                ('driver_id', models.CharField(blank=True, max_length=128, null=True)),
                ('event_type', models.CharField(choices=[('order_created', 'Order Created'), ('order_status_changed', 'Order Status Changed'), ('driver_assigned', 'Driver Assigned'), ('driver_rejected', 'Driver Rejected'), ('assignment_repaired', 'Assignment Repaired')], max_length=100)),
                ('actor_role', models.CharField(blank=True, max_length=20)),
                ('actor_id', models.CharField(blank=True, max_length=128)),
                ('from_phase', models.CharField(blank=True, max_length=32)),
                ('to_phase', models.CharField(blank=True, max_length=32)),
                ('event_data', models.JSONField(blank=True, default=dict)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'order_events',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['order_id'], name='order_events_order_idx'),
                    models.Index(fields=['event_type'], name='order_events_type_idx'),
                    models.Index(fields=['timestamp'], name='order_events_ts_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DeadLetterQueue',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('topic', models.CharField(max_length=255)),
                ('event_data', models.JSONField(default=dict)),
                ('error_message', models.TextField(blank=True)),
                ('retry_count', models.IntegerField(default=0)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('retrying', 'Retrying'), ('processed', 'Processed'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('next_retry_at', models.DateTimeField(blank=True, null=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'dead_letter_queue',
                'indexes': [models.Index(fields=['status', 'next_retry_at'], name='dlq_status_retry_idx')],
            },
        ),
    ]
