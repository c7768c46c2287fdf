# Generated manually for orders and scheduled orders

import uuid

from django.db import migrations, models

PHASE_CHOICES = [
    ('pending', 'Pending'),
    ('accepted', 'Accepted'),
    ('preparing', 'Preparing'),
    ('ready_for_pickup', 'Ready For Pickup'),
    ('assigned_driver', 'Assigned Driver'),
    ('driver_accepted', 'Driver Accepted'),
    ('picked_up', 'Picked Up'),
    ('delivering', 'Delivering'),
    ('delivered', 'Delivered'),
    ('rejected', 'Rejected'),
    ('cancelled', 'Cancelled'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer_id', models.CharField(max_length=128)),
                ('restaurant_id', models.CharField(max_length=128)),
                ('restaurant_name', models.CharField(blank=True, max_length=150)),
                ('driver_id', models.CharField(blank=True, max_length=128, null=True)),
                ('driver_name', models.CharField(blank=True, max_length=150, null=True)),
                ('items', models.JSONField(default=list)),
                ('subtotal', models.DecimalField(decimal_places=2, max_digits=10)),
                ('tip_amount', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('delivery_fee', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('total', models.DecimalField(decimal_places=2, max_digits=10)),
                ('delivery_option', models.CharField(choices=[('pickup', 'Pickup'), ('delivery', 'Delivery')], max_length=20)),
                ('payment_method', models.CharField(max_length=50)),
                ('payment_completed', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('delivered', 'Delivered'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('order_status', models.CharField(choices=PHASE_CHOICES, default='pending', max_length=32)),
                ('address', models.JSONField(blank=True, null=True)),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('accepted_time', models.DateTimeField(blank=True, null=True)),
                ('preparing_time', models.DateTimeField(blank=True, null=True)),
                ('ready_time', models.DateTimeField(blank=True, null=True)),
                ('assigned_time', models.DateTimeField(blank=True, null=True)),
                ('driver_accepted_time', models.DateTimeField(blank=True, null=True)),
                ('picked_up_time', models.DateTimeField(blank=True, null=True)),
                ('delivering_time', models.DateTimeField(blank=True, null=True)),
                ('delivered_time', models.DateTimeField(blank=True, null=True)),
                ('rejected_time', models.DateTimeField(blank=True, null=True)),
                ('cancelled_time', models.DateTimeField(blank=True, null=True)),
                ('estimated_delivery_time', models.DateTimeField(blank=True, null=True)),
                ('denial_count', models.IntegerField(default=0, help_text='Number of times delivery was declined by drivers')),
                ('assignment_retry_count', models.IntegerField(default=0, help_text='Number of times assignment was retried')),
                ('last_assignment_retry_at', models.DateTimeField(blank=True, help_text='Last time assignment was retried', null=True)),
            ],
            options={
                'db_table': 'orders',
                'indexes': [
                    models.Index(fields=['order_status'], name='orders_phase_idx'),
                    models.Index(fields=['customer_id'], name='orders_customer_idx'),
                    models.Index(fields=['restaurant_id'], name='orders_restaurant_idx'),
                    models.Index(fields=['driver_id'], name='orders_driver_idx'),
                    models.Index(fields=['created_at'], name='orders_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ScheduledOrder',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer_id', models.CharField(max_length=128)),
                ('restaurant_id', models.CharField(max_length=128)),
                ('payload', models.JSONField(help_text='Validated order payload placed at activation')),
                ('scheduled_for', models.DateTimeField()),
                ('claim_token', models.UUIDField(blank=True, null=True)),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('failure_reason', models.TextField(blank=True)),
            ],
            options={
                'db_table': 'scheduled_orders',
                'indexes': [models.Index(fields=['scheduled_for'], name='scheduled_for_idx')],
            },
        ),
    ]
