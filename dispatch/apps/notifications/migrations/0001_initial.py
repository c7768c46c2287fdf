# Generated manually for the notification log

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recipient_id', models.CharField(max_length=128)),
                ('recipient_type', models.CharField(blank=True, choices=[('customer', 'Customer'), ('restaurant', 'Restaurant'), ('driver', 'Driver'), ('admin', 'Admin')], max_length=20)),
                ('order_id', models.UUIDField(blank=True, null=True)),
                ('notification_type', models.CharField(blank=True, max_length=100)),
                ('title', models.CharField(blank=True, max_length=150)),
                ('body', models.TextField(blank=True)),
                ('data', models.JSONField(blank=True, default=dict)),
                ('is_read', models.BooleanField(default=False)),
                ('sent_at', models.DateTimeField(auto_now_add=True)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'notifications',
                'ordering': ['-sent_at'],
                'indexes': [
                    models.Index(fields=['recipient_id', 'is_read'], name='notif_recipient_read_idx'),
                    models.Index(fields=['order_id'], name='notif_order_idx'),
                ],
            },
        ),
    ]
