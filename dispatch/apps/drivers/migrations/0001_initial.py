# Generated manually for drivers and rejection records

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Driver',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user_id', models.CharField(max_length=128, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=150)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('is_available', models.BooleanField(default=False)),
                ('available_since', models.DateTimeField(blank=True, null=True)),
                ('current_order_id', models.UUIDField(blank=True, null=True)),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('location_updated_at', models.DateTimeField(blank=True, null=True)),
                ('rejected_orders_count', models.IntegerField(default=0)),
                ('rating', models.FloatField(default=0.0)),
                ('total_deliveries', models.IntegerField(default=0)),
                ('last_delivery_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'drivers',
                'indexes': [
                    models.Index(fields=['is_available', 'is_active'], name='drivers_available_idx'),
                    models.Index(fields=['current_order_id'], name='drivers_current_order_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DriverRejection',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.UUIDField()),
                ('driver_id', models.CharField(max_length=128)),
                ('attempt', models.IntegerField(default=0)),
                ('counted', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'driver_rejections',
                'indexes': [models.Index(fields=['order_id'], name='driver_rejections_order_idx')],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('order_id', 'driver_id', 'attempt'), name='unique_driver_rejection'
                    ),
                ],
            },
        ),
    ]
