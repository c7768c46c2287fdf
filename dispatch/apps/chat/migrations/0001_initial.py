# Generated manually for support chat

import uuid

import django.db.models.deletion
from django.db import migrations, models

ROLE_CHOICES = [('customer', 'Customer'), ('restaurant', 'Restaurant'), ('driver', 'Driver'), ('admin', 'Admin')]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ChatThread',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.CharField(max_length=128, primary_key=True, serialize=False)),
                ('owner_role', models.CharField(choices=ROLE_CHOICES, max_length=20)),
                ('owner_name', models.CharField(blank=True, max_length=150)),
                ('order_id', models.UUIDField(blank=True, null=True)),
                ('last_message', models.TextField(blank=True)),
                ('last_message_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'chat_threads',
                'ordering': ['-last_message_at'],
            },
        ),
        migrations.CreateModel(
            name='ChatMessage',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('sender_id', models.CharField(max_length=128)),
                ('sender_name', models.CharField(blank=True, max_length=150)),
                ('sender_role', models.CharField(choices=ROLE_CHOICES, max_length=20)),
                ('body', models.TextField()),
                ('is_read', models.BooleanField(default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('thread', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='chat.chatthread')),
            ],
            options={
                'db_table': 'chat_messages',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['thread', 'is_read'], name='chat_msg_thread_read_idx')],
            },
        ),
    ]
