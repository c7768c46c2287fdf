from config.models import TimeStampedModel
from django.db import models

from apps.core.actors import Actor, ROLE_CHOICES


class Account(TimeStampedModel):
    """Role index: one row per authenticated user id.

    ``fcm_token`` is the first place the notification dispatcher looks for
    a delivery token.
    """

    user_id = models.CharField(max_length=128, primary_key=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    display_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(max_length=150, null=True, blank=True)
    fcm_token = models.CharField(max_length=512, blank=True, default="")

    class Meta:
        db_table = "accounts"
        indexes = [
            models.Index(fields=["role"], name="accounts_role_idx"),
        ]

    def __str__(self):
        return f"{self.display_name or self.user_id} ({self.role})"

    @property
    def is_authenticated(self):
        return True

    @property
    def actor(self):
        return Actor(self.role, self.user_id)


class Customer(TimeStampedModel):
    user_id = models.CharField(max_length=128, primary_key=True)
    full_name = models.CharField(max_length=150)
    phone = models.CharField(max_length=20, blank=True)
    fcm_token = models.CharField(max_length=512, blank=True, default="")

    class Meta:
        db_table = "customers"

    def __str__(self):
        return self.full_name


class Restaurant(TimeStampedModel):
    user_id = models.CharField(max_length=128, primary_key=True)
    name = models.CharField(max_length=150)
    is_open = models.BooleanField(default=False)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    class Meta:
        db_table = "restaurants"
        indexes = [
            models.Index(fields=["is_open"], name="restaurants_is_open_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def location(self):
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


class DeviceToken(models.Model):
    user_id = models.CharField(max_length=128, primary_key=True)
    token = models.CharField(max_length=512, blank=True, default="")
    platform = models.CharField(max_length=20, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "device_tokens"
