from rest_framework import serializers

from .models import Driver


class DriverSerializer(serializers.ModelSerializer):
    class Meta:
        model = Driver
        fields = [
            "user_id",
            "name",
            "phone",
            "is_active",
            "is_available",
            "available_since",
            "current_order_id",
            "latitude",
            "longitude",
            "location_updated_at",
            "rejected_orders_count",
            "rating",
            "total_deliveries",
            "last_delivery_at",
        ]
        read_only_fields = fields


class LocationSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)


class AvailabilitySerializer(serializers.Serializer):
    available = serializers.BooleanField()


class AssignSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    driver_id = serializers.CharField(max_length=128, required=False)
