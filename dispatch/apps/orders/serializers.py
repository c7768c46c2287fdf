import json
from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from rest_framework import serializers

from apps.core.exceptions import InvalidOrderPayload

from . import phases
from .models import Order, ScheduledOrder

CENT = Decimal("0.01")
CASH = "cash"


def to_json_safe(data):
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


class LineItemSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=128)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    line_total = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    customizations = serializers.JSONField(required=False, default=dict)
    special_instructions = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, default=None
    )

    def validate(self, attrs):
        expected = (attrs["unit_price"] * attrs["quantity"]).quantize(CENT)
        if attrs["line_total"] != expected:
            raise serializers.ValidationError(
                {"line_total": f"Expected {expected} for {attrs['quantity']} x {attrs['unit_price']}"}
            )
        return attrs


class AddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    zip_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    unit = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    instructions = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    place_id = serializers.CharField(max_length=255, required=False, allow_blank=True)


class OrderPayloadSerializer(serializers.Serializer):
    """Decodes an order payload; anything malformed is rejected, never defaulted."""

    customer_id = serializers.CharField(max_length=128)
    restaurant_id = serializers.CharField(max_length=128)
    restaurant_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    items = LineItemSerializer(many=True, allow_empty=False)
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    tip_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0"), default=Decimal("0")
    )
    delivery_fee = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0"), default=Decimal("0")
    )
    total = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    delivery_option = serializers.ChoiceField(choices=phases.DELIVERY_OPTION_CHOICES)
    payment_method = serializers.CharField(max_length=50)
    payment_completed = serializers.BooleanField(default=False)
    address = AddressSerializer(required=False, allow_null=True, default=None)
    latitude = serializers.FloatField(required=False, allow_null=True, default=None)
    longitude = serializers.FloatField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        items_total = sum((item["line_total"] for item in attrs["items"]), Decimal("0"))
        if attrs["subtotal"] != items_total:
            raise serializers.ValidationError(
                {"subtotal": f"Subtotal {attrs['subtotal']} does not match line items ({items_total})"}
            )
        expected_total = attrs["subtotal"] + attrs["tip_amount"] + attrs["delivery_fee"]
        if attrs["total"] != expected_total:
            raise serializers.ValidationError(
                {"total": f"Total must equal subtotal + tip + delivery fee ({expected_total})"}
            )
        if attrs["delivery_option"] == phases.DELIVERY and not attrs.get("address"):
            raise serializers.ValidationError({"address": "Delivery orders require an address"})
        if attrs["delivery_option"] == phases.PICKUP:
            attrs["address"] = None
        if attrs["payment_method"].lower() != CASH and not attrs["payment_completed"]:
            raise serializers.ValidationError(
                {"payment_completed": "Payment must be completed before the order is placed"}
            )
        return attrs

    def order_fields(self):
        """Model-ready field values; nested values are JSON-safe."""
        data = dict(self.validated_data)
        data["items"] = to_json_safe(data["items"])
        if data.get("address") is not None:
            data["address"] = to_json_safe(data["address"])
        return data


def decode_order_payload(payload):
    serializer = OrderPayloadSerializer(data=payload)
    if not serializer.is_valid():
        raise InvalidOrderPayload("Order payload failed validation", errors=serializer.errors)
    return serializer.order_fields()


class OrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = "__all__"
        read_only_fields = [field.name for field in Order._meta.fields]


class ScheduledOrderCreateSerializer(serializers.Serializer):
    payload = OrderPayloadSerializer()
    scheduled_for = serializers.DateTimeField()


class ScheduledOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = ScheduledOrder
        fields = ["id", "customer_id", "restaurant_id", "payload", "scheduled_for", "created_at"]


class TransitionSerializer(serializers.Serializer):
    target = serializers.ChoiceField(choices=phases.PHASE_CHOICES)
    driver_id = serializers.CharField(max_length=128, required=False)
