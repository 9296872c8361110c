"""Order DRF serializers for API input/output.

Business logic lives in ``OrderService``, which receives the Pydantic DTOs
built from these serializers' ``validated_data``.
"""

from __future__ import annotations

from django.conf import settings
from rest_framework import serializers

from modules.orders.constants import PaymentStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )


class InlineCustomerSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100, required=False, default="", allow_blank=True)
    phone = serializers.CharField(min_length=5, max_length=30)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    address = serializers.CharField(required=False, default="", allow_blank=True)
    city = serializers.CharField(required=False, default="", allow_blank=True)
    country = serializers.CharField(required=False, default="", allow_blank=True)
    postal_code = serializers.CharField(required=False, default="", allow_blank=True)


class CreateOrderSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer = InlineCustomerSerializer(required=False, allow_null=True)
    branch_id = serializers.UUIDField(required=False, allow_null=True)
    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    total_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    currency = serializers.RegexField(
        r"^[A-Za-z]{3}$", required=False, default=settings.DEFAULT_CURRENCY
    )
    departure_date = serializers.DateTimeField(required=False, allow_null=True)
    payment_status = serializers.ChoiceField(
        choices=PaymentStatus.choices, required=False, default=PaymentStatus.UNPAID
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)

    def validate(self, attrs):
        if not attrs.get("customer_id") and not attrs.get("customer"):
            raise serializers.ValidationError(
                {"customer": "Provide customer_id or customer details."}
            )
        return attrs


class OrderStatusUpdateSerializer(serializers.Serializer):
    """``status`` is free-form here; the service normalizes it."""

    status = serializers.CharField(max_length=64)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ["id", "description", "quantity", "unit_price", "subtotal"]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "source",
            "user_id",
            "actor_role",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Full order representation with items and history."""

    customer_name = serializers.CharField(source="customer.full_name", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "tracking_code",
            "customer_id",
            "customer_name",
            "branch_id",
            "total_amount",
            "currency",
            "departure_date",
            "batch_number",
            "shipment_id",
            "status",
            "payment_status",
            "notes",
            "created_by_id",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "departure_date",
            "batch_number",
            "shipment_id",
            "status",
            "total_amount",
            "currency",
            "created_at",
        ]
        read_only_fields = fields


class PublicStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["new_status", "created_at"]
        read_only_fields = fields


class PublicOrderSerializer(serializers.ModelSerializer):
    """What anonymous tracking reveals about an order (no customer data)."""

    status_history = PublicStatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "order_number",
            "status",
            "departure_date",
            "batch_number",
            "created_at",
            "updated_at",
            "status_history",
        ]
        read_only_fields = fields
