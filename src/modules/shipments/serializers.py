"""Shipment DRF serializers for API input/output."""

from __future__ import annotations

from rest_framework import serializers

from modules.shipments.models import Parcel, Shipment, ShipmentHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class ParcelInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    weight = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    weight_unit = serializers.CharField(max_length=5, required=False, default="kg")
    dimensions = serializers.CharField(max_length=50, required=False, default="", allow_blank=True)
    declared_value = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )


class CreateShipmentSerializer(serializers.Serializer):
    shipper_id = serializers.UUIDField()
    receiver_id = serializers.UUIDField()
    order_id = serializers.UUIDField(required=False, allow_null=True)
    order_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    batch_number = serializers.CharField(max_length=20, required=False, allow_null=True, allow_blank=True)
    invoice_number = serializers.CharField(max_length=50, required=False, default="", allow_blank=True)
    departure_date = serializers.DateTimeField(required=False, allow_null=True)
    estimated_delivery_date = serializers.DateTimeField(required=False, allow_null=True)
    origin_branch_id = serializers.UUIDField(required=False, allow_null=True)
    destination_branch_id = serializers.UUIDField(required=False, allow_null=True)
    parcels = ParcelInputSerializer(many=True, required=False, default=list)
    weight_unit = serializers.CharField(max_length=5, required=False, default="kg")
    shipping_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    insurance_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)

    def validate_batch_number(self, value):
        if not value or not value.strip():
            return None
        return value.strip().upper()


class UpdateShipmentSerializer(serializers.Serializer):
    """Every field optional; absent fields are left untouched."""

    invoice_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    estimated_delivery_date = serializers.DateTimeField(required=False, allow_null=True)
    origin_branch_id = serializers.UUIDField(required=False, allow_null=True)
    destination_branch_id = serializers.UUIDField(required=False, allow_null=True)
    shipper_id = serializers.UUIDField(required=False)
    receiver_id = serializers.UUIDField(required=False)
    parcels = ParcelInputSerializer(many=True, required=False)
    weight_unit = serializers.CharField(max_length=5, required=False)
    shipping_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    insurance_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    status = serializers.CharField(max_length=64, required=False)
    location = serializers.CharField(max_length=150, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=64)
    location = serializers.CharField(max_length=150, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class BulkStatusUpdateSerializer(StatusUpdateSerializer):
    shipment_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    location = serializers.CharField(max_length=150)


class CreateFromOrdersSerializer(serializers.Serializer):
    order_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    departure_date = serializers.DateTimeField(required=False, allow_null=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class ParcelSerializer(serializers.ModelSerializer):
    class Meta:
        model = Parcel
        fields = ["id", "description", "weight", "weight_unit", "dimensions", "declared_value"]
        read_only_fields = fields


class ShipmentHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ShipmentHistory
        fields = ["id", "status", "location", "notes", "user_id", "actor_role", "created_at"]
        read_only_fields = fields


class ShipmentSerializer(serializers.ModelSerializer):
    order_ids = serializers.SerializerMethodField()
    parcels = ParcelSerializer(many=True, read_only=True)
    history = ShipmentHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Shipment
        fields = [
            "id",
            "tracking_code",
            "batch_number",
            "invoice_number",
            "departure_date",
            "estimated_delivery_date",
            "current_status",
            "origin_branch_id",
            "destination_branch_id",
            "shipper_id",
            "receiver_id",
            "order_id",
            "order_ids",
            "total_weight",
            "weight_unit",
            "shipping_cost",
            "insurance_amount",
            "created_by_id",
            "created_at",
            "updated_at",
            "parcels",
            "history",
        ]
        read_only_fields = fields

    def get_order_ids(self, obj: Shipment) -> list[str]:
        return [str(order.id) for order in obj.orders.all()]


class ShipmentListSerializer(serializers.ModelSerializer):
    class Meta:
        model = Shipment
        fields = [
            "id",
            "tracking_code",
            "batch_number",
            "departure_date",
            "current_status",
            "origin_branch_id",
            "destination_branch_id",
            "total_weight",
            "created_at",
        ]
        read_only_fields = fields


class PublicHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ShipmentHistory
        fields = ["status", "location", "notes", "created_at"]
        read_only_fields = fields


class PublicParcelSerializer(serializers.ModelSerializer):
    class Meta:
        model = Parcel
        fields = ["description", "weight", "weight_unit", "dimensions"]
        read_only_fields = fields


class PublicShipmentSerializer(serializers.ModelSerializer):
    """What anonymous tracking reveals about a shipment (no customer data)."""

    origin_branch = serializers.CharField(source="origin_branch.name", default=None, read_only=True)
    destination_branch = serializers.CharField(
        source="destination_branch.name", default=None, read_only=True
    )
    history = PublicHistorySerializer(many=True, read_only=True)
    parcels = PublicParcelSerializer(many=True, read_only=True)

    class Meta:
        model = Shipment
        fields = [
            "tracking_code",
            "batch_number",
            "current_status",
            "departure_date",
            "estimated_delivery_date",
            "origin_branch",
            "destination_branch",
            "created_at",
            "history",
            "parcels",
        ]
        read_only_fields = fields
