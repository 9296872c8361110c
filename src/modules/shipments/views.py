"""Shipment API views.

Batch and bulk routes are list-level actions, so the router matches them
before the ``{pk}`` detail routes (which only accept UUIDs anyway).
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.accounts.actors import actor_from_user
from modules.accounts.constants import Permission
from modules.accounts.permissions import ActionPermission
from modules.shipments.dtos import (
    BulkStatusUpdateDTO,
    CreateFromOrdersDTO,
    CreateShipmentDTO,
    StatusUpdateDTO,
    UpdateShipmentDTO,
)
from modules.shipments.filters import ShipmentFilter
from modules.shipments.models import Shipment
from modules.shipments.providers import build_shipment_service
from modules.shipments.serializers import (
    BulkStatusUpdateSerializer,
    CreateFromOrdersSerializer,
    CreateShipmentSerializer,
    PublicShipmentSerializer,
    ShipmentListSerializer,
    ShipmentSerializer,
    StatusUpdateSerializer,
    UpdateShipmentSerializer,
)

UUID_PATTERN = "[0-9a-fA-F-]{32,36}"
BATCH_PATTERN = r"(?P<batch_number>[^/]+)"


class ShipmentViewSet(GenericViewSet):
    queryset = Shipment.objects.all()
    filterset_class = ShipmentFilter
    search_fields = ["batch_number", "tracking_code", "invoice_number"]
    ordering_fields = ["created_at", "departure_date", "current_status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    permission_classes = [ActionPermission]
    lookup_value_regex = UUID_PATTERN
    required_permissions = {
        "list": Permission.SHIPMENT_VIEW,
        "retrieve": Permission.SHIPMENT_VIEW,
        "batch": Permission.SHIPMENT_VIEW,
        "create": Permission.SHIPMENT_MANAGE,
        "update": Permission.SHIPMENT_MANAGE,
        "destroy": Permission.SHIPMENT_MANAGE,
        "create_from_orders": Permission.SHIPMENT_MANAGE,
        "update_status": Permission.SHIPMENT_STATUS_UPDATE,
        "batch_status": Permission.SHIPMENT_BULK_UPDATE,
        "bulk_status": Permission.SHIPMENT_BULK_UPDATE,
    }

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_shipment_service()

    def get_queryset(self):
        return self._service.list_shipments()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/shipments/"""
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(ShipmentListSerializer(page, many=True).data)

    def create(self, request: Request) -> Response:
        """POST /api/v1/shipments/"""
        serializer = CreateShipmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = CreateShipmentDTO(**serializer.validated_data)
        shipment = self._service.create_shipment(dto, actor_from_user(request.user))
        return Response(ShipmentSerializer(shipment).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/shipments/{pk}/"""
        return Response(ShipmentSerializer(self._service.get_shipment(pk)).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/shipments/{pk}/ (partial: absent fields are kept)"""
        serializer = UpdateShipmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = UpdateShipmentDTO(**serializer.validated_data)
        shipment = self._service.update_shipment(pk, dto, actor_from_user(request.user))
        return Response(ShipmentSerializer(shipment).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/shipments/{pk}/"""
        self._service.delete_shipment(pk, actor_from_user(request.user))
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"], url_path="create-from-orders")
    def create_from_orders(self, request: Request) -> Response:
        """POST /api/v1/shipments/create-from-orders/"""
        serializer = CreateFromOrdersSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = CreateFromOrdersDTO(**serializer.validated_data)
        shipment, created = self._service.create_from_orders(dto, actor_from_user(request.user))
        return Response(
            {
                "shipment": ShipmentSerializer(shipment).data,
                "batch_number": shipment.batch_number,
                "count": shipment.orders.count(),
                "created": created,
            },
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=False, methods=["get"], url_path=rf"batch/{BATCH_PATTERN}")
    def batch(self, request: Request, batch_number: str) -> Response:
        """GET /api/v1/shipments/batch/{batch_number}/"""
        return Response(ShipmentSerializer(self._service.get_batch(batch_number)).data)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @action(detail=True, methods=["put", "post"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PUT|POST /api/v1/shipments/{pk}/status/"""
        dto = self._status_dto(StatusUpdateSerializer, request)
        shipment = self._service.update_status(
            pk, dto.status, actor_from_user(request.user), location=dto.location, notes=dto.notes
        )
        return Response(ShipmentSerializer(shipment).data)

    @action(detail=False, methods=["put"], url_path=rf"batch/{BATCH_PATTERN}/status")
    def batch_status(self, request: Request, batch_number: str) -> Response:
        """PUT /api/v1/shipments/batch/{batch_number}/status/"""
        dto = self._status_dto(StatusUpdateSerializer, request)
        count = self._service.update_batch_status(
            batch_number.strip().upper(),
            dto.status,
            actor_from_user(request.user),
            location=dto.location,
            notes=dto.notes,
        )
        return Response({"batch_number": batch_number, "updated": count})

    @action(detail=False, methods=["put"], url_path="bulk/status")
    def bulk_status(self, request: Request) -> Response:
        """PUT /api/v1/shipments/bulk/status/"""
        serializer = BulkStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = BulkStatusUpdateDTO(**serializer.validated_data)
        count = self._service.update_bulk_status(
            dto.shipment_ids,
            dto.status,
            actor_from_user(request.user),
            location=dto.location,
            notes=dto.notes,
        )
        return Response({"updated": count})

    @staticmethod
    def _status_dto(serializer_class, request: Request) -> StatusUpdateDTO:
        serializer = serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        return StatusUpdateDTO(**serializer.validated_data)

    # ------------------------------------------------------------------
    # Public tracking
    # ------------------------------------------------------------------

    @action(
        detail=False,
        methods=["get"],
        url_path=r"track/(?P<tracking_code>[^/]+)",
        permission_classes=[AllowAny],
        authentication_classes=[],
    )
    def track(self, request: Request, tracking_code: str) -> Response:
        """GET /api/v1/shipments/track/{tracking_code}/"""
        return Response(PublicShipmentSerializer(self._service.track(tracking_code)).data)
