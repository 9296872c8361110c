"""Order API views.

Exposes ``OrderService`` over HTTP.  Domain errors propagate to the DRF
exception handler, which renders them; the views only translate requests
into DTOs and results into serializers.
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
from modules.orders.dtos import CreateOrderDTO
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.serializers import (
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    PublicOrderSerializer,
)
from modules.shipments.providers import build_order_service, build_tracking_service
from modules.shipments.serializers import PublicShipmentSerializer

UUID_PATTERN = "[0-9a-fA-F-]{32,36}"


class OrderViewSet(GenericViewSet):
    """Orders: create, read, delete, status transitions and public tracking.

    Does **not** extend ``ModelViewSet``; all writes go through the service.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["order_number", "batch_number", "customer__first_name", "customer__last_name"]
    ordering_fields = ["created_at", "departure_date", "total_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    permission_classes = [ActionPermission]
    lookup_value_regex = UUID_PATTERN
    required_permissions = {
        "create": Permission.ORDER_CREATE,
        "list": Permission.ORDER_VIEW,
        "retrieve": Permission.ORDER_VIEW,
        "destroy": Permission.ORDER_DELETE,
        "update_status": Permission.ORDER_MODIFY,
    }

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_queryset(self):
        return self._service.list_orders()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = CreateOrderDTO(**serializer.validated_data)
        order = self._service.create_order(dto, actor_from_user(request.user))
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve / Delete
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/ (filters: status, customer, batch_number, departure_date…)"""
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._service.get_order(pk)
        return Response(OrderSerializer(order).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/"""
        self._service.delete_order(pk, actor_from_user(request.user))
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @action(detail=True, methods=["put"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/orders/{pk}/status/"""
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = self._service.update_status(
            order_id=pk,
            requested_status=serializer.validated_data["status"],
            actor=actor_from_user(request.user),
            notes=serializer.validated_data["notes"],
        )
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Public tracking
    # ------------------------------------------------------------------

    @action(
        detail=False,
        methods=["get"],
        url_path=r"track/(?P<identifier>[^/]+)",
        permission_classes=[AllowAny],
        authentication_classes=[],
    )
    def track(self, request: Request, identifier: str) -> Response:
        """GET /api/v1/orders/track/{identifier}/ (order number, tracking code or batch)"""
        result = build_tracking_service().track(identifier)
        return Response(
            {
                "order": PublicOrderSerializer(result.order).data if result.order else None,
                "shipment": (
                    PublicShipmentSerializer(result.shipment).data if result.shipment else None
                ),
            }
        )
