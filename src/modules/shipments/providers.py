"""Wiring of the batching engine onto the Django ORM repositories.

Views, the Celery task and the management command build their services
here so every entry point shares one composition.
"""

from __future__ import annotations

from modules.customers.repositories.django_repository import (
    BranchDjangoRepository,
    CustomerDjangoRepository,
)
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.shipments.batching import BatchResolver
from modules.shipments.identifiers import IdentifierGenerator
from modules.shipments.repositories.django_repository import ShipmentDjangoRepository
from modules.shipments.services import ShipmentService, TrackingService


def build_identifier_generator() -> IdentifierGenerator:
    return IdentifierGenerator(OrderDjangoRepository(), ShipmentDjangoRepository())


def build_batch_resolver() -> BatchResolver:
    return BatchResolver(
        order_repository=OrderDjangoRepository(),
        shipment_repository=ShipmentDjangoRepository(),
        identifier_generator=build_identifier_generator(),
    )


def build_order_service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_repository=CustomerDjangoRepository(),
        branch_repository=BranchDjangoRepository(),
        identifier_generator=build_identifier_generator(),
        batch_resolver=build_batch_resolver(),
    )


def build_shipment_service() -> ShipmentService:
    return ShipmentService(
        shipment_repository=ShipmentDjangoRepository(),
        order_repository=OrderDjangoRepository(),
        customer_repository=CustomerDjangoRepository(),
        branch_repository=BranchDjangoRepository(),
        identifier_generator=build_identifier_generator(),
        batch_resolver=build_batch_resolver(),
    )


def build_tracking_service() -> TrackingService:
    return TrackingService(OrderDjangoRepository(), ShipmentDjangoRepository())
