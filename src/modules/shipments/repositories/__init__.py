"""Shipment repositories package."""

from modules.shipments.repositories.django_repository import ShipmentDjangoRepository
from modules.shipments.repositories.interfaces import IShipmentRepository

__all__ = ["IShipmentRepository", "ShipmentDjangoRepository"]
