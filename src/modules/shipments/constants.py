"""Shipment domain constants.

Shipment statuses are coarser than order statuses: a batch is processed,
flown, handed to drivers, and delivered.  ``On Hold`` is a side-state that
can interrupt any non-terminal step.
"""

from django.db import models

from modules.orders.constants import OrderStatus


class ShipmentStatus(models.TextChoices):
    PROCESSING = "Processing", "Processing"
    IN_TRANSIT = "In Transit", "In Transit"
    OUT_FOR_DELIVERY = "Out for Delivery", "Out for Delivery"
    DELIVERED = "Delivered", "Delivered"
    ON_HOLD = "On Hold", "On Hold"


SHIPMENT_STATUS_SEQUENCE: tuple[str, ...] = (
    ShipmentStatus.PROCESSING,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
    ShipmentStatus.DELIVERED,
)

INITIAL_SHIPMENT_STATUS = ShipmentStatus.PROCESSING

SHIPMENT_TERMINAL_STATES: frozenset[str] = frozenset({ShipmentStatus.DELIVERED})

DRIVER_ALLOWED_SHIPMENT_STATUSES: frozenset[str] = frozenset(
    {ShipmentStatus.OUT_FOR_DELIVERY, ShipmentStatus.DELIVERED}
)

# Many-to-one: what member orders show while their batch is in a given state.
SHIPMENT_TO_ORDER_STATUS: dict[str, str] = {
    ShipmentStatus.PROCESSING: OrderStatus.SHIPMENT_PROCESSING,
    ShipmentStatus.IN_TRANSIT: OrderStatus.IN_TRANSIT_TO_DUBAI,
    ShipmentStatus.OUT_FOR_DELIVERY: OrderStatus.IN_TRANSIT_TO_DUBAI,
    ShipmentStatus.DELIVERED: OrderStatus.DELIVERED,
    ShipmentStatus.ON_HOLD: OrderStatus.SHIPMENT_RECEIVED,
}

ORIGIN_FACILITY_LOCATION = "Origin Facility"
PROCESSING_CENTER_LOCATION = "Processing Center"
UNKNOWN_LOCATION = "N/A"

TRACKING_CODE_DIGITS = 8
BATCH_SEQUENCE_WIDTH = 3
