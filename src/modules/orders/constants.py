"""Order domain constants.

The canonical order vocabulary is the courier pipeline (Manila → Dubai):
eight strictly ordered steps plus a ``Cancelled`` side-exit that is only
reachable before the parcel leaves Manila.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    SHIPMENT_RECEIVED = "Shipment Received", "Shipment Received"
    SHIPMENT_PROCESSING = "Shipment Processing", "Shipment Processing"
    DEPARTED_FROM_MANILA = "Departed from Manila", "Departed from Manila"
    IN_TRANSIT_TO_DUBAI = (
        "In Transit going to Dubai Airport",
        "In Transit going to Dubai Airport",
    )
    ARRIVED_AT_DUBAI = "Arrived at Dubai Airport", "Arrived at Dubai Airport"
    SHIPMENT_CLEARANCE = "Shipment Clearance", "Shipment Clearance"
    OUT_FOR_DELIVERY = "Out for Delivery", "Out for Delivery"
    DELIVERED = "Delivered", "Delivered"
    CANCELLED = "Cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    UNPAID = "unpaid", "Unpaid"
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"


class HistorySource(models.TextChoices):
    CREATED = "created", "Order created"
    DIRECT = "direct", "Status update"
    CASCADE = "cascade", "Shipment cascade"


ORDER_STATUS_SEQUENCE: tuple[str, ...] = (
    OrderStatus.SHIPMENT_RECEIVED,
    OrderStatus.SHIPMENT_PROCESSING,
    OrderStatus.DEPARTED_FROM_MANILA,
    OrderStatus.IN_TRANSIT_TO_DUBAI,
    OrderStatus.ARRIVED_AT_DUBAI,
    OrderStatus.SHIPMENT_CLEARANCE,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

INITIAL_ORDER_STATUS = OrderStatus.SHIPMENT_RECEIVED

# One step at a time; Cancelled only from the two intake states.
VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.SHIPMENT_RECEIVED: frozenset(
        {OrderStatus.SHIPMENT_PROCESSING, OrderStatus.CANCELLED}
    ),
    OrderStatus.SHIPMENT_PROCESSING: frozenset(
        {OrderStatus.DEPARTED_FROM_MANILA, OrderStatus.CANCELLED}
    ),
    OrderStatus.DEPARTED_FROM_MANILA: frozenset({OrderStatus.IN_TRANSIT_TO_DUBAI}),
    OrderStatus.IN_TRANSIT_TO_DUBAI: frozenset({OrderStatus.ARRIVED_AT_DUBAI}),
    OrderStatus.ARRIVED_AT_DUBAI: frozenset({OrderStatus.SHIPMENT_CLEARANCE}),
    OrderStatus.SHIPMENT_CLEARANCE: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES: frozenset[str] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

DRIVER_ALLOWED_STATUSES: frozenset[str] = frozenset(
    {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED}
)

ORDER_NUMBER_DIGITS = 9
