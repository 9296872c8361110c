"""Order, OrderItem and OrderStatusHistory models.

Rules carried by the models:
- ``order_number`` and ``tracking_code`` hold the same ``NGE`` + 9 digit
  value and are unique across both columns (checked by the identifier
  generator before insert).
- ``batch_number`` and ``shipment`` are either both empty or both set; the
  batch resolver is the only writer of the pair.
- ``status`` only ever holds a canonical ``OrderStatus`` value.
- History rows are append-only; one per transition and one per cascade write.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    INITIAL_ORDER_STATUS,
    TERMINAL_STATES,
    HistorySource,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.status import allowed_next
from shared.domain.events import DomainEventMixin


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    The UUIDv7 ``id`` is used for internal references; ``order_number`` is
    what customers see and what tracking look-ups accept.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    tracking_code = models.CharField(max_length=20, unique=True, editable=False)
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    branch = models.ForeignKey(
        "customers.Branch",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    currency = models.CharField(max_length=3, default="USD")
    departure_date = models.DateTimeField(null=True, blank=True)
    batch_number = models.CharField(max_length=20, blank=True, default="")
    shipment = models.ForeignKey(
        "shipments.Shipment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="linked_orders",
    )
    status = models.CharField(
        max_length=40,
        choices=OrderStatus.choices,
        default=INITIAL_ORDER_STATUS,
    )
    payment_status = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["batch_number"], name="orders_batch_idx"),
            models.Index(fields=["departure_date"], name="orders_departure_idx"),
        ]

    # ------------------------------------------------------------------
    # State machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in allowed_next(self.status)

    @property
    def is_batched(self) -> bool:
        return self.shipment_id is not None

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item; ``position`` keeps the order the client sent them in."""

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    position = models.PositiveSmallIntegerField(default=0)
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    class Meta:
        db_table = "order_items"
        ordering = ["position", "created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    @property
    def subtotal(self) -> Decimal:
        if self.unit_price is None:
            return Decimal("0.00")
        return self.quantity * self.unit_price

    def __str__(self) -> str:
        return f"{self.description} x{self.quantity}"


class OrderStatusHistory(BaseModel):
    """Append-only trail of order status changes.

    ``user`` is ``None`` for changes made by the system (auto-batching,
    cascades triggered by jobs).
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=40,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=40, choices=OrderStatus.choices)
    source = models.CharField(
        max_length=10,
        choices=HistorySource.choices,
        default=HistorySource.DIRECT,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    actor_role = models.CharField(max_length=20, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}: {self.old_status} -> {self.new_status}"
