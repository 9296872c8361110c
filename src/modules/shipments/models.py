"""Shipment (batch), Parcel and ShipmentHistory models.

A shipment groups every order departing on the same calendar day
(``departure_date`` is stored at midnight UTC of that day).  ``orders`` is
the member set; each member also points back through ``Order.shipment``.
``order`` is the single-order link used before batching existed and is
still honoured by the status cascade.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.shipments.constants import (
    INITIAL_SHIPMENT_STATUS,
    SHIPMENT_STATUS_SEQUENCE,
    SHIPMENT_TERMINAL_STATES,
    ShipmentStatus,
)
from shared.domain.events import DomainEventMixin

_NON_NEGATIVE = [MinValueValidator(Decimal("0"))]


class Shipment(DomainEventMixin, BaseModel):
    tracking_code = models.CharField(max_length=20, unique=True)
    batch_number = models.CharField(max_length=20, unique=True)
    invoice_number = models.CharField(max_length=50, blank=True, default="")
    departure_date = models.DateTimeField(null=True, blank=True)
    estimated_delivery_date = models.DateTimeField(null=True, blank=True)
    current_status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=INITIAL_SHIPMENT_STATUS,
    )
    origin_branch = models.ForeignKey(
        "customers.Branch",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="outbound_shipments",
    )
    destination_branch = models.ForeignKey(
        "customers.Branch",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inbound_shipments",
    )
    shipper = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="shipments_sent",
    )
    receiver = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="shipments_received",
    )
    orders = models.ManyToManyField(
        "orders.Order",
        blank=True,
        related_name="shipment_batches",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="legacy_shipments",
    )
    total_weight = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00"), validators=_NON_NEGATIVE
    )
    weight_unit = models.CharField(max_length=5, default="kg")
    shipping_cost = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"), validators=_NON_NEGATIVE
    )
    insurance_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"), validators=_NON_NEGATIVE
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "shipments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["departure_date", "created_at"], name="shipments_departure_idx"),
            models.Index(fields=["current_status"], name="shipments_status_idx"),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.current_status in SHIPMENT_TERMINAL_STATES

    def last_active_status(self) -> Optional[str]:
        """Most recent history status that is a pipeline step (not On Hold)."""
        for entry in reversed(list(self.history.all())):
            if entry.status in SHIPMENT_STATUS_SEQUENCE:
                return entry.status
        return None

    def __str__(self) -> str:
        return f"{self.batch_number} / {self.tracking_code} ({self.current_status})"


class Parcel(BaseModel):
    shipment = models.ForeignKey(
        "shipments.Shipment",
        on_delete=models.CASCADE,
        related_name="parcels",
    )
    description = models.CharField(max_length=255)
    weight = models.DecimalField(max_digits=10, decimal_places=2, validators=_NON_NEGATIVE)
    weight_unit = models.CharField(max_length=5, default="kg")
    dimensions = models.CharField(max_length=50, blank=True, default="")
    declared_value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=_NON_NEGATIVE,
    )

    class Meta:
        db_table = "shipment_parcels"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.description} ({self.weight}{self.weight_unit})"


class ShipmentHistory(BaseModel):
    """Append-only checkpoint log: status, where, and who."""

    shipment = models.ForeignKey(
        "shipments.Shipment",
        on_delete=models.CASCADE,
        related_name="history",
    )
    status = models.CharField(max_length=20, choices=ShipmentStatus.choices)
    location = models.CharField(max_length=150)
    notes = models.TextField(blank=True, default="")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    actor_role = models.CharField(max_length=20, blank=True, default="")

    class Meta:
        db_table = "shipment_history"
        ordering = ["created_at", "id"]
        verbose_name_plural = "shipment history"

    def __str__(self) -> str:
        return f"{self.shipment_id}: {self.status} @ {self.location}"
