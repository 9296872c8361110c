"""Shipment DTOs for the Service Layer (immutable Pydantic v2 models)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import ClassVar, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ParcelDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str = Field(min_length=1, max_length=255)
    weight: Decimal = Field(ge=0)
    weight_unit: str = "kg"
    dimensions: str = ""
    declared_value: Optional[Decimal] = Field(default=None, ge=0)


class CreateShipmentDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    shipper_id: UUID
    receiver_id: UUID
    order_id: Optional[UUID] = None
    order_ids: List[UUID] = Field(default_factory=list)
    batch_number: Optional[str] = None
    invoice_number: str = ""
    departure_date: Optional[datetime] = None
    estimated_delivery_date: Optional[datetime] = None
    origin_branch_id: Optional[UUID] = None
    destination_branch_id: Optional[UUID] = None
    parcels: List[ParcelDTO] = Field(default_factory=list)
    weight_unit: str = "kg"
    shipping_cost: Decimal = Field(default=Decimal("0.00"), ge=0)
    insurance_amount: Decimal = Field(default=Decimal("0.00"), ge=0)

    @property
    def total_weight(self) -> Decimal:
        return sum((parcel.weight for parcel in self.parcels), Decimal("0.00"))


class UpdateShipmentDTO(BaseModel):
    """Partial update; only fields present in ``model_fields_set`` are applied.

    A ``status`` runs the regular status transition after the field edits.
    """

    model_config = ConfigDict(frozen=True)

    invoice_number: Optional[str] = None
    estimated_delivery_date: Optional[datetime] = None
    origin_branch_id: Optional[UUID] = None
    destination_branch_id: Optional[UUID] = None
    shipper_id: Optional[UUID] = None
    receiver_id: Optional[UUID] = None
    parcels: Optional[List[ParcelDTO]] = None
    weight_unit: Optional[str] = None
    shipping_cost: Optional[Decimal] = Field(default=None, ge=0)
    insurance_amount: Optional[Decimal] = Field(default=None, ge=0)
    status: Optional[str] = None
    location: Optional[str] = None
    notes: str = ""

    TRANSITION_FIELDS: ClassVar[frozenset[str]] = frozenset({"status", "location", "notes"})

    def changed_fields(self) -> dict:
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name not in self.TRANSITION_FIELDS
        }


class StatusUpdateDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = Field(min_length=1)
    location: Optional[str] = None
    notes: str = ""


class BulkStatusUpdateDTO(StatusUpdateDTO):
    shipment_ids: List[UUID]

    @field_validator("shipment_ids")
    @classmethod
    def ids_must_not_be_empty(cls, v: List[UUID]) -> List[UUID]:
        if not v:
            raise ValueError("shipment_ids must contain at least one shipment.")
        return v


class CreateFromOrdersDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_ids: List[UUID] = Field(min_length=1)
    departure_date: Optional[datetime] = None
