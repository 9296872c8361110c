"""Order DTOs for the Service Layer.

Framework-agnostic, immutable (``frozen=True``) Pydantic v2 models: the
contract between the API layer (DRF serializers) and ``OrderService``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import PaymentStatus

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str = Field(min_length=1, max_length=255)
    quantity: int = Field(ge=1)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)


class InlineCustomerDTO(BaseModel):
    """Customer details sent with the order instead of a ``customer_id``.

    The service reuses an existing customer matching the phone (or e-mail)
    before creating a new one.
    """

    model_config = ConfigDict(frozen=True)

    first_name: str = Field(min_length=1)
    last_name: str = ""
    phone: str = Field(min_length=5)
    email: Optional[str] = None
    address: str = ""
    city: str = ""
    country: str = ""
    postal_code: str = ""


class CreateOrderDTO(BaseModel):
    """Order creation request.

    Exactly one of ``customer_id`` / ``customer`` identifies the customer.
    ``total_amount`` defaults to the sum of priced items.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: Optional[UUID] = None
    customer: Optional[InlineCustomerDTO] = None
    branch_id: Optional[UUID] = None
    items: List[CreateOrderItemDTO]
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    currency: str = "USD"
    departure_date: Optional[datetime] = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    notes: str = ""

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("currency")
    @classmethod
    def currency_is_iso_code(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError("Currency must be a 3-letter code.")
        return code

    @model_validator(mode="after")
    def customer_is_identified(self) -> CreateOrderDTO:
        if self.customer_id is None and self.customer is None:
            raise ValueError("Provide customer_id or customer details.")
        return self

    @property
    def computed_total(self) -> Decimal:
        if self.total_amount is not None:
            return self.total_amount
        return sum(
            (item.quantity * item.unit_price for item in self.items if item.unit_price is not None),
            Decimal("0.00"),
        )


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class TrackingResultDTO(BaseModel):
    """What a public tracking look-up found: an order, its shipment, or both."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    order: Optional[object] = None
    shipment: Optional[object] = None
