"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    order_number: str
    batch_number: Optional[str] = None


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised for direct transitions; cascades from a shipment are not included."""

    old_status: str
    new_status: str
    actor_id: Optional[str] = None
