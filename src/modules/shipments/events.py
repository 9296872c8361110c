"""Domain events for the Shipments bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class ShipmentBatchCreated(DomainEvent):
    batch_number: str
    departure_day: str


@dataclass(frozen=True)
class ShipmentBatchesMerged(DomainEvent):
    """The canonical batch absorbed duplicates created by concurrent requests."""

    batch_number: str
    merged_batch_numbers: str
    reassigned_orders: int


@dataclass(frozen=True)
class ShipmentStatusChanged(DomainEvent):
    old_status: str
    new_status: str
    cascaded_orders: int = 0
    actor_id: Optional[str] = None
