"""Shipment repository interface."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.accounts.actors import Actor
    from modules.shipments.models import Shipment, ShipmentHistory


class IShipmentRepository(IRepository["Shipment"]):
    """Repository contract for shipment batches (parcels + history + members)."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Shipment:
        """Create a shipment with its ``parcels`` (list of dicts)."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Shipment]:
        """Retrieve a shipment holding a row-level lock."""

    @abstractmethod
    def get_by_tracking_code(self, tracking_code: str) -> Optional[Shipment]: ...

    @abstractmethod
    def get_by_batch_number(self, batch_number: str) -> Optional[Shipment]: ...

    @abstractmethod
    def list_by_batch_number(self, batch_number: str) -> List[Shipment]: ...

    @abstractmethod
    def find_containing_order(self, order_id: str) -> Optional[Shipment]:
        """The shipment listing *order_id* as a member or as its legacy order."""

    @abstractmethod
    def tracking_code_exists(self, tracking_code: str) -> bool: ...

    @abstractmethod
    def batch_numbers_starting_with(self, prefix: str) -> List[str]: ...

    @abstractmethod
    def find_for_day(self, day_start: datetime, day_end: datetime) -> List[Shipment]:
        """Shipments departing in ``[day_start, day_end)``, oldest first."""

    @abstractmethod
    def get_status(self, id: str) -> Optional[str]:
        """Read the stored status straight from the database."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet: ...

    @abstractmethod
    def add_history(
        self,
        shipment_id: str,
        status: str,
        location: str,
        actor: Optional[Actor] = None,
        notes: str = "",
    ) -> ShipmentHistory: ...

    @abstractmethod
    def replace_parcels(self, shipment: Shipment, parcels: List[Dict[str, Any]]) -> None: ...

    @abstractmethod
    def member_order_ids(self, shipment: Shipment) -> List[str]:
        """Member orders plus the legacy single order, without duplicates."""

    @abstractmethod
    def add_members(self, shipment_id: str, order_ids: Iterable[str]) -> None:
        """Set-add *order_ids* to the member set."""

    @abstractmethod
    def remove_from_other_batches(self, order_ids: Iterable[str], keep_shipment_id: str) -> int:
        """Drop *order_ids* from every member set except *keep_shipment_id*'s."""

    @abstractmethod
    def delete_many(self, ids: Iterable[str]) -> int: ...
