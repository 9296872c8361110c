"""Order repository interface.

Extends ``IRepository[Order]`` with what the order use cases, the batch
resolver and the shipment cascade need.  Services depend exclusively on
this contract.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.accounts.actors import Actor
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate (items + history)."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its ``items`` (list of dicts) atomically."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock."""

    @abstractmethod
    def get_by_number(self, number: str) -> Optional[Order]:
        """Retrieve an order by order number or tracking code."""

    @abstractmethod
    def number_exists(self, number: str) -> bool:
        """``True`` if *number* is taken as an order number or tracking code."""

    @abstractmethod
    def get_status(self, id: str) -> Optional[str]:
        """Read the stored status straight from the database."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet:
        """Orders with eager-loaded relations, optionally filtered."""

    @abstractmethod
    def list_unbatched(self) -> List[Order]:
        """Orders that have a departure date but no shipment yet."""

    @abstractmethod
    def add_history(
        self,
        order_id: str,
        new_status: str,
        old_status: Optional[str] = None,
        actor: Optional[Actor] = None,
        source: str = "direct",
        notes: str = "",
    ) -> OrderStatusHistory:
        """Append one row to the order's status trail."""

    @abstractmethod
    def assign_shipment(
        self, order_ids: Iterable[str], shipment_id: str, batch_number: str
    ) -> int:
        """Point the given orders at a shipment; returns rows updated."""

    @abstractmethod
    def reassign_shipment(
        self, from_shipment_ids: Iterable[str], shipment_id: str, batch_number: str
    ) -> int:
        """Re-point every order referencing one of *from_shipment_ids*."""

    @abstractmethod
    def clear_shipment(self, shipment_id: str) -> int:
        """Unlink every order from *shipment_id* (both fields emptied)."""

    @abstractmethod
    def cascade_status(
        self,
        order_ids: Iterable[str],
        new_status: str,
        actor: Optional[Actor] = None,
        notes: str = "",
    ) -> int:
        """Set *new_status* on all given orders without validation.

        Writes one history row per order; returns the number of orders.
        """
