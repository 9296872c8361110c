"""Customer and Branch repository interfaces."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customers.models import Branch, Customer


class ICustomerRepository(IRepository["Customer"]):
    """Repository contract for customers."""

    @abstractmethod
    def find_by_contact(self, phone: str, email: Optional[str] = None) -> Optional[Customer]:
        """Find a customer by phone, or by e-mail when one is given."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Customer:
        """Create a customer from already-validated fields."""


class IBranchRepository(IRepository["Branch"]):
    """Repository contract for branches (read-only for the core)."""
