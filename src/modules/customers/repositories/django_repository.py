"""Django ORM implementations of the Customer and Branch repositories.

Error handling follows the Null Object pattern: look-ups return ``None``
for missing rows or malformed IDs, and the service layer decides which
domain error that becomes.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from modules.customers.models import Branch, Customer
from modules.customers.repositories.interfaces import (
    IBranchRepository,
    ICustomerRepository,
)

logger = structlog.get_logger(__name__)


class CustomerDjangoRepository(ICustomerRepository):
    """Concrete Customer repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Customer]:
        try:
            return Customer.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[str]) -> List[Customer]:
        try:
            return list(Customer.objects.filter(id__in=list(ids)))
        except (ValueError, ValidationError):
            return []

    def find_by_contact(self, phone: str, email: Optional[str] = None) -> Optional[Customer]:
        condition = Q(phone=phone.strip())
        if email:
            condition |= Q(email=email.strip().lower())
        return Customer.objects.filter(condition).order_by("created_at").first()

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Customer:
        customer = Customer.objects.create(**data)
        logger.info("customer.created", customer_id=str(customer.id))
        return customer

    @transaction.atomic
    def save(self, entity: Customer) -> Customer:
        entity.save()
        logger.info("customer.saved", customer_id=str(entity.id))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        customer = self.get_by_id(id)
        if not customer:
            return False
        customer.delete()
        logger.info("customer.deleted", customer_id=str(id))
        return True


class BranchDjangoRepository(IBranchRepository):
    """Concrete Branch repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Branch]:
        try:
            return Branch.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[str]) -> List[Branch]:
        try:
            return list(Branch.objects.filter(id__in=list(ids)))
        except (ValueError, ValidationError):
            return []

    @transaction.atomic
    def save(self, entity: Branch) -> Branch:
        entity.save()
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        deleted, _ = Branch.objects.filter(id=id).delete()
        return deleted > 0
