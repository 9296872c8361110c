"""Django ORM implementation of the Order repository.

Look-ups return ``None`` for missing rows or malformed IDs (Null Object);
the service layer turns that into ``OrderNotFound``.  Saving an order
drains its domain events onto the bus once the transaction commits.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from modules.accounts.actors import Actor
from modules.orders.constants import HistorySource
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        items = data.pop("items", [])
        order = Order.objects.create(**data)
        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    position=position,
                    description=item["description"],
                    quantity=item["quantity"],
                    unit_price=item.get("unit_price"),
                )
                for position, item in enumerate(items)
            ]
        )
        logger.info("order.persisted", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _with_relations(self) -> QuerySet:
        return Order.objects.select_related("customer", "branch", "shipment").prefetch_related(
            "items", "status_history"
        )

    def get_by_id(self, id: str) -> Optional[Order]:
        try:
            return self._with_relations().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[str]) -> List[Order]:
        try:
            return list(Order.objects.filter(id__in=list(ids)).select_related("customer"))
        except (ValueError, ValidationError):
            return []

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_number(self, number: str) -> Optional[Order]:
        return (
            self._with_relations()
            .filter(Q(order_number=number) | Q(tracking_code=number))
            .first()
        )

    def number_exists(self, number: str) -> bool:
        return Order.objects.filter(Q(order_number=number) | Q(tracking_code=number)).exists()

    def get_status(self, id: str) -> Optional[str]:
        return Order.objects.filter(id=id).values_list("status", flat=True).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet:
        queryset = Order.objects.select_related("customer")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def list_unbatched(self) -> List[Order]:
        return list(
            Order.objects.filter(shipment__isnull=True, departure_date__isnull=False)
            .select_related("customer", "branch")
            .order_by("departure_date", "created_at")
        )

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        entity.save()
        events = entity.pull_domain_events()
        event_bus.publish_on_commit(events)
        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        try:
            deleted, _ = Order.objects.filter(id=id).delete()
        except (ValueError, ValidationError):
            return False
        if deleted:
            logger.info("order.deleted", order_id=str(id))
        return deleted > 0

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: str,
        new_status: str,
        old_status: Optional[str] = None,
        actor: Optional[Actor] = None,
        source: str = HistorySource.DIRECT,
        notes: str = "",
    ) -> OrderStatusHistory:
        return OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            source=source,
            user_id=actor.id if actor else None,
            actor_role=(actor.role or "") if actor else "",
            notes=notes,
        )

    # ------------------------------------------------------------------
    # Shipment linkage
    # ------------------------------------------------------------------

    def assign_shipment(
        self, order_ids: Iterable[str], shipment_id: str, batch_number: str
    ) -> int:
        return Order.objects.filter(id__in=list(order_ids)).update(
            shipment_id=shipment_id,
            batch_number=batch_number,
            updated_at=timezone.now(),
        )

    def reassign_shipment(
        self, from_shipment_ids: Iterable[str], shipment_id: str, batch_number: str
    ) -> int:
        return Order.objects.filter(shipment_id__in=list(from_shipment_ids)).update(
            shipment_id=shipment_id,
            batch_number=batch_number,
            updated_at=timezone.now(),
        )

    def clear_shipment(self, shipment_id: str) -> int:
        return Order.objects.filter(shipment_id=shipment_id).update(
            shipment=None,
            batch_number="",
            updated_at=timezone.now(),
        )

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    @transaction.atomic
    def cascade_status(
        self,
        order_ids: Iterable[str],
        new_status: str,
        actor: Optional[Actor] = None,
        notes: str = "",
    ) -> int:
        previous = dict(
            Order.objects.filter(id__in=list(order_ids)).values_list("id", "status")
        )
        if not previous:
            return 0
        Order.objects.filter(id__in=list(previous)).update(
            status=new_status, updated_at=timezone.now()
        )
        OrderStatusHistory.objects.bulk_create(
            [
                OrderStatusHistory(
                    order_id=order_id,
                    old_status=old_status,
                    new_status=new_status,
                    source=HistorySource.CASCADE,
                    user_id=actor.id if actor else None,
                    actor_role=(actor.role or "") if actor else "",
                    notes=notes,
                )
                for order_id, old_status in previous.items()
            ]
        )
        return len(previous)
