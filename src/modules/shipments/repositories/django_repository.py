"""Django ORM implementation of the Shipment repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q, QuerySet

from modules.accounts.actors import Actor
from modules.shipments.models import Parcel, Shipment, ShipmentHistory
from modules.shipments.repositories.interfaces import IShipmentRepository
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

Membership = Shipment.orders.through


class ShipmentDjangoRepository(IShipmentRepository):
    """Concrete Shipment repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Shipment:
        parcels = data.pop("parcels", [])
        shipment = Shipment.objects.create(**data)
        self._create_parcels(shipment, parcels)
        logger.info(
            "shipment.persisted",
            shipment_id=str(shipment.id),
            batch_number=shipment.batch_number,
            parcel_count=len(parcels),
        )
        return shipment

    def _create_parcels(self, shipment: Shipment, parcels: List[Dict[str, Any]]) -> None:
        Parcel.objects.bulk_create([Parcel(shipment=shipment, **parcel) for parcel in parcels])

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _with_relations(self) -> QuerySet:
        return Shipment.objects.select_related(
            "origin_branch", "destination_branch", "shipper", "receiver"
        ).prefetch_related("parcels", "history", "orders")

    def get_by_id(self, id: str) -> Optional[Shipment]:
        try:
            return self._with_relations().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[str]) -> List[Shipment]:
        try:
            return list(Shipment.objects.filter(id__in=list(ids)))
        except (ValueError, ValidationError):
            return []

    def get_for_update(self, id: str) -> Optional[Shipment]:
        try:
            return (
                Shipment.objects.select_for_update()
                .filter(id=id)
                .prefetch_related("history")
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_by_tracking_code(self, tracking_code: str) -> Optional[Shipment]:
        return self._with_relations().filter(tracking_code=tracking_code).first()

    def get_by_batch_number(self, batch_number: str) -> Optional[Shipment]:
        return self._with_relations().filter(batch_number=batch_number).first()

    def list_by_batch_number(self, batch_number: str) -> List[Shipment]:
        return list(Shipment.objects.filter(batch_number=batch_number).order_by("created_at", "id"))

    def find_containing_order(self, order_id: str) -> Optional[Shipment]:
        return (
            self._with_relations()
            .filter(Q(orders__id=order_id) | Q(order_id=order_id))
            .order_by("created_at", "id")
            .distinct()
            .first()
        )

    def tracking_code_exists(self, tracking_code: str) -> bool:
        return Shipment.objects.filter(tracking_code=tracking_code).exists()

    def batch_numbers_starting_with(self, prefix: str) -> List[str]:
        return list(
            Shipment.objects.filter(batch_number__startswith=prefix).values_list(
                "batch_number", flat=True
            )
        )

    def find_for_day(self, day_start: datetime, day_end: datetime) -> List[Shipment]:
        return list(
            Shipment.objects.filter(departure_date__gte=day_start, departure_date__lt=day_end)
            .select_related("origin_branch")
            .order_by("created_at", "id")
        )

    def get_status(self, id: str) -> Optional[str]:
        return Shipment.objects.filter(id=id).values_list("current_status", flat=True).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet:
        queryset = Shipment.objects.select_related("origin_branch", "destination_branch")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    # ------------------------------------------------------------------
    # Save / Delete
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Shipment) -> Shipment:
        entity.save()
        events = entity.pull_domain_events()
        event_bus.publish_on_commit(events)
        logger.info("shipment.saved", shipment_id=str(entity.id), event_count=len(events))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        try:
            deleted, _ = Shipment.objects.filter(id=id).delete()
        except (ValueError, ValidationError):
            return False
        return deleted > 0

    def delete_many(self, ids: Iterable[str]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        count = Shipment.objects.filter(id__in=ids).count()
        Shipment.objects.filter(id__in=ids).delete()
        return count

    # ------------------------------------------------------------------
    # History / parcels
    # ------------------------------------------------------------------

    def add_history(
        self,
        shipment_id: str,
        status: str,
        location: str,
        actor: Optional[Actor] = None,
        notes: str = "",
    ) -> ShipmentHistory:
        return ShipmentHistory.objects.create(
            shipment_id=shipment_id,
            status=status,
            location=location,
            notes=notes,
            user_id=actor.id if actor else None,
            actor_role=(actor.role or "") if actor else "",
        )

    @transaction.atomic
    def replace_parcels(self, shipment: Shipment, parcels: List[Dict[str, Any]]) -> None:
        shipment.parcels.all().delete()
        self._create_parcels(shipment, parcels)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def member_order_ids(self, shipment: Shipment) -> List[str]:
        ids = [
            str(order_id)
            for order_id in Membership.objects.filter(shipment_id=shipment.id)
            .order_by("id")
            .values_list("order_id", flat=True)
        ]
        if shipment.order_id and str(shipment.order_id) not in ids:
            ids.append(str(shipment.order_id))
        return ids

    def add_members(self, shipment_id: str, order_ids: Iterable[str]) -> None:
        Membership.objects.bulk_create(
            [Membership(shipment_id=shipment_id, order_id=order_id) for order_id in order_ids],
            ignore_conflicts=True,
        )

    def remove_from_other_batches(self, order_ids: Iterable[str], keep_shipment_id: str) -> int:
        deleted, _ = (
            Membership.objects.filter(order_id__in=list(order_ids))
            .exclude(shipment_id=keep_shipment_id)
            .delete()
        )
        return deleted
