"""Batch resolver: one shipment per departure day.

``attach_order_to_date_batch`` is find-or-create-then-merge:

1. truncate the departure date to its UTC day ``[start, end)``;
2. load every shipment departing that day, oldest first;
3. none → create one (new batch number and tracking code);
4. one → use it;
5. several → the oldest is canonical; the others' members and back
   references move to it and the duplicates are deleted;
6/7. add the order(s) to the canonical member set and point them at it;
8. return ``(shipment, created)``.

Two requests can both see an empty day and both create a batch.  Creating
runs in a savepoint; losing the unique batch-number race re-reads the day
and retries, and whatever duplicates survive are merged by the next call
that sees them.  Merging is routine, never an error.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction

from modules.accounts.actors import SYSTEM_ACTOR, Actor
from modules.core.exceptions import DuplicateEntry, ValidationFailed
from modules.orders.exceptions import OrderNotFound
from modules.shipments.constants import (
    INITIAL_SHIPMENT_STATUS,
    ORIGIN_FACILITY_LOCATION,
    PROCESSING_CENTER_LOCATION,
)
from modules.shipments.events import ShipmentBatchCreated, ShipmentBatchesMerged
from shared.infrastructure.bus import event_bus

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.shipments.identifiers import IdentifierGenerator
    from modules.shipments.models import Shipment
    from modules.shipments.repositories.interfaces import IShipmentRepository

logger = structlog.get_logger(__name__)


def day_bounds(value: date | datetime) -> Tuple[datetime, datetime]:
    """Half-open UTC day ``[00:00, next 00:00)`` containing *value*.

    Naive datetimes are taken as UTC; plain dates are that UTC day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=dt_timezone.utc)
        day = value.astimezone(dt_timezone.utc).date()
    else:
        day = value
    start = datetime.combine(day, time.min, tzinfo=dt_timezone.utc)
    return start, start + timedelta(days=1)


def require_same_day(orders: Sequence[Order], start: datetime) -> None:
    """Raise ``ValidationFailed`` unless every order departs on the UTC day at *start*."""
    undated = [str(order.id) for order in orders if order.departure_date is None]
    mismatched = [
        str(order.id)
        for order in orders
        if order.departure_date is not None and day_bounds(order.departure_date)[0] != start
    ]
    if undated or mismatched:
        logger.info(
            "batch.departure_mismatch",
            departure_day=start.date().isoformat(),
            undated=undated,
            mismatched=mismatched,
        )
        raise ValidationFailed(
            "All orders must depart on "
            f"{start.date().isoformat()}; mismatched: {', '.join(undated + mismatched)}.",
            attr="order_ids",
        )


class BatchResolver:
    def __init__(
        self,
        order_repository: IOrderRepository,
        shipment_repository: IShipmentRepository,
        identifier_generator: IdentifierGenerator,
    ) -> None:
        self._order_repo = order_repository
        self._shipment_repo = shipment_repository
        self._identifiers = identifier_generator

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    @transaction.atomic
    def attach_order_to_date_batch(
        self,
        order: Order,
        departure_date: date | datetime,
        actor: Optional[Actor] = None,
    ) -> Tuple[Shipment, bool]:
        """Put *order* into its departure day's batch, creating the batch if needed."""
        return self._attach([order], departure_date, actor or SYSTEM_ACTOR)

    @transaction.atomic
    def attach_orders_to_date_batch(
        self,
        order_ids: Sequence[str],
        departure_date: Optional[date | datetime] = None,
        actor: Optional[Actor] = None,
    ) -> Tuple[Shipment, bool]:
        """Batch several orders that must all depart on the same day.

        The day is *departure_date* when given, otherwise the first order's.

        Raises:
            ValidationFailed: no order IDs, no departure date, or orders
                departing on different days.
            OrderNotFound: some IDs do not exist.
        """
        unique_ids = list(OrderedDict.fromkeys(str(order_id) for order_id in order_ids))
        if not unique_ids:
            raise ValidationFailed("order_ids must contain at least one order.", attr="order_ids")

        found = {str(order.id): order for order in self._order_repo.get_many(unique_ids)}
        missing = [order_id for order_id in unique_ids if order_id not in found]
        if missing:
            raise OrderNotFound(f"Orders not found: {', '.join(missing)}.", attr="order_ids")
        orders = [found[order_id] for order_id in unique_ids]

        effective = departure_date or orders[0].departure_date
        if effective is None:
            raise ValidationFailed(
                "departure_date is required in the request or on the orders.",
                attr="departure_date",
            )
        start, _ = day_bounds(effective)
        require_same_day(orders, start)
        return self._attach(orders, effective, actor or SYSTEM_ACTOR)

    def auto_batch_unassigned_orders(self, actor: Optional[Actor] = None) -> List[Tuple[str, int]]:
        """Batch every dated order that has no shipment, one resolver run per day.

        Returns ``(batch_number, order_count)`` per processed day.
        """
        results = []
        for day, orders in orders_by_day(self._order_repo.list_unbatched()).items():
            with transaction.atomic():
                shipment, created = self._attach(orders, day, actor or SYSTEM_ACTOR)
            results.append((shipment.batch_number, len(orders)))
            logger.info(
                "batch.auto_batched",
                departure_day=day.isoformat(),
                batch_number=shipment.batch_number,
                order_count=len(orders),
                created=created,
            )
        return results

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _attach(
        self, orders: List[Order], departure_date: date | datetime, actor: Actor
    ) -> Tuple[Shipment, bool]:
        start, end = day_bounds(departure_date)
        log = logger.bind(departure_day=start.date().isoformat(), order_count=len(orders))

        shipment, created = self.resolve_day(start, end, orders[0], actor)

        order_ids = [str(order.id) for order in orders]
        self._shipment_repo.remove_from_other_batches(order_ids, str(shipment.id))
        self._shipment_repo.add_members(str(shipment.id), order_ids)
        self._order_repo.assign_shipment(order_ids, str(shipment.id), shipment.batch_number)
        for order in orders:
            order.shipment = shipment
            order.batch_number = shipment.batch_number

        log.info(
            "batch.orders_attached",
            shipment_id=str(shipment.id),
            batch_number=shipment.batch_number,
            created=created,
        )
        return shipment, created

    def resolve_day(
        self, start: datetime, end: datetime, seed: Order, actor: Actor
    ) -> Tuple[Shipment, bool]:
        """Canonical shipment for ``[start, end)``; created from *seed* if none exists."""
        attempts = settings.BATCH_CREATE_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            existing = self._shipment_repo.find_for_day(start, end)
            if existing:
                return self._merge_duplicates(existing), False
            try:
                with transaction.atomic():
                    return self._create_batch(start, seed, actor), True
            except IntegrityError:
                logger.warning(
                    "batch.create_conflict",
                    departure_day=start.date().isoformat(),
                    attempt=attempt,
                )
        raise DuplicateEntry(
            f"Could not create a batch for {start.date().isoformat()} after {attempts} attempts."
        )

    def _create_batch(self, start: datetime, seed: Order, actor: Actor) -> Shipment:
        """New batch seeded from *seed*: its customer ships and receives until reassigned."""
        shipment = self._shipment_repo.create(
            {
                "tracking_code": self._identifiers.next_tracking_code(),
                "batch_number": self._identifiers.next_batch_number(start.year),
                "departure_date": start,
                "current_status": INITIAL_SHIPMENT_STATUS,
                "shipper_id": seed.customer_id,
                "receiver_id": seed.customer_id,
                "origin_branch_id": seed.branch_id,
                "shipping_cost": seed.total_amount or 0,
                "created_by_id": actor.id,
            }
        )
        self._shipment_repo.add_history(
            str(shipment.id),
            status=INITIAL_SHIPMENT_STATUS,
            location=ORIGIN_FACILITY_LOCATION if seed.branch_id else PROCESSING_CENTER_LOCATION,
            actor=actor,
            notes=f"Shipment batch created for {start.date().isoformat()}",
        )
        shipment.add_domain_event(
            ShipmentBatchCreated(
                aggregate_id=shipment.id,
                batch_number=shipment.batch_number,
                departure_day=start.date().isoformat(),
            )
        )
        self._shipment_repo.save(shipment)
        return shipment

    def _merge_duplicates(self, shipments: List[Shipment]) -> Shipment:
        canonical, duplicates = shipments[0], shipments[1:]
        if not duplicates:
            return canonical

        duplicate_ids = [str(duplicate.id) for duplicate in duplicates]
        member_ids: List[str] = []
        for duplicate in duplicates:
            member_ids.extend(self._shipment_repo.member_order_ids(duplicate))

        self._shipment_repo.add_members(str(canonical.id), member_ids)
        reassigned = self._order_repo.reassign_shipment(
            duplicate_ids, str(canonical.id), canonical.batch_number
        )
        self._shipment_repo.delete_many(duplicate_ids)

        logger.info(
            "shipment.batch_merged",
            shipment_id=str(canonical.id),
            batch_number=canonical.batch_number,
            duplicate_count=len(duplicates),
            reassigned_orders=reassigned,
        )
        canonical.add_domain_event(
            ShipmentBatchesMerged(
                aggregate_id=canonical.id,
                batch_number=canonical.batch_number,
                merged_batch_numbers=",".join(d.batch_number for d in duplicates),
                reassigned_orders=reassigned,
            )
        )
        # The canonical row itself is unchanged; only its event needs flushing.
        event_bus.publish_on_commit(canonical.pull_domain_events())
        return canonical


def orders_by_day(orders: Iterable[Order]) -> "OrderedDict[date, List[Order]]":
    grouped: "OrderedDict[date, List[Order]]" = OrderedDict()
    for order in orders:
        if order.departure_date is None:
            continue
        grouped.setdefault(day_bounds(order.departure_date)[0].date(), []).append(order)
    return grouped
