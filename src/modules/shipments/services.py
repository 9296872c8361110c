"""Shipment service layer (Use Cases).

Hosts the shipment half of the status engine:

1. normalize the requested status (``InvalidStatus``);
2. Drivers may only set Out for Delivery / Delivered (``PermissionDenied``);
3. reject regressions and anything after Delivered (``InvalidTransition``);
4. persist status + history, hand an audit entry to the sink;
5. re-read the row and compare (``PersistenceIntegrityError``);
6. cascade the mapped order status to every member order.

Cascaded order writes skip order-level validation: the shipment is the
source of truth for its members' progress.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

import structlog
from django.db import IntegrityError, transaction

from modules.accounts.actors import Actor
from modules.core.audit import IAuditSink, StatusAuditEntry, default_audit_sink, record_safely
from modules.core.exceptions import (
    DuplicateEntry,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    PersistenceIntegrityError,
    ValidationFailed,
)
from modules.customers.exceptions import BranchNotFound, CustomerNotFound
from modules.orders.dtos import TrackingResultDTO
from modules.orders.exceptions import OrderNotFound
from modules.shipments.batching import day_bounds, require_same_day
from modules.shipments.constants import (
    DRIVER_ALLOWED_SHIPMENT_STATUSES,
    INITIAL_SHIPMENT_STATUS,
    ORIGIN_FACILITY_LOCATION,
    PROCESSING_CENTER_LOCATION,
    SHIPMENT_TO_ORDER_STATUS,
    UNKNOWN_LOCATION,
    ShipmentStatus,
)
from modules.shipments.events import ShipmentBatchCreated, ShipmentStatusChanged
from modules.shipments.exceptions import ShipmentNotFound
from modules.shipments.identifiers import IdentifierKind, classify_identifier
from modules.shipments.status import check_transition, coerce_shipment_status, parse_shipment_status

if TYPE_CHECKING:
    from modules.customers.repositories.interfaces import IBranchRepository, ICustomerRepository
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.shipments.batching import BatchResolver
    from modules.shipments.dtos import (
        CreateFromOrdersDTO,
        CreateShipmentDTO,
        UpdateShipmentDTO,
    )
    from modules.shipments.identifiers import IdentifierGenerator
    from modules.shipments.models import Shipment
    from modules.shipments.repositories.interfaces import IShipmentRepository

logger = structlog.get_logger(__name__)


class ShipmentService:
    """Application service for shipment use cases.

    Receives repositories and collaborators via constructor injection.
    """

    def __init__(
        self,
        shipment_repository: IShipmentRepository,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        branch_repository: IBranchRepository,
        identifier_generator: IdentifierGenerator,
        batch_resolver: BatchResolver,
        audit_sink: IAuditSink = default_audit_sink,
    ) -> None:
        self._shipment_repo = shipment_repository
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._branch_repo = branch_repository
        self._identifiers = identifier_generator
        self._batch_resolver = batch_resolver
        self._audit = audit_sink

    # ------------------------------------------------------------------
    # Commands: creation
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_shipment(self, dto: CreateShipmentDTO, actor: Actor) -> Shipment:
        """Create a shipment explicitly (outside the per-day batching flow).

        Raises:
            CustomerNotFound / BranchNotFound / OrderNotFound: a reference is missing.
            ValidationFailed: the shipment is dated and a member order departs
                on another day (or has no departure date).
            DuplicateEntry: the departure day already has a batch, or the
                batch number is taken.
        """
        log = logger.bind(actor_id=actor.id)
        self._require_customer(dto.shipper_id, "shipper_id")
        self._require_customer(dto.receiver_id, "receiver_id")
        self._require_branch(dto.origin_branch_id, "origin_branch_id")
        self._require_branch(dto.destination_branch_id, "destination_branch_id")
        if dto.order_id and not self._order_repo.get_by_id(str(dto.order_id)):
            raise OrderNotFound(f"Order {dto.order_id} not found.", attr="order_id")
        member_ids = self._require_orders(dto.order_ids)

        departure = None
        if dto.departure_date is not None:
            departure, day_end = day_bounds(dto.departure_date)
            existing = self._shipment_repo.find_for_day(departure, day_end)
            if existing:
                raise DuplicateEntry(
                    f"Departure day {departure.date().isoformat()} already has batch "
                    f"{existing[0].batch_number}.",
                    attr="departure_date",
                )
            if member_ids:
                require_same_day(self._order_repo.get_many(member_ids), departure)

        batch_number = dto.batch_number or self._identifiers.next_batch_number(
            departure.year if departure else None
        )
        try:
            with transaction.atomic():
                shipment = self._shipment_repo.create(
                    {
                        "tracking_code": self._identifiers.next_tracking_code(),
                        "batch_number": batch_number,
                        "invoice_number": dto.invoice_number,
                        "departure_date": departure,
                        "estimated_delivery_date": dto.estimated_delivery_date,
                        "current_status": INITIAL_SHIPMENT_STATUS,
                        "origin_branch_id": dto.origin_branch_id,
                        "destination_branch_id": dto.destination_branch_id,
                        "shipper_id": dto.shipper_id,
                        "receiver_id": dto.receiver_id,
                        "order_id": dto.order_id,
                        "total_weight": dto.total_weight,
                        "weight_unit": dto.weight_unit,
                        "shipping_cost": dto.shipping_cost,
                        "insurance_amount": dto.insurance_amount,
                        "created_by_id": actor.id,
                        "parcels": [parcel.model_dump() for parcel in dto.parcels],
                    }
                )
        except IntegrityError as exc:
            log.warning("shipment.create_conflict", batch_number=batch_number)
            raise DuplicateEntry(
                f"Batch number {batch_number} is already in use.", attr="batch_number"
            ) from exc

        self._shipment_repo.add_history(
            str(shipment.id),
            status=INITIAL_SHIPMENT_STATUS,
            location=ORIGIN_FACILITY_LOCATION if dto.origin_branch_id else PROCESSING_CENTER_LOCATION,
            actor=actor,
            notes="Shipment created",
        )
        if member_ids:
            self._attach_members(shipment, member_ids)

        shipment.add_domain_event(
            ShipmentBatchCreated(
                aggregate_id=shipment.id,
                batch_number=shipment.batch_number,
                departure_day=departure.date().isoformat() if departure else "",
            )
        )
        self._shipment_repo.save(shipment)
        log.info("shipment.created", shipment_id=str(shipment.id), batch_number=batch_number)
        return self._shipment_repo.get_by_id(str(shipment.id)) or shipment

    def create_from_orders(self, dto: CreateFromOrdersDTO, actor: Actor) -> Tuple[Shipment, bool]:
        """Batch existing orders into their (shared) departure day's shipment."""
        shipment, created = self._batch_resolver.attach_orders_to_date_batch(
            [str(order_id) for order_id in dto.order_ids], dto.departure_date, actor
        )
        return self._shipment_repo.get_by_id(str(shipment.id)) or shipment, created

    # ------------------------------------------------------------------
    # Commands: edits
    # ------------------------------------------------------------------

    @transaction.atomic
    def update_shipment(self, shipment_id: UUID, dto: UpdateShipmentDTO, actor: Actor) -> Shipment:
        """Edit descriptive fields; a ``status`` in *dto* is applied as a transition."""
        shipment = self._shipment_repo.get_for_update(str(shipment_id))
        if not shipment:
            raise ShipmentNotFound(f"Shipment {shipment_id} not found.")

        changes = dto.changed_fields()
        parcels = changes.pop("parcels", None)
        for field in ("shipper_id", "receiver_id"):
            if field in changes:
                if changes[field] is None:
                    raise ValidationFailed(f"{field} cannot be empty.", attr=field)
                self._require_customer(changes[field], field)
        for field in ("origin_branch_id", "destination_branch_id"):
            if field in changes:
                self._require_branch(changes[field], field)

        for field, value in changes.items():
            if value is None and field in {"invoice_number", "weight_unit", "shipping_cost", "insurance_amount"}:
                continue
            setattr(shipment, field, value)
        if parcels is not None:
            self._shipment_repo.replace_parcels(shipment, [p.model_dump() for p in parcels])
            shipment.total_weight = sum((p.weight for p in parcels), 0)

        self._shipment_repo.save(shipment)
        logger.info(
            "shipment.updated",
            shipment_id=str(shipment.id),
            fields=sorted(changes) + (["parcels"] if parcels is not None else []),
        )

        if dto.status:
            return self.update_status(
                shipment_id, dto.status, actor, location=dto.location, notes=dto.notes
            )
        return self._shipment_repo.get_by_id(str(shipment.id)) or shipment

    @transaction.atomic
    def delete_shipment(self, shipment_id: UUID, actor: Actor) -> None:
        """Delete a shipment; member orders stay, unlinked from it."""
        shipment = self._shipment_repo.get_by_id(str(shipment_id))
        if not shipment:
            raise ShipmentNotFound(f"Shipment {shipment_id} not found.")
        cleared = self._order_repo.clear_shipment(str(shipment.id))
        self._shipment_repo.delete(str(shipment.id))
        logger.info(
            "shipment.deleted",
            shipment_id=str(shipment_id),
            batch_number=shipment.batch_number,
            cleared_orders=cleared,
            actor_id=actor.id,
        )

    # ------------------------------------------------------------------
    # Commands: status engine
    # ------------------------------------------------------------------

    def update_status(
        self,
        shipment_id: UUID,
        requested_status: Any,
        actor: Actor,
        location: Optional[str] = None,
        notes: str = "",
    ) -> Shipment:
        """Transition one shipment and cascade to its orders.

        Raises:
            InvalidStatus: the status is not recognised.
            PermissionDenied: a Driver asked for anything but Out for Delivery / Delivered.
            ShipmentNotFound: the shipment does not exist.
            InvalidTransition: the change regresses or the shipment is Delivered.
            PersistenceIntegrityError: the stored status differs after the write.
        """
        target = self._authorize(requested_status, actor)
        shipment = self._transition(str(shipment_id), target, actor, location, notes)
        return self._shipment_repo.get_by_id(str(shipment.id)) or shipment

    def update_batch_status(
        self,
        batch_number: str,
        requested_status: Any,
        actor: Actor,
        location: Optional[str] = None,
        notes: str = "",
    ) -> int:
        """Transition every shipment carrying *batch_number*; returns how many."""
        target = self._authorize(requested_status, actor)
        shipments = self._shipment_repo.list_by_batch_number(batch_number)
        if not shipments:
            raise ShipmentNotFound(f"Batch {batch_number} not found.", attr="batch_number")
        for shipment in shipments:
            self._transition(str(shipment.id), target, actor, location, notes)
        logger.info("shipment.batch_status_updated", batch_number=batch_number, count=len(shipments))
        return len(shipments)

    def update_bulk_status(
        self,
        shipment_ids: Iterable[UUID],
        requested_status: Any,
        actor: Actor,
        location: Optional[str] = None,
        notes: str = "",
    ) -> int:
        """Transition the listed shipments; all must exist before any is written.

        Once writing starts each shipment commits on its own.
        """
        ids = list(dict.fromkeys(str(shipment_id) for shipment_id in shipment_ids))
        if not ids:
            raise ValidationFailed("shipment_ids must contain at least one shipment.", attr="shipment_ids")
        target = self._authorize(requested_status, actor)

        found = {str(shipment.id) for shipment in self._shipment_repo.get_many(ids)}
        missing = [shipment_id for shipment_id in ids if shipment_id not in found]
        if missing:
            raise ShipmentNotFound(f"Shipments not found: {', '.join(missing)}.", attr="shipment_ids")

        for shipment_id in ids:
            self._transition(shipment_id, target, actor, location, notes)
        logger.info("shipment.bulk_status_updated", count=len(ids), new_status=target.value)
        return len(ids)

    def _authorize(self, requested_status: Any, actor: Actor) -> ShipmentStatus:
        target = parse_shipment_status(requested_status)
        if actor.is_driver and target not in DRIVER_ALLOWED_SHIPMENT_STATUSES:
            logger.warning("shipment.driver_status_denied", actor_id=actor.id, requested=target.value)
            raise PermissionDenied(
                "Drivers can only mark shipments Out for Delivery or Delivered.", attr="status"
            )
        return target

    @transaction.atomic
    def _transition(
        self,
        shipment_id: str,
        target: ShipmentStatus,
        actor: Actor,
        location: Optional[str],
        notes: str,
    ) -> Shipment:
        shipment = self._shipment_repo.get_for_update(shipment_id)
        if not shipment:
            raise ShipmentNotFound(f"Shipment {shipment_id} not found.")

        current = coerce_shipment_status(shipment.current_status)
        log = logger.bind(
            shipment_id=shipment_id,
            batch_number=shipment.batch_number,
            current_status=current.value,
            new_status=target.value,
        )
        try:
            check_transition(current, target, shipment.last_active_status())
        except InvalidTransition:
            log.warning("shipment.invalid_transition")
            raise

        member_ids = self._shipment_repo.member_order_ids(shipment)
        shipment.current_status = target
        shipment.add_domain_event(
            ShipmentStatusChanged(
                aggregate_id=shipment.id,
                old_status=current.value,
                new_status=target.value,
                cascaded_orders=len(member_ids),
                actor_id=actor.id,
            )
        )
        self._shipment_repo.save(shipment)
        self._shipment_repo.add_history(
            shipment_id,
            status=target,
            location=location or UNKNOWN_LOCATION,
            actor=actor,
            notes=notes,
        )
        record_safely(
            self._audit,
            StatusAuditEntry(
                entity_type="shipment",
                entity_id=shipment_id,
                old_status=current.value,
                new_status=target.value,
                actor_id=actor.id,
                actor_role=actor.role,
            ),
        )

        stored = self._shipment_repo.get_status(shipment_id)
        if stored != target:
            log.error("shipment.persistence_mismatch", stored_status=stored)
            raise PersistenceIntegrityError(
                f"Shipment {shipment_id} reads back as {stored!r} after writing {target.value!r}."
            )

        cascaded = self._order_repo.cascade_status(
            member_ids,
            SHIPMENT_TO_ORDER_STATUS[target],
            actor=actor,
            notes=f"Shipment {shipment.batch_number} is {target.value}",
        )
        log.info("shipment.status_updated", cascaded_orders=cascaded)
        return shipment

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_shipment(self, shipment_id: str) -> Shipment:
        shipment = self._shipment_repo.get_by_id(shipment_id)
        if not shipment:
            raise ShipmentNotFound(f"Shipment {shipment_id} not found.")
        return shipment

    def get_batch(self, batch_number: str) -> Shipment:
        shipment = self._shipment_repo.get_by_batch_number(batch_number.strip().upper())
        if not shipment:
            raise ShipmentNotFound(f"Batch {batch_number} not found.", attr="batch_number")
        return shipment

    def list_shipments(self, filters: Optional[Dict[str, Any]] = None):
        return self._shipment_repo.list(filters)

    def track(self, tracking_code: str) -> Shipment:
        """Public look-up by tracking code (batch numbers and IDs work too)."""
        kind, value = classify_identifier(tracking_code)
        if kind == IdentifierKind.ORDER_NUMBER:
            raise ShipmentNotFound(f"{value} is an order number; track it under /orders/track/.")
        shipment = self._find_shipment(kind, value)
        if not shipment:
            raise ShipmentNotFound(f"No shipment matches {value}.")
        return shipment

    def _find_shipment(self, kind: str, value: str) -> Optional[Shipment]:
        if kind == IdentifierKind.ID:
            return self._shipment_repo.get_by_id(value)
        if kind == IdentifierKind.TRACKING_CODE:
            return self._shipment_repo.get_by_tracking_code(value)
        if kind == IdentifierKind.BATCH_NUMBER:
            return self._shipment_repo.get_by_batch_number(value)
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_customer(self, customer_id: Optional[UUID], attr: str) -> None:
        if customer_id and not self._customer_repo.get_by_id(str(customer_id)):
            raise CustomerNotFound(f"Customer {customer_id} not found.", attr=attr)

    def _require_branch(self, branch_id: Optional[UUID], attr: str) -> None:
        if branch_id and not self._branch_repo.get_by_id(str(branch_id)):
            raise BranchNotFound(f"Branch {branch_id} not found.", attr=attr)

    def _require_orders(self, order_ids: Iterable[UUID]) -> List[str]:
        ids = list(dict.fromkeys(str(order_id) for order_id in order_ids))
        if not ids:
            return []
        found = {str(order.id) for order in self._order_repo.get_many(ids)}
        missing = [order_id for order_id in ids if order_id not in found]
        if missing:
            raise OrderNotFound(f"Orders not found: {', '.join(missing)}.", attr="order_ids")
        return ids

    def _attach_members(self, shipment: Shipment, order_ids: List[str]) -> None:
        self._shipment_repo.remove_from_other_batches(order_ids, str(shipment.id))
        self._shipment_repo.add_members(str(shipment.id), order_ids)
        self._order_repo.assign_shipment(order_ids, str(shipment.id), shipment.batch_number)


class TrackingService:
    """Anonymous tracking: resolve an order and/or shipment from any public key."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        shipment_repository: IShipmentRepository,
    ) -> None:
        self._order_repo = order_repository
        self._shipment_repo = shipment_repository

    def track(self, identifier: str) -> TrackingResultDTO:
        """Order by id / order number (with its shipment), else shipment by code or batch.

        Raises:
            MalformedIdentifier: *identifier* has no recognised shape.
            NotFound: nothing matches.
        """
        kind, value = classify_identifier(identifier)

        order = None
        if kind == IdentifierKind.ID:
            order = self._order_repo.get_by_id(value)
        elif kind == IdentifierKind.ORDER_NUMBER:
            order = self._order_repo.get_by_number(value)

        if order is not None:
            shipment = None
            if order.shipment_id:
                shipment = self._shipment_repo.get_by_id(str(order.shipment_id))
            if shipment is None:
                shipment = self._shipment_repo.find_containing_order(str(order.id))
            return TrackingResultDTO(order=order, shipment=shipment)

        shipment = None
        if kind == IdentifierKind.ID:
            shipment = self._shipment_repo.get_by_id(value)
        elif kind == IdentifierKind.TRACKING_CODE:
            shipment = self._shipment_repo.get_by_tracking_code(value)
        elif kind == IdentifierKind.BATCH_NUMBER:
            shipment = self._shipment_repo.get_by_batch_number(value)

        if shipment is None:
            logger.info("tracking.not_found", identifier_kind=kind)
            raise NotFound(f"No order or shipment matches {value}.", attr="identifier")
        return TrackingResultDTO(shipment=shipment)
