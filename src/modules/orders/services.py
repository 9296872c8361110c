"""Order service layer (Use Cases).

Order creation issues the order number, resolves the customer (by id or
inline details) and, when a departure date is given, hands the order to the
batch resolver so it joins that day's shipment in the same transaction.

``update_status`` is the order half of the status engine.  Orders move one
pipeline step at a time; ``Cancelled`` is only reachable before departure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import UUID

import structlog
from django.db import IntegrityError, transaction

from modules.accounts.actors import Actor
from modules.core.audit import IAuditSink, StatusAuditEntry, default_audit_sink, record_safely
from modules.core.exceptions import (
    DuplicateEntry,
    InvalidTransition,
    PermissionDenied,
    PersistenceIntegrityError,
    ValidationFailed,
)
from modules.customers.exceptions import BranchNotFound, CustomerNotFound
from modules.orders.constants import (
    DRIVER_ALLOWED_STATUSES,
    INITIAL_ORDER_STATUS,
    TERMINAL_STATES,
    HistorySource,
    OrderStatus,
)
from modules.orders.events import OrderCreated, OrderStatusChanged
from modules.orders.exceptions import OrderNotFound
from modules.orders.status import (
    allowed_next,
    coerce_order_status,
    is_forward_transition,
    parse_order_status,
    sequence_index,
)

if TYPE_CHECKING:
    from modules.customers.models import Customer
    from modules.customers.repositories.interfaces import IBranchRepository, ICustomerRepository
    from modules.orders.dtos import CreateOrderDTO, InlineCustomerDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.shipments.batching import BatchResolver
    from modules.shipments.identifiers import IdentifierGenerator

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        branch_repository: IBranchRepository,
        identifier_generator: IdentifierGenerator,
        batch_resolver: BatchResolver,
        audit_sink: IAuditSink = default_audit_sink,
    ) -> None:
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._branch_repo = branch_repository
        self._identifiers = identifier_generator
        self._batch_resolver = batch_resolver
        self._audit = audit_sink

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO, actor: Actor) -> Order:
        """Create an order and, if it has a departure date, batch it.

        Raises:
            CustomerNotFound: ``customer_id`` does not exist.
            ValidationFailed: the customer is inactive.
            BranchNotFound: ``branch_id`` does not exist.
            DuplicateEntry: the order number was taken concurrently.
        """
        customer = self._resolve_customer(dto)
        if not customer.is_active:
            raise ValidationFailed(f"Customer {customer.id} is inactive.", attr="customer_id")
        if dto.branch_id and not self._branch_repo.get_by_id(str(dto.branch_id)):
            raise BranchNotFound(f"Branch {dto.branch_id} not found.", attr="branch_id")

        order_number = self._identifiers.next_order_number()
        log = logger.bind(order_number=order_number, customer_id=str(customer.id))

        try:
            with transaction.atomic():
                order = self._order_repo.create(
                    {
                        "order_number": order_number,
                        "tracking_code": order_number,
                        "customer_id": customer.id,
                        "branch_id": dto.branch_id,
                        "total_amount": dto.computed_total,
                        "currency": dto.currency,
                        "departure_date": dto.departure_date,
                        "status": INITIAL_ORDER_STATUS,
                        "payment_status": dto.payment_status,
                        "notes": dto.notes,
                        "created_by_id": actor.id,
                        "items": [item.model_dump() for item in dto.items],
                    }
                )
        except IntegrityError as exc:
            log.warning("order.number_conflict")
            raise DuplicateEntry(f"Order number {order_number} is already in use.") from exc

        self._order_repo.add_history(
            str(order.id),
            new_status=INITIAL_ORDER_STATUS,
            actor=actor,
            source=HistorySource.CREATED,
            notes="Order created",
        )

        if dto.departure_date is not None:
            self._batch_resolver.attach_order_to_date_batch(order, dto.departure_date, actor)

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_number=order.order_number,
                batch_number=order.batch_number or None,
            )
        )
        self._order_repo.save(order)
        log.info("order.created", order_id=str(order.id), batch_number=order.batch_number)
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def update_status(
        self,
        order_id: UUID,
        requested_status: Any,
        actor: Actor,
        notes: str = "",
    ) -> Order:
        """Move an order to *requested_status*.

        Raises:
            InvalidStatus: the status is not recognised.
            PermissionDenied: a Driver asked for anything but Out for Delivery / Delivered.
            OrderNotFound: the order does not exist.
            InvalidTransition: backwards, skipping a step, or from a terminal state.
            PersistenceIntegrityError: the stored status differs after the write.
        """
        target = parse_order_status(requested_status)
        if actor.is_driver and target not in DRIVER_ALLOWED_STATUSES:
            logger.warning("order.driver_status_denied", actor_id=actor.id, requested=target.value)
            raise PermissionDenied(
                "Drivers can only mark orders Out for Delivery or Delivered.", attr="status"
            )

        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        current = coerce_order_status(order.status)
        log = logger.bind(
            order_id=str(order_id),
            current_status=current.value,
            new_status=target.value,
        )
        self._check_transition(current, target, log)

        order.status = target
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                old_status=current.value,
                new_status=target.value,
                actor_id=actor.id,
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            str(order.id),
            new_status=target,
            old_status=current,
            actor=actor,
            notes=notes,
        )
        record_safely(
            self._audit,
            StatusAuditEntry(
                entity_type="order",
                entity_id=str(order.id),
                old_status=current.value,
                new_status=target.value,
                actor_id=actor.id,
                actor_role=actor.role,
            ),
        )

        stored = self._order_repo.get_status(str(order.id))
        if stored != target:
            log.error("order.persistence_mismatch", stored_status=stored)
            raise PersistenceIntegrityError(
                f"Order {order_id} reads back as {stored!r} after writing {target.value!r}."
            )

        log.info("order.status_updated")
        return self._order_repo.get_by_id(str(order_id)) or order

    @transaction.atomic
    def delete_order(self, order_id: UUID, actor: Actor) -> None:
        """Delete an order; it also leaves its shipment's member set."""
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        self._order_repo.delete(str(order.id))
        logger.info(
            "order.deleted",
            order_id=str(order_id),
            batch_number=order.batch_number,
            actor_id=actor.id,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None):
        return self._order_repo.list(filters)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_transition(current: OrderStatus, target: OrderStatus, log: Any) -> None:
        if current in TERMINAL_STATES:
            log.warning("order.invalid_transition", reason="terminal")
            raise InvalidTransition(f"Order is already {current.value}.", attr="status")
        if (
            sequence_index(target) is not None
            and sequence_index(current) is not None
            and not is_forward_transition(current, target)
        ):
            log.warning("order.invalid_transition", reason="backwards")
            raise InvalidTransition(
                f"Cannot move an order back from {current.value} to {target.value}.",
                attr="status",
            )
        if target not in allowed_next(current):
            log.warning("order.invalid_transition", reason="not_adjacent")
            raise InvalidTransition(
                f"Cannot transition from {current.value} to {target.value}.", attr="status"
            )

    def _resolve_customer(self, dto: CreateOrderDTO) -> Customer:
        if dto.customer_id is not None:
            customer = self._customer_repo.get_by_id(str(dto.customer_id))
            if not customer:
                raise CustomerNotFound(f"Customer {dto.customer_id} not found.", attr="customer_id")
            return customer
        return self._find_or_create_customer(dto.customer)

    def _find_or_create_customer(self, details: InlineCustomerDTO) -> Customer:
        existing = self._customer_repo.find_by_contact(details.phone, details.email)
        if existing:
            return existing
        customer = self._customer_repo.create(
            {
                "first_name": details.first_name.strip(),
                "last_name": details.last_name.strip(),
                "phone": details.phone.strip(),
                "email": (details.email or "").strip().lower(),
                "address": details.address,
                "city": details.city,
                "country": details.country,
                "postal_code": details.postal_code,
            }
        )
        logger.info("order.customer_created_inline", customer_id=str(customer.id))
        return customer
