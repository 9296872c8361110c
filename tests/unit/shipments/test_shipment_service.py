"""Unit tests for ShipmentService: CRUD, the shipment status engine and cascades."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from modules.core.exceptions import (
    DuplicateEntry,
    InvalidStatus,
    InvalidTransition,
    PermissionDenied,
    PersistenceIntegrityError,
    ValidationFailed,
)
from modules.customers.exceptions import CustomerNotFound
from modules.customers.repositories.django_repository import (
    BranchDjangoRepository,
    CustomerDjangoRepository,
)
from modules.orders.constants import HistorySource, OrderStatus
from modules.orders.exceptions import OrderNotFound
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.shipments.constants import UNKNOWN_LOCATION, ShipmentStatus
from modules.shipments.dtos import (
    CreateFromOrdersDTO,
    CreateShipmentDTO,
    ParcelDTO,
    UpdateShipmentDTO,
)
from modules.shipments.exceptions import ShipmentNotFound
from modules.shipments.handlers import status_changed_handler
from modules.shipments.models import Shipment
from modules.shipments.providers import build_batch_resolver, build_identifier_generator
from modules.shipments.repositories.django_repository import ShipmentDjangoRepository
from modules.shipments.services import ShipmentService

pytestmark = pytest.mark.unit

UTC = timezone.utc


@pytest.fixture()
def batch(make_order, departure):
    """A departure-day shipment holding three orders."""
    orders = [make_order(departure_date=departure) for _ in range(3)]
    return Shipment.objects.get(id=orders[0].shipment_id), orders


def _statuses(orders):
    return {Order.objects.get(id=order.id).status for order in orders}


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateShipment:
    def test_explicit_shipment(self, shipment_service, customer, other_customer, branch, admin_actor):
        shipment = shipment_service.create_shipment(
            CreateShipmentDTO(
                shipper_id=customer.id,
                receiver_id=other_customer.id,
                origin_branch_id=branch.id,
                departure_date=datetime(2024, 6, 1, 15, 0, tzinfo=UTC),
                parcels=[
                    ParcelDTO(description="Box A", weight=Decimal("2.50")),
                    ParcelDTO(description="Box B", weight=Decimal("1.25")),
                ],
            ),
            admin_actor,
        )

        assert shipment.batch_number == "BCH-2024-001"
        assert shipment.departure_date == datetime(2024, 6, 1, tzinfo=UTC)
        assert shipment.total_weight == Decimal("3.75")
        assert shipment.parcels.count() == 2
        assert shipment.history.get().notes == "Shipment created"

    def test_explicit_batch_number(self, shipment_service, customer, admin_actor):
        shipment = shipment_service.create_shipment(
            CreateShipmentDTO(
                shipper_id=customer.id, receiver_id=customer.id, batch_number="BCH-2024-050"
            ),
            admin_actor,
        )
        assert shipment.batch_number == "BCH-2024-050"

    def test_taken_batch_number(self, shipment_service, customer, admin_actor):
        dto = CreateShipmentDTO(
            shipper_id=customer.id, receiver_id=customer.id, batch_number="BCH-2024-050"
        )
        shipment_service.create_shipment(dto, admin_actor)

        with pytest.raises(DuplicateEntry):
            shipment_service.create_shipment(dto, admin_actor)

    def test_day_already_has_a_batch(self, shipment_service, batch, customer, departure, admin_actor):
        with pytest.raises(DuplicateEntry) as exc_info:
            shipment_service.create_shipment(
                CreateShipmentDTO(
                    shipper_id=customer.id, receiver_id=customer.id, departure_date=departure
                ),
                admin_actor,
            )
        assert exc_info.value.attr == "departure_date"

    def test_members_are_linked(self, shipment_service, make_order, customer, admin_actor):
        orders = [make_order(), make_order()]

        shipment = shipment_service.create_shipment(
            CreateShipmentDTO(
                shipper_id=customer.id,
                receiver_id=customer.id,
                order_ids=[order.id for order in orders],
            ),
            admin_actor,
        )

        assert set(shipment.orders.all()) == set(orders)
        assert set(
            Order.objects.values_list("batch_number", flat=True)
        ) == {shipment.batch_number}

    def test_dated_shipment_takes_same_day_members(
        self, shipment_service, make_order, customer, departure, admin_actor
    ):
        orders = [make_order(), make_order()]
        Order.objects.update(departure_date=departure + timedelta(hours=5))

        shipment = shipment_service.create_shipment(
            CreateShipmentDTO(
                shipper_id=customer.id,
                receiver_id=customer.id,
                departure_date=departure,
                order_ids=[order.id for order in orders],
            ),
            admin_actor,
        )

        assert shipment.orders.count() == 2

    def test_dated_shipment_rejects_members_from_other_days(
        self, shipment_service, make_order, customer, departure, admin_actor
    ):
        same_day, next_day, undated = make_order(), make_order(), make_order()
        Order.objects.filter(id=same_day.id).update(departure_date=departure)
        Order.objects.filter(id=next_day.id).update(departure_date=departure + timedelta(days=1))

        with pytest.raises(ValidationFailed) as exc_info:
            shipment_service.create_shipment(
                CreateShipmentDTO(
                    shipper_id=customer.id,
                    receiver_id=customer.id,
                    departure_date=departure,
                    order_ids=[same_day.id, next_day.id, undated.id],
                ),
                admin_actor,
            )

        assert exc_info.value.attr == "order_ids"
        assert str(next_day.id) in exc_info.value.detail
        assert str(undated.id) in exc_info.value.detail
        assert str(same_day.id) not in exc_info.value.detail
        assert not Shipment.objects.exists()

    def test_unknown_references(self, shipment_service, customer, admin_actor):
        with pytest.raises(CustomerNotFound):
            shipment_service.create_shipment(
                CreateShipmentDTO(shipper_id=customer.id, receiver_id=uuid4()), admin_actor
            )
        with pytest.raises(OrderNotFound):
            shipment_service.create_shipment(
                CreateShipmentDTO(
                    shipper_id=customer.id, receiver_id=customer.id, order_ids=[uuid4()]
                ),
                admin_actor,
            )

    def test_create_from_orders(self, shipment_service, make_order, departure, admin_actor):
        orders = [make_order(), make_order()]
        Order.objects.update(departure_date=departure)

        shipment, created = shipment_service.create_from_orders(
            CreateFromOrdersDTO(order_ids=[order.id for order in orders]), admin_actor
        )
        again, created_again = shipment_service.create_from_orders(
            CreateFromOrdersDTO(order_ids=[orders[0].id]), admin_actor
        )

        assert created and not created_again
        assert again.id == shipment.id
        assert shipment.orders.count() == 2


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------


class TestUpdateAndDelete:
    def test_partial_update_keeps_absent_fields(self, shipment_service, batch, admin_actor):
        shipment, _ = batch

        updated = shipment_service.update_shipment(
            shipment.id,
            UpdateShipmentDTO(
                invoice_number="INV-9",
                parcels=[ParcelDTO(description="Crate", weight=Decimal("12.00"))],
            ),
            admin_actor,
        )

        assert updated.invoice_number == "INV-9"
        assert updated.total_weight == Decimal("12.00")
        assert updated.shipper_id == shipment.shipper_id
        assert updated.current_status == ShipmentStatus.PROCESSING

    def test_update_with_status_runs_the_transition(self, shipment_service, batch, admin_actor):
        shipment, orders = batch

        updated = shipment_service.update_shipment(
            shipment.id,
            UpdateShipmentDTO(status="in_transit", location="Manila Airport"),
            admin_actor,
        )

        assert updated.current_status == ShipmentStatus.IN_TRANSIT
        assert _statuses(orders) == {OrderStatus.IN_TRANSIT_TO_DUBAI}

    def test_shipper_cannot_be_cleared(self, shipment_service, batch, admin_actor):
        shipment, _ = batch
        with pytest.raises(ValidationFailed):
            shipment_service.update_shipment(
                shipment.id, UpdateShipmentDTO(shipper_id=None), admin_actor
            )

    def test_delete_unlinks_orders(self, shipment_service, batch, admin_actor):
        shipment, orders = batch

        shipment_service.delete_shipment(shipment.id, admin_actor)

        assert not Shipment.objects.filter(id=shipment.id).exists()
        assert Order.objects.filter(id__in=[o.id for o in orders]).count() == 3
        assert not Order.objects.filter(shipment__isnull=False).exists()
        assert set(Order.objects.values_list("batch_number", flat=True)) == {""}

    def test_delete_unknown(self, shipment_service, admin_actor):
        with pytest.raises(ShipmentNotFound):
            shipment_service.delete_shipment(uuid4(), admin_actor)


# ---------------------------------------------------------------------------
# Status engine
# ---------------------------------------------------------------------------


class TestShipmentStatus:
    def test_cascades_to_every_member(self, shipment_service, batch, admin_actor):
        shipment, orders = batch

        updated = shipment_service.update_status(
            shipment.id, "In Transit", admin_actor, location="Manila Airport"
        )

        assert updated.current_status == ShipmentStatus.IN_TRANSIT
        assert _statuses(orders) == {OrderStatus.IN_TRANSIT_TO_DUBAI}
        cascade_rows = OrderStatusHistory.objects.filter(source=HistorySource.CASCADE)
        assert cascade_rows.count() == 3
        assert {row.notes for row in cascade_rows} == {
            f"Shipment {shipment.batch_number} is In Transit"
        }
        checkpoint = updated.history.last()
        assert checkpoint.status == ShipmentStatus.IN_TRANSIT
        assert checkpoint.location == "Manila Airport"

    def test_cascade_skips_order_validation(self, shipment_service, batch, admin_actor):
        shipment, orders = batch

        shipment_service.update_status(shipment.id, ShipmentStatus.DELIVERED, admin_actor)

        assert _statuses(orders) == {OrderStatus.DELIVERED}

    def test_cascade_includes_legacy_order_link(self, shipment_service, make_order, customer, admin_actor):
        legacy = make_order()
        shipment = Shipment.objects.create(
            batch_number="BCH-2023-001",
            tracking_code="NGE20000001",
            shipper=customer,
            receiver=customer,
            order=legacy,
        )

        shipment_service.update_status(shipment.id, "in_transit", admin_actor)

        legacy.refresh_from_db()
        assert legacy.status == OrderStatus.IN_TRANSIT_TO_DUBAI

    def test_location_defaults(self, shipment_service, batch, admin_actor):
        shipment, _ = batch
        updated = shipment_service.update_status(shipment.id, "in_transit", admin_actor)
        assert updated.history.last().location == UNKNOWN_LOCATION

    def test_repeat_status_adds_a_checkpoint(self, shipment_service, batch, admin_actor):
        shipment, _ = batch
        shipment_service.update_status(shipment.id, "in_transit", admin_actor, location="Manila")
        updated = shipment_service.update_status(shipment.id, "in_transit", admin_actor, location="Doha")

        assert [h.location for h in updated.history.all()][-2:] == ["Manila", "Doha"]

    def test_regression_is_rejected(self, shipment_service, batch, admin_actor):
        shipment, orders = batch
        shipment_service.update_status(shipment.id, "out_for_delivery", admin_actor)

        with pytest.raises(InvalidTransition):
            shipment_service.update_status(shipment.id, "processing", admin_actor)
        assert _statuses(orders) == {OrderStatus.IN_TRANSIT_TO_DUBAI}

    def test_delivered_is_terminal(self, shipment_service, batch, admin_actor):
        shipment, _ = batch
        shipment_service.update_status(shipment.id, "delivered", admin_actor)

        with pytest.raises(InvalidTransition):
            shipment_service.update_status(shipment.id, "on_hold", admin_actor)

    def test_hold_and_resume(self, shipment_service, batch, admin_actor):
        shipment, orders = batch
        shipment_service.update_status(shipment.id, "in_transit", admin_actor)

        shipment_service.update_status(shipment.id, "on hold", admin_actor, notes="Customs check")
        assert _statuses(orders) == {OrderStatus.SHIPMENT_RECEIVED}

        with pytest.raises(InvalidTransition):
            shipment_service.update_status(shipment.id, "processing", admin_actor)

        resumed = shipment_service.update_status(shipment.id, "in_transit", admin_actor)
        assert resumed.current_status == ShipmentStatus.IN_TRANSIT
        assert _statuses(orders) == {OrderStatus.IN_TRANSIT_TO_DUBAI}

    def test_unknown_status(self, shipment_service, batch, admin_actor):
        shipment, _ = batch
        with pytest.raises(InvalidStatus):
            shipment_service.update_status(shipment.id, "lost_at_sea", admin_actor)

    def test_unknown_shipment(self, shipment_service, admin_actor):
        with pytest.raises(ShipmentNotFound):
            shipment_service.update_status(uuid4(), "in_transit", admin_actor)

    def test_driver_limited_to_last_mile(self, shipment_service, batch, driver_actor):
        shipment, _ = batch

        with pytest.raises(PermissionDenied):
            shipment_service.update_status(shipment.id, "in_transit", driver_actor)

        updated = shipment_service.update_status(
            shipment.id, "out_for_delivery", driver_actor, location="Dubai Marina"
        )
        assert updated.current_status == ShipmentStatus.OUT_FOR_DELIVERY
        assert updated.history.last().actor_role == "Driver"

    def test_status_changed_event(
        self, shipment_service, batch, admin_actor, django_capture_on_commit_callbacks
    ):
        shipment, _ = batch
        with patch.object(status_changed_handler, "handle") as handle:
            with django_capture_on_commit_callbacks(execute=True):
                shipment_service.update_status(shipment.id, "in_transit", admin_actor)

        event = handle.call_args.args[0]
        assert event.new_status == ShipmentStatus.IN_TRANSIT
        assert event.cascaded_orders == 3


class TestIntegrityAndAudit:
    def _service(self, audit_sink):
        return ShipmentService(
            shipment_repository=ShipmentDjangoRepository(),
            order_repository=OrderDjangoRepository(),
            customer_repository=CustomerDjangoRepository(),
            branch_repository=BranchDjangoRepository(),
            identifier_generator=build_identifier_generator(),
            batch_resolver=build_batch_resolver(),
            audit_sink=audit_sink,
        )

    def test_read_back_mismatch_aborts_before_cascade(self, shipment_service, batch, admin_actor):
        shipment, orders = batch

        with patch.object(ShipmentDjangoRepository, "get_status", return_value="Processing"):
            with pytest.raises(PersistenceIntegrityError):
                shipment_service.update_status(shipment.id, "in_transit", admin_actor)

        shipment.refresh_from_db()
        assert shipment.current_status == ShipmentStatus.PROCESSING
        assert _statuses(orders) == {OrderStatus.SHIPMENT_RECEIVED}

    def test_failing_audit_sink_is_not_fatal(self, batch, admin_actor):
        shipment, orders = batch
        sink = MagicMock()
        sink.record.side_effect = ConnectionError("audit store down")

        updated = self._service(sink).update_status(shipment.id, "in_transit", admin_actor)

        assert updated.current_status == ShipmentStatus.IN_TRANSIT
        assert _statuses(orders) == {OrderStatus.IN_TRANSIT_TO_DUBAI}
        assert sink.record.call_args.args[0].entity_type == "shipment"


# ---------------------------------------------------------------------------
# Batch and bulk updates
# ---------------------------------------------------------------------------


class TestBatchAndBulk:
    def test_batch_status(self, shipment_service, batch, admin_actor):
        shipment, orders = batch

        count = shipment_service.update_batch_status(
            shipment.batch_number, "in_transit", admin_actor, location="Manila"
        )

        assert count == 1
        assert _statuses(orders) == {OrderStatus.IN_TRANSIT_TO_DUBAI}

    def test_unknown_batch(self, shipment_service, admin_actor):
        with pytest.raises(ShipmentNotFound):
            shipment_service.update_batch_status("BCH-1999-001", "in_transit", admin_actor)

    def test_bulk_status(self, shipment_service, make_order, departure, admin_actor):
        first = make_order(departure_date=departure)
        second = make_order(departure_date=departure + timedelta(days=1))

        count = shipment_service.update_bulk_status(
            [first.shipment_id, second.shipment_id, first.shipment_id],
            "in_transit",
            admin_actor,
            location="Manila",
        )

        assert count == 2
        assert set(Shipment.objects.values_list("current_status", flat=True)) == {
            ShipmentStatus.IN_TRANSIT
        }

    def test_bulk_checks_every_id_before_writing(self, shipment_service, batch, admin_actor):
        shipment, _ = batch

        with pytest.raises(ShipmentNotFound):
            shipment_service.update_bulk_status([shipment.id, uuid4()], "in_transit", admin_actor)

        shipment.refresh_from_db()
        assert shipment.current_status == ShipmentStatus.PROCESSING

    def test_bulk_empty(self, shipment_service, admin_actor):
        with pytest.raises(ValidationFailed):
            shipment_service.update_bulk_status([], "in_transit", admin_actor)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_get_batch_is_case_insensitive(self, shipment_service, batch):
        shipment, _ = batch
        assert shipment_service.get_batch(shipment.batch_number.lower()).id == shipment.id

    def test_track_by_tracking_code(self, shipment_service, batch):
        shipment, _ = batch
        assert shipment_service.track(shipment.tracking_code.lower()).id == shipment.id

    def test_track_rejects_order_numbers(self, shipment_service, batch):
        _, orders = batch
        with pytest.raises(ShipmentNotFound):
            shipment_service.track(orders[0].order_number)
