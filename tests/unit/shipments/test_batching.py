"""Unit tests for the batch resolver (one shipment per departure day).

Covers:
- Creating the first batch of a day and reusing it afterwards.
- Day boundaries in UTC.
- Merging duplicate batches left behind by concurrent requests.
- Losing the create race and joining the winner.
- Multi-order batching validation.
- Auto-batching of dated orders without a shipment.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.db import IntegrityError

from modules.accounts.actors import SYSTEM_ACTOR
from modules.core.exceptions import DuplicateEntry, ValidationFailed
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.exceptions import OrderNotFound
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.shipments.batching import BatchResolver, day_bounds, orders_by_day
from modules.shipments.constants import (
    ORIGIN_FACILITY_LOCATION,
    PROCESSING_CENTER_LOCATION,
    ShipmentStatus,
)
from modules.shipments.handlers import batch_created_handler, batches_merged_handler
from modules.shipments.identifiers import IdentifierGenerator
from modules.shipments.models import Shipment
from modules.shipments.repositories.django_repository import ShipmentDjangoRepository

pytestmark = pytest.mark.unit

UTC = timezone.utc


def _shipment(customer, batch_number, tracking_code, departure_date):
    return Shipment.objects.create(
        batch_number=batch_number,
        tracking_code=tracking_code,
        departure_date=departure_date,
        shipper=customer,
        receiver=customer,
    )


# ---------------------------------------------------------------------------
# Day bounds
# ---------------------------------------------------------------------------


class TestDayBounds:
    def test_aware_datetime(self):
        start, end = day_bounds(datetime(2024, 5, 10, 23, 59, tzinfo=UTC))
        assert start == datetime(2024, 5, 10, tzinfo=UTC)
        assert end == datetime(2024, 5, 11, tzinfo=UTC)

    def test_naive_datetime_is_utc(self):
        start, _ = day_bounds(datetime(2024, 5, 10, 0, 0))
        assert start == datetime(2024, 5, 10, tzinfo=UTC)

    def test_other_offset_is_converted_to_utc_day(self):
        dubai = timezone(timedelta(hours=4))
        start, _ = day_bounds(datetime(2024, 5, 10, 2, 0, tzinfo=dubai))
        assert start == datetime(2024, 5, 9, tzinfo=UTC)

    def test_plain_date(self):
        assert day_bounds(date(2024, 5, 10))[0] == datetime(2024, 5, 10, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Single order
# ---------------------------------------------------------------------------


class TestAttachOrder:
    def test_first_order_of_the_day_creates_a_batch(self, make_order, departure, customer):
        order = make_order(departure_date=departure)

        shipment = Shipment.objects.get()
        assert shipment.batch_number == "BCH-2024-001"
        assert shipment.departure_date == datetime(2024, 5, 10, tzinfo=UTC)
        assert shipment.current_status == ShipmentStatus.PROCESSING
        assert shipment.shipper_id == customer.id
        assert shipment.receiver_id == customer.id
        assert shipment.shipping_cost == Decimal("50.00")
        assert list(shipment.orders.all()) == [order]

        assert order.batch_number == "BCH-2024-001"
        assert order.shipment_id == shipment.id

        history = list(shipment.history.all())
        assert len(history) == 1
        assert history[0].location == PROCESSING_CENTER_LOCATION
        assert history[0].notes == "Shipment batch created for 2024-05-10"

    def test_same_day_reuses_the_batch(self, make_order, departure):
        first = make_order(departure_date=departure)
        second = make_order(departure_date=departure.replace(hour=22, minute=15))

        assert Shipment.objects.count() == 1
        assert second.batch_number == first.batch_number
        assert set(Shipment.objects.get().orders.all()) == {first, second}

    def test_next_day_gets_the_next_sequence(self, make_order, departure):
        make_order(departure_date=departure)
        later = make_order(departure_date=departure + timedelta(days=1))

        assert later.batch_number == "BCH-2024-002"
        assert Shipment.objects.count() == 2

    def test_branch_seeds_origin(self, order_service, customer, branch, departure):
        order_service.create_order(
            CreateOrderDTO(
                customer_id=customer.id,
                branch_id=branch.id,
                items=[CreateOrderItemDTO(description="Documents", quantity=1)],
                departure_date=departure,
            ),
            SYSTEM_ACTOR,
        )

        shipment = Shipment.objects.get()
        assert shipment.origin_branch_id == branch.id
        assert shipment.history.get().location == ORIGIN_FACILITY_LOCATION

    def test_moving_an_order_to_another_day(self, batch_resolver, make_order, departure):
        order = make_order(departure_date=departure)
        old_shipment = order.shipment

        new_shipment, created = batch_resolver.attach_order_to_date_batch(
            order, departure + timedelta(days=3)
        )

        assert created
        assert not old_shipment.orders.filter(id=order.id).exists()
        assert new_shipment.orders.filter(id=order.id).exists()
        order.refresh_from_db()
        assert order.shipment_id == new_shipment.id
        assert order.batch_number == new_shipment.batch_number

    def test_attaching_twice_keeps_one_membership(self, batch_resolver, make_order, departure):
        order = make_order(departure_date=departure)

        shipment, created = batch_resolver.attach_order_to_date_batch(order, departure)

        assert not created
        assert shipment.orders.count() == 1

    def test_batch_created_event_published_on_commit(
        self, make_order, departure, django_capture_on_commit_callbacks
    ):
        with patch.object(batch_created_handler, "handle") as handle:
            with django_capture_on_commit_callbacks(execute=True):
                make_order(departure_date=departure)

        handle.assert_called_once()
        event = handle.call_args.args[0]
        assert event.batch_number == "BCH-2024-001"
        assert event.departure_day == "2024-05-10"


# ---------------------------------------------------------------------------
# Duplicates and races
# ---------------------------------------------------------------------------


class TestDuplicateBatches:
    def test_duplicates_are_merged_into_the_oldest(
        self, batch_resolver, make_order, customer, departure, django_capture_on_commit_callbacks
    ):
        day = datetime(2024, 5, 10, tzinfo=UTC)
        canonical = _shipment(customer, "BCH-2024-001", "NGE10000001", day)
        duplicate = _shipment(customer, "BCH-2024-002", "NGE10000002", day)
        stray = make_order()
        duplicate.orders.add(stray)
        Order.objects.filter(id=stray.id).update(shipment=duplicate, batch_number="BCH-2024-002")

        order = make_order()
        with patch.object(batches_merged_handler, "handle") as handle:
            with django_capture_on_commit_callbacks(execute=True):
                shipment, created = batch_resolver.attach_order_to_date_batch(order, departure)

        assert not created
        assert shipment.id == canonical.id
        assert not Shipment.objects.filter(id=duplicate.id).exists()
        assert set(canonical.orders.all()) == {stray, order}
        stray.refresh_from_db()
        assert stray.shipment_id == canonical.id
        assert stray.batch_number == "BCH-2024-001"

        event = handle.call_args.args[0]
        assert event.merged_batch_numbers == "BCH-2024-002"
        assert event.reassigned_orders == 1

    def test_legacy_single_order_link_survives_merge(
        self, batch_resolver, make_order, customer, departure
    ):
        day = datetime(2024, 5, 10, tzinfo=UTC)
        canonical = _shipment(customer, "BCH-2024-001", "NGE10000001", day)
        legacy_order = make_order()
        duplicate = _shipment(customer, "BCH-2024-002", "NGE10000002", day)
        Shipment.objects.filter(id=duplicate.id).update(order=legacy_order)

        batch_resolver.attach_order_to_date_batch(make_order(), departure)

        assert canonical.orders.filter(id=legacy_order.id).exists()

    def test_lost_create_race_joins_the_winner(self, make_order, customer, departure):
        shipment_repo = ShipmentDjangoRepository()
        generator = IdentifierGenerator(OrderDjangoRepository(), shipment_repo)
        resolver = BatchResolver(OrderDjangoRepository(), shipment_repo, generator)
        real_find = shipment_repo.find_for_day
        calls = []

        def find_for_day(start, end):
            calls.append(start)
            if len(calls) == 1:
                # Another request commits its batch between our read and our insert.
                _shipment(customer, "BCH-2024-001", "NGE10000001", start)
                return []
            return real_find(start, end)

        order = make_order()
        with patch.object(shipment_repo, "find_for_day", side_effect=find_for_day), patch.object(
            generator, "next_batch_number", return_value="BCH-2024-001"
        ):
            shipment, created = resolver.attach_order_to_date_batch(order, departure)

        assert not created
        assert len(calls) == 2
        assert shipment.batch_number == "BCH-2024-001"
        assert Shipment.objects.count() == 1
        assert shipment.orders.filter(id=order.id).exists()

    def test_gives_up_after_bounded_retries(self, make_order, departure, settings):
        settings.BATCH_CREATE_MAX_RETRIES = 2
        shipment_repo = ShipmentDjangoRepository()
        resolver = BatchResolver(
            OrderDjangoRepository(),
            shipment_repo,
            IdentifierGenerator(OrderDjangoRepository(), shipment_repo),
        )
        order = make_order()

        with patch.object(shipment_repo, "create", side_effect=IntegrityError("unique")) as create:
            with pytest.raises(DuplicateEntry):
                resolver.attach_order_to_date_batch(order, departure)

        assert create.call_count == 2
        order.refresh_from_db()
        assert order.shipment_id is None


# ---------------------------------------------------------------------------
# Several orders
# ---------------------------------------------------------------------------


class TestAttachOrders:
    def test_same_day_orders_share_one_batch(self, batch_resolver, make_order, departure):
        orders = [make_order() for _ in range(3)]
        Order.objects.update(departure_date=departure)

        shipment, created = batch_resolver.attach_orders_to_date_batch(
            [order.id for order in orders]
        )

        assert created
        assert shipment.orders.count() == 3
        assert set(
            Order.objects.values_list("batch_number", flat=True)
        ) == {shipment.batch_number}

    def test_duplicate_ids_are_collapsed(self, batch_resolver, make_order, departure):
        order = make_order(departure_date=departure)

        shipment, _ = batch_resolver.attach_orders_to_date_batch(
            [order.id, order.id], departure_date=departure
        )

        assert shipment.orders.count() == 1

    def test_mismatched_days_are_rejected(self, batch_resolver, make_order, departure):
        first = make_order()
        second = make_order()
        Order.objects.filter(id=first.id).update(departure_date=departure)
        Order.objects.filter(id=second.id).update(departure_date=departure + timedelta(days=1))

        with pytest.raises(ValidationFailed) as exc_info:
            batch_resolver.attach_orders_to_date_batch([first.id, second.id])

        assert str(second.id) in exc_info.value.detail
        assert Shipment.objects.count() == 0

    def test_undated_orders_need_a_date(self, batch_resolver, make_order):
        order = make_order()
        with pytest.raises(ValidationFailed):
            batch_resolver.attach_orders_to_date_batch([order.id])

    def test_unknown_order(self, batch_resolver, make_order, departure):
        order = make_order()
        with pytest.raises(OrderNotFound):
            batch_resolver.attach_orders_to_date_batch(
                [order.id, uuid4()], departure_date=departure
            )

    def test_empty_list(self, batch_resolver):
        with pytest.raises(ValidationFailed):
            batch_resolver.attach_orders_to_date_batch([])


# ---------------------------------------------------------------------------
# Auto-batching
# ---------------------------------------------------------------------------


class TestAutoBatch:
    def test_groups_unbatched_orders_by_day(self, batch_resolver, make_order, departure):
        day_one = [make_order(), make_order()]
        day_two = make_order()
        undated = make_order()
        Order.objects.filter(id__in=[o.id for o in day_one]).update(departure_date=departure)
        Order.objects.filter(id=day_two.id).update(departure_date=departure + timedelta(days=1))

        results = batch_resolver.auto_batch_unassigned_orders()

        assert results == [("BCH-2024-001", 2), ("BCH-2024-002", 1)]
        undated.refresh_from_db()
        assert undated.shipment_id is None
        assert not Order.objects.filter(
            departure_date__isnull=False, shipment__isnull=True
        ).exists()

    def test_nothing_to_do(self, batch_resolver, make_order, departure):
        make_order(departure_date=departure)
        assert batch_resolver.auto_batch_unassigned_orders() == []

    def test_orders_by_day_skips_undated(self, make_order, departure):
        dated = make_order()
        Order.objects.filter(id=dated.id).update(departure_date=departure)
        grouped = orders_by_day([Order.objects.get(id=dated.id), make_order()])
        assert list(grouped) == [date(2024, 5, 10)]
