"""Unit tests for order status normalization and the pipeline tables."""

from __future__ import annotations

import pytest

from modules.core.exceptions import InvalidStatus
from modules.orders.constants import (
    ORDER_STATUS_SEQUENCE,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
)
from modules.orders.status import (
    allowed_next,
    coerce_order_status,
    is_forward_transition,
    parse_order_status,
    parse_status_filter,
)

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestParseOrderStatus:
    @pytest.mark.parametrize(
        "raw",
        ["Out for Delivery", "out_for_delivery", "OUT-FOR-DELIVERY", "  out for delivery "],
    )
    def test_spellings_collapse_to_one_status(self, raw):
        assert parse_order_status(raw) == OrderStatus.OUT_FOR_DELIVERY

    def test_long_pipeline_name(self):
        assert (
            parse_order_status("in_transit_going_to_dubai_airport")
            == OrderStatus.IN_TRANSIT_TO_DUBAI
        )

    @pytest.mark.parametrize(
        "legacy, expected",
        [
            ("pending", OrderStatus.SHIPMENT_RECEIVED),
            ("processing", OrderStatus.SHIPMENT_PROCESSING),
            ("confirmed", OrderStatus.SHIPMENT_PROCESSING),
            ("in_transit", OrderStatus.IN_TRANSIT_TO_DUBAI),
            ("completed", OrderStatus.DELIVERED),
            ("canceled", OrderStatus.CANCELLED),
            ("CANCELLED", OrderStatus.CANCELLED),
        ],
    )
    def test_legacy_names(self, legacy, expected):
        assert parse_order_status(legacy) == expected

    @pytest.mark.parametrize("raw", ["", "shipped", None, 42])
    def test_unknown_values_raise(self, raw):
        with pytest.raises(InvalidStatus) as exc_info:
            parse_order_status(raw)
        assert exc_info.value.attr == "status"


class TestCoerceOrderStatus:
    def test_empty_stored_value_is_first_step(self):
        assert coerce_order_status("") == OrderStatus.SHIPMENT_RECEIVED
        assert coerce_order_status(None) == OrderStatus.SHIPMENT_RECEIVED

    def test_unknown_stored_value_is_first_step(self):
        assert coerce_order_status("Lost in space") == OrderStatus.SHIPMENT_RECEIVED

    def test_legacy_stored_value_is_mapped(self):
        assert coerce_order_status("confirmed") == OrderStatus.SHIPMENT_PROCESSING


class TestParseStatusFilter:
    def test_comma_separated_values(self):
        assert parse_status_filter("out_for_delivery, Delivered") == [
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        ]

    def test_invalid_entries_are_dropped(self):
        assert parse_status_filter("delivered,bogus") == [OrderStatus.DELIVERED]

    def test_duplicates_collapse(self):
        assert parse_status_filter("delivered,completed") == [OrderStatus.DELIVERED]

    def test_all_invalid_raises(self):
        with pytest.raises(InvalidStatus):
            parse_status_filter("bogus,nonsense")

    def test_blank_means_no_filter(self):
        assert parse_status_filter("") == []
        assert parse_status_filter(None) == []


# ---------------------------------------------------------------------------
# Pipeline tables
# ---------------------------------------------------------------------------


class TestPipeline:
    def test_sequence_has_eight_steps(self):
        assert len(ORDER_STATUS_SEQUENCE) == 8
        assert ORDER_STATUS_SEQUENCE[0] == OrderStatus.SHIPMENT_RECEIVED
        assert ORDER_STATUS_SEQUENCE[-1] == OrderStatus.DELIVERED

    def test_every_step_allows_its_successor(self):
        for current, following in zip(ORDER_STATUS_SEQUENCE, ORDER_STATUS_SEQUENCE[1:]):
            assert following in allowed_next(current)

    def test_cancel_only_from_intake_states(self):
        cancellable = {
            status for status, targets in VALID_TRANSITIONS.items()
            if OrderStatus.CANCELLED in targets
        }
        assert cancellable == {
            OrderStatus.SHIPMENT_RECEIVED,
            OrderStatus.SHIPMENT_PROCESSING,
        }

    def test_terminal_states(self):
        assert TERMINAL_STATES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
        assert allowed_next(OrderStatus.DELIVERED) == frozenset()

    def test_forward_and_backward(self):
        assert is_forward_transition(OrderStatus.SHIPMENT_RECEIVED, OrderStatus.DELIVERED)
        assert is_forward_transition(OrderStatus.DELIVERED, OrderStatus.DELIVERED)
        assert not is_forward_transition(OrderStatus.DELIVERED, OrderStatus.SHIPMENT_RECEIVED)

    def test_cancelled_is_outside_the_sequence(self):
        assert not is_forward_transition(OrderStatus.SHIPMENT_RECEIVED, OrderStatus.CANCELLED)
