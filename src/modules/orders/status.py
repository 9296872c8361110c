"""Order status normalization and transition rules.

Requests may spell a status any way (``"out_for_delivery"``,
``"Out for Delivery"``, ``"OUT-FOR-DELIVERY"``) and may still use the
generic lifecycle of earlier releases (``pending``, ``confirmed``,
``completed``…).  Everything is folded onto ``OrderStatus`` here; nothing
past this module sees a raw string.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from modules.core.exceptions import InvalidStatus
from modules.core.normalization import normalize_key
from modules.orders.constants import (
    INITIAL_ORDER_STATUS,
    ORDER_STATUS_SEQUENCE,
    VALID_TRANSITIONS,
    OrderStatus,
)

logger = structlog.get_logger(__name__)

ORDER_STATUS_KEYS: dict[str, OrderStatus] = {
    **{normalize_key(status.value): status for status in OrderStatus},
    # Generic lifecycle used before the courier pipeline
    "pending": OrderStatus.SHIPMENT_RECEIVED,
    "processing": OrderStatus.SHIPMENT_PROCESSING,
    "confirmed": OrderStatus.SHIPMENT_PROCESSING,
    "intransit": OrderStatus.IN_TRANSIT_TO_DUBAI,
    "completed": OrderStatus.DELIVERED,
    "canceled": OrderStatus.CANCELLED,
}


def to_order_status(key: str) -> Optional[OrderStatus]:
    """Look up a normalized key; ``None`` means no match."""
    return ORDER_STATUS_KEYS.get(key)


def parse_order_status(raw: Any) -> OrderStatus:
    """Normalize request input or raise ``InvalidStatus``."""
    status = to_order_status(normalize_key(raw))
    if status is None:
        raise InvalidStatus(f"Invalid order status: {raw!r}.", attr="status")
    return status


def coerce_order_status(stored: Any) -> OrderStatus:
    """Canonical form of a persisted status (empty means the first step)."""
    if not stored:
        return INITIAL_ORDER_STATUS
    status = to_order_status(normalize_key(stored))
    if status is None:
        logger.warning("order.unknown_stored_status", stored_status=str(stored))
        return INITIAL_ORDER_STATUS
    return status


def sequence_index(status: str) -> Optional[int]:
    try:
        return ORDER_STATUS_SEQUENCE.index(status)
    except ValueError:
        return None


def is_forward_transition(from_status: str, to_status: str) -> bool:
    """``True`` iff *to_status* is not earlier than *from_status* in the pipeline.

    Staying in place counts as forward.  Statuses outside the pipeline
    (``Cancelled``) are never forward of anything.
    """
    from_index = sequence_index(from_status)
    to_index = sequence_index(to_status)
    if from_index is None or to_index is None:
        return False
    return to_index >= from_index


def allowed_next(status: str) -> frozenset[str]:
    """Statuses reachable from *status* in one step (empty for terminal)."""
    return VALID_TRANSITIONS.get(status, frozenset())


def parse_status_filter(param: Any) -> list[OrderStatus]:
    """Parse a comma-separated filter such as ``"out_for_delivery,delivered"``.

    Unknown entries are dropped; if nothing valid remains the whole filter
    is rejected with ``InvalidStatus``.
    """
    if not isinstance(param, str) or not param.strip():
        return []
    parts = [part.strip() for part in param.split(",") if part.strip()]
    statuses: list[OrderStatus] = []
    for part in parts:
        status = to_order_status(normalize_key(part))
        if status is not None and status not in statuses:
            statuses.append(status)
    if parts and not statuses:
        raise InvalidStatus(f"Invalid status filter: {param!r}.", attr="status")
    return statuses
