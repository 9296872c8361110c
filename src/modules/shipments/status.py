"""Shipment status normalization and transition rules."""

from __future__ import annotations

from typing import Any, Optional

from modules.core.exceptions import InvalidStatus, InvalidTransition
from modules.core.normalization import normalize_key
from modules.shipments.constants import (
    INITIAL_SHIPMENT_STATUS,
    SHIPMENT_STATUS_SEQUENCE,
    SHIPMENT_TERMINAL_STATES,
    ShipmentStatus,
)

SHIPMENT_STATUS_KEYS: dict[str, ShipmentStatus] = {
    **{normalize_key(status.value): status for status in ShipmentStatus},
    "pending": ShipmentStatus.PROCESSING,
    "confirmed": ShipmentStatus.PROCESSING,
    "hold": ShipmentStatus.ON_HOLD,
    "completed": ShipmentStatus.DELIVERED,
}


def to_shipment_status(key: str) -> Optional[ShipmentStatus]:
    return SHIPMENT_STATUS_KEYS.get(key)


def parse_shipment_status(raw: Any) -> ShipmentStatus:
    """Normalize request input or raise ``InvalidStatus``."""
    status = to_shipment_status(normalize_key(raw))
    if status is None:
        raise InvalidStatus(f"Invalid shipment status: {raw!r}.", attr="status")
    return status


def coerce_shipment_status(stored: Any) -> ShipmentStatus:
    """Canonical form of a *stored* value; anything unrecognised reads as Processing.

    Only for data already in the database (older releases stored free text
    such as ``"Pending"`` or ``"Cancelled"``).  Request input goes through
    ``parse_shipment_status`` instead.
    """
    return to_shipment_status(normalize_key(stored)) or INITIAL_SHIPMENT_STATUS


def sequence_index(status: str) -> Optional[int]:
    try:
        return SHIPMENT_STATUS_SEQUENCE.index(status)
    except ValueError:
        return None


def is_forward_transition(from_status: str, to_status: str) -> bool:
    from_index = sequence_index(from_status)
    to_index = sequence_index(to_status)
    if from_index is None or to_index is None:
        return False
    return to_index >= from_index


def allowed_next(status: str, resume_from: Optional[str] = None) -> frozenset[str]:
    """Statuses a shipment in *status* may move to.

    Forward steps may skip ahead and re-posting the current status is
    allowed (it records a new location).  From ``On Hold`` the shipment
    resumes at or after *resume_from*, its last active status.
    """
    if status in SHIPMENT_TERMINAL_STATES:
        return frozenset()
    base = (resume_from or INITIAL_SHIPMENT_STATUS) if status == ShipmentStatus.ON_HOLD else status
    index = sequence_index(base) or 0
    return frozenset(SHIPMENT_STATUS_SEQUENCE[index:]) | {ShipmentStatus.ON_HOLD}


def check_transition(current: str, target: str, resume_from: Optional[str] = None) -> None:
    """Raise ``InvalidTransition`` unless *current* → *target* is allowed."""
    if current in SHIPMENT_TERMINAL_STATES:
        raise InvalidTransition(f"Shipment is already {current}.", attr="status")
    effective = (resume_from or INITIAL_SHIPMENT_STATUS) if current == ShipmentStatus.ON_HOLD else current
    if target != ShipmentStatus.ON_HOLD and not is_forward_transition(effective, target):
        raise InvalidTransition(
            f"Cannot move a shipment back from {effective} to {target}.", attr="status"
        )
    if target not in allowed_next(current, resume_from):
        raise InvalidTransition(f"Cannot transition from {current} to {target}.", attr="status")
