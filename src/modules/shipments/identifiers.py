"""Order numbers, shipment tracking codes and batch numbers.

Order numbers and tracking codes are random (so they do not reveal order
volume) and re-drawn on collision.  Batch numbers are sequential per
calendar year.  Nothing here is atomic across calls: two callers may draw
the same next batch number, and the batch resolver is what copes with it.
"""

from __future__ import annotations

import re
import secrets
import uuid
from typing import TYPE_CHECKING, Callable, Optional

import structlog
from django.conf import settings
from django.utils import timezone

from modules.core.exceptions import DuplicateEntry, MalformedIdentifier
from modules.orders.constants import ORDER_NUMBER_DIGITS
from modules.shipments.constants import BATCH_SEQUENCE_WIDTH, TRACKING_CODE_DIGITS

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.shipments.repositories.interfaces import IShipmentRepository

logger = structlog.get_logger(__name__)


def random_digits(width: int) -> str:
    """Uniform sample from ``[10**(width-1), 10**width - 1]``."""
    low = 10 ** (width - 1)
    return str(low + secrets.randbelow(9 * low))


class IdentifierGenerator:
    def __init__(
        self,
        order_repository: IOrderRepository,
        shipment_repository: IShipmentRepository,
    ) -> None:
        self._order_repo = order_repository
        self._shipment_repo = shipment_repository

    @property
    def order_prefix(self) -> str:
        return settings.ORDER_NUMBER_PREFIX

    @property
    def batch_prefix(self) -> str:
        return settings.BATCH_NUMBER_PREFIX

    def next_order_number(self) -> str:
        """``NGE`` + 9 digits, unused as order number *and* as tracking code."""
        return self._draw(ORDER_NUMBER_DIGITS, self._order_repo.number_exists, "order_number")

    def next_tracking_code(self) -> str:
        """``NGE`` + 8 digits, unique among shipment tracking codes."""
        return self._draw(
            TRACKING_CODE_DIGITS, self._shipment_repo.tracking_code_exists, "tracking_code"
        )

    def next_batch_number(self, year: Optional[int] = None) -> str:
        """``BCH-<year>-<seq>``: one past the year's highest sequence, 3 digits minimum."""
        year = year or timezone.now().year
        prefix = f"{self.batch_prefix}-{year}-"
        pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
        highest = 0
        for batch_number in self._shipment_repo.batch_numbers_starting_with(prefix):
            match = pattern.match(batch_number)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{prefix}{highest + 1:0{BATCH_SEQUENCE_WIDTH}d}"

    def _draw(self, width: int, exists: Callable[[str], bool], kind: str) -> str:
        attempts = settings.IDENTIFIER_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            candidate = f"{self.order_prefix}{random_digits(width)}"
            if not exists(candidate):
                if attempt > 1:
                    logger.info("identifier.collision_resolved", kind=kind, attempts=attempt)
                return candidate
        logger.error("identifier.space_exhausted", kind=kind, attempts=attempts)
        raise DuplicateEntry(f"Could not allocate a unique {kind} after {attempts} attempts.")


class IdentifierKind:
    ID = "id"
    ORDER_NUMBER = "order_number"
    TRACKING_CODE = "tracking_code"
    BATCH_NUMBER = "batch_number"


def classify_identifier(value: str) -> tuple[str, str]:
    """Return ``(kind, cleaned value)`` for a public tracking look-up key.

    Raises:
        MalformedIdentifier: *value* has the shape of no known identifier.
    """
    cleaned = (value or "").strip()
    try:
        return IdentifierKind.ID, str(uuid.UUID(cleaned))
    except ValueError:
        pass

    upper = cleaned.upper()
    order_prefix = re.escape(settings.ORDER_NUMBER_PREFIX)
    if re.fullmatch(rf"{order_prefix}\d{{{ORDER_NUMBER_DIGITS}}}", upper):
        return IdentifierKind.ORDER_NUMBER, upper
    if re.fullmatch(rf"{order_prefix}\d{{{TRACKING_CODE_DIGITS}}}", upper):
        return IdentifierKind.TRACKING_CODE, upper
    if re.fullmatch(rf"{re.escape(settings.BATCH_NUMBER_PREFIX)}-\d{{4}}-\d+", upper):
        return IdentifierKind.BATCH_NUMBER, upper
    raise MalformedIdentifier(f"Not a valid tracking identifier: {cleaned!r}.", attr="identifier")
