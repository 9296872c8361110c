"""Free-form text normalization shared by the status vocabularies."""

from __future__ import annotations

import re
from typing import Any

_SEPARATORS = re.compile(r"[_\s-]+")


def normalize_key(raw: Any) -> str:
    """Return the lookup key for a free-form status string.

    Lower-cases and strips spaces, underscores and hyphens, so
    ``"Out for Delivery"``, ``"out_for_delivery"`` and ``"OUT-FOR-DELIVERY"``
    all collapse to ``"outfordelivery"``.  Non-strings yield ``""``.
    """
    if not isinstance(raw, str):
        return ""
    return _SEPARATORS.sub("", raw.strip().lower())
