"""Order domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import NotFound


class OrderNotFound(NotFound):
    """The requested order does not exist."""
