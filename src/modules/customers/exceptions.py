"""Customer and branch domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import NotFound


class CustomerNotFound(NotFound):
    """The customer referenced by the request does not exist."""


class BranchNotFound(NotFound):
    """The branch referenced by the request does not exist."""
