"""Account domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import ValidationFailed


class InvalidRole(ValidationFailed):
    """The role name is not one of the supported roles."""


class InvalidPermission(ValidationFailed):
    """One or more permissions are outside the supported set."""
