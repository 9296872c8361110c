"""Role assignment use case."""

from __future__ import annotations

from typing import Any, Iterable, Optional

import structlog
from django.db import transaction

from modules.accounts.constants import (
    LEGACY_ROLE_NAMES,
    ROLE_DEFAULT_PERMISSIONS,
    Permission,
    Role,
)
from modules.accounts.exceptions import InvalidPermission, InvalidRole
from modules.accounts.models import StaffProfile
from modules.core.normalization import normalize_key

logger = structlog.get_logger(__name__)

_ROLE_KEYS = {normalize_key(role.value): role for role in Role}


def standardize_role_name(name: Any) -> Optional[Role]:
    """Map a current or legacy role name onto ``Role``; ``None`` if unknown."""
    key = normalize_key(name)
    if key in _ROLE_KEYS:
        return _ROLE_KEYS[key]
    legacy = LEGACY_ROLE_NAMES.get(key)
    return Role(legacy) if legacy else None


def validate_permissions(permissions: Iterable[Any]) -> list[str]:
    """Return *permissions* de-duplicated; raise if any is outside the set."""
    values = list(permissions)
    invalid = [p for p in values if p not in Permission.values]
    if invalid:
        raise InvalidPermission(
            f"Unknown permissions: {', '.join(map(str, invalid))}.",
            attr="permissions",
        )
    return sorted(set(values))


class RoleService:
    @transaction.atomic
    def assign_role(
        self,
        user: Any,
        role_name: str,
        permissions: Optional[Iterable[str]] = None,
    ) -> StaffProfile:
        """Give *user* a role; permissions default to the role's preset.

        Raises:
            InvalidRole: the role name is not supported.
            InvalidPermission: a permission is outside the closed set.
        """
        role = standardize_role_name(role_name)
        if role is None:
            raise InvalidRole(f"Unknown role: {role_name}.", attr="role")

        granted = (
            validate_permissions(permissions)
            if permissions is not None
            else sorted(ROLE_DEFAULT_PERMISSIONS[role])
        )

        profile, created = StaffProfile.objects.update_or_create(
            user=user,
            defaults={"role": role, "permissions": granted},
        )
        logger.info(
            "account.role_assigned",
            user_id=str(user.pk),
            role=role.value,
            permission_count=len(granted),
            created=created,
        )
        return profile
