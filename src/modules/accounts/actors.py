"""The authenticated actor handed to the service layer.

Services never look at ``request.user``; views resolve an ``Actor`` once and
pass it down, so services stay framework-agnostic and easy to unit test.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from modules.accounts.constants import ROLE_DEFAULT_PERMISSIONS, Role


@dataclass(frozen=True)
class Actor:
    id: Optional[str]
    role: Optional[str] = None
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_driver(self) -> bool:
        return self.role == Role.DRIVER

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    def has_permission(self, permission: str) -> bool:
        """Super Admin holds every permission; everyone else needs it listed."""
        return self.is_super_admin or permission in self.permissions


SYSTEM_ACTOR = Actor(
    id=None,
    role=Role.SUPER_ADMIN,
    permissions=ROLE_DEFAULT_PERMISSIONS[Role.SUPER_ADMIN],
)


def actor_from_user(user: Any) -> Actor:
    """Build an ``Actor`` from a Django user and its ``StaffProfile``.

    Django superusers without a profile act as Super Admin.  Other users
    without a profile get no role and no permissions.
    """
    user_id = str(user.pk) if getattr(user, "pk", None) is not None else None
    profile = getattr(user, "staff_profile", None) if user_id else None

    if profile is not None:
        return Actor(
            id=user_id,
            role=profile.role,
            permissions=frozenset(profile.permissions or ()),
        )
    if getattr(user, "is_superuser", False):
        return Actor(
            id=user_id,
            role=Role.SUPER_ADMIN,
            permissions=ROLE_DEFAULT_PERMISSIONS[Role.SUPER_ADMIN],
        )
    return Actor(id=user_id)
