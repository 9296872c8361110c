"""DRF permission class backed by the actor's permission set."""

from __future__ import annotations

from typing import Any

from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from modules.accounts.actors import actor_from_user


class ActionPermission(BasePermission):
    """Require the permission mapped to the current viewset action.

    Views declare ``required_permissions = {"create": Permission.ORDER_CREATE,
    ...}``; actions missing from the map only require authentication.
    """

    message = "Insufficient permissions."

    def has_permission(self, request: Request, view: Any) -> bool:
        if not (request.user and request.user.is_authenticated):
            return False
        required = getattr(view, "required_permissions", {}).get(
            getattr(view, "action", None)
        )
        if required is None:
            return True
        return actor_from_user(request.user).has_permission(required)
