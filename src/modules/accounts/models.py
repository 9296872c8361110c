"""Staff profile: the role and permissions attached to a Django user."""

from __future__ import annotations

from django.conf import settings
from django.db import models

from modules.accounts.constants import Role
from modules.core.models import BaseModel


class StaffProfile(BaseModel):
    """Role assignment for a back-office user.

    ``permissions`` is a JSON list of ``Permission`` values; it is written only
    through ``RoleService.assign_role`` which rejects values outside the set.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="staff_profile",
    )
    role = models.CharField(max_length=20, choices=Role.choices)
    permissions = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "staff_profiles"

    def __str__(self) -> str:
        return f"{self.user} ({self.role})"
