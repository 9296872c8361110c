"""Roles and permissions.

Permissions are a closed set: ``StaffProfile.permissions`` may only hold
``Permission`` values, checked when a role is assigned.  Checks at request
time are plain set membership.
"""

from django.db import models


class Role(models.TextChoices):
    DRIVER = "Driver", "Driver"
    HUB_RECEIVER = "Hub Receiver", "Hub Receiver"
    ADMIN = "Admin", "Admin"
    SUPER_ADMIN = "Super Admin", "Super Admin"


class Permission(models.TextChoices):
    ORDER_CREATE = "order:create", "Create orders"
    ORDER_MODIFY = "order:modify", "Modify orders"
    ORDER_DELETE = "order:delete", "Delete orders"
    ORDER_VIEW = "order:view", "View orders"
    SHIPMENT_STATUS_UPDATE = "shipment:status_update", "Update shipment status"
    SHIPMENT_BULK_UPDATE = "shipment:bulk_update", "Bulk update shipments"
    SHIPMENT_VIEW = "shipment:view", "View shipments"
    SHIPMENT_MANAGE = "shipment:manage", "Create, edit and delete shipments"
    USER_CREATE = "user:create", "Create users"
    USER_MODIFY = "user:modify", "Modify users"
    USER_DELETE = "user:delete", "Delete users"
    USER_VIEW = "user:view", "View users"


ROLE_DEFAULT_PERMISSIONS: dict[str, frozenset[str]] = {
    Role.DRIVER: frozenset(
        {
            Permission.ORDER_VIEW,
            Permission.ORDER_MODIFY,
            Permission.SHIPMENT_VIEW,
            Permission.SHIPMENT_STATUS_UPDATE,
        }
    ),
    Role.HUB_RECEIVER: frozenset(
        {
            Permission.ORDER_CREATE,
            Permission.ORDER_VIEW,
            Permission.SHIPMENT_VIEW,
        }
    ),
    Role.ADMIN: frozenset(
        {
            Permission.ORDER_CREATE,
            Permission.ORDER_MODIFY,
            Permission.ORDER_VIEW,
            Permission.SHIPMENT_STATUS_UPDATE,
            Permission.SHIPMENT_BULK_UPDATE,
            Permission.SHIPMENT_VIEW,
            Permission.SHIPMENT_MANAGE,
            Permission.USER_VIEW,
        }
    ),
    Role.SUPER_ADMIN: frozenset(Permission.values),
}

# Role names used by earlier releases of the back office.
LEGACY_ROLE_NAMES: dict[str, str] = {
    "staff": Role.HUB_RECEIVER,
    "staffmember": Role.HUB_RECEIVER,
    "manager": Role.ADMIN,
    "managerrole": Role.ADMIN,
}
