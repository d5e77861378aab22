# src/shared/roles.py

from enum import Enum
from typing import Optional


class Role(str, Enum):
    """
    Roles recognised by the webhook admin surface.

    Hierarchy (highest to lowest):
    - SUPER_ADMIN: Platform-level admin, can manage every tenant
    - TENANT_ADMIN: Can manage their own tenant's webhooks
    - STAFF: Read-only access to their tenant
    """
    SUPER_ADMIN = "SUPER_ADMIN"
    TENANT_ADMIN = "TENANT_ADMIN"
    STAFF = "STAFF"


_ROLE_HIERARCHY = {
    Role.SUPER_ADMIN: 100,
    Role.TENANT_ADMIN: 60,
    Role.STAFF: 10,
}


def parse_role(value: Optional[str]) -> Optional[Role]:
    if not value:
        return None
    try:
        return Role(str(value).upper())
    except ValueError:
        return None


def has_min_role(actual_role: Optional[Role], required_role: Role) -> bool:
    """Check if actual_role has at least the privileges of required_role."""
    if actual_role is None:
        return False
    return _ROLE_HIERARCHY[actual_role] >= _ROLE_HIERARCHY[required_role]
