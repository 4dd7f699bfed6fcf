# Overview: Permission system package.
# Re-exports the capability map and lookup helpers.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    RELATIONSHIP_PERMISSIONS,
    COMMITTEE_PERMISSIONS,
    APARTMENT_PERMISSIONS,
    USER_PERMISSIONS,
    NOTIFICATION_PERMISSIONS,
    AUDIT_PERMISSIONS,
)
from .roles import (
    SUPER_ADMIN,
    ADMIN,
    PRESIDENT,
    SECRETARY,
    TREASURER,
    OWNER,
    TENANT,
    RESIDENT,
    DEFAULT_ROLE_PERMISSIONS,
    ROLE_CAPABILITIES,
    ROLE_DEFINITIONS,
    ROLE_LEVELS,
    COMMITTEE_ROLES,
    role_has_capability,
    roles_with_capability,
)
from .helpers import (
    get_all_permission_codes,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "RELATIONSHIP_PERMISSIONS",
    "COMMITTEE_PERMISSIONS",
    "APARTMENT_PERMISSIONS",
    "USER_PERMISSIONS",
    "NOTIFICATION_PERMISSIONS",
    "AUDIT_PERMISSIONS",
    "SUPER_ADMIN",
    "ADMIN",
    "PRESIDENT",
    "SECRETARY",
    "TREASURER",
    "OWNER",
    "TENANT",
    "RESIDENT",
    "DEFAULT_ROLE_PERMISSIONS",
    "ROLE_CAPABILITIES",
    "ROLE_DEFINITIONS",
    "ROLE_LEVELS",
    "COMMITTEE_ROLES",
    "role_has_capability",
    "roles_with_capability",
    "get_all_permission_codes",
    "validate_permission_code",
]
