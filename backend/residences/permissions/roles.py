# Overview: Fixed role tags and the capability map each one grants.
#
# Roles are not inherited from one another: each tag maps directly to the
# set of permission codes it may exercise. Authorization asks "does the
# actor actively hold a role whose capabilities include X?".

from .helpers import get_all_permission_codes


SUPER_ADMIN = "Super Admin"
ADMIN = "Admin"
PRESIDENT = "President"
SECRETARY = "Secretary"
TREASURER = "Treasurer"
OWNER = "Owner"
TENANT = "Tenant"
RESIDENT = "Resident"

# (role_name, permission_level, description)
ROLE_DEFINITIONS = [
    (SUPER_ADMIN, 100, "Full system access"),
    (ADMIN, 90, "Building administration"),
    (PRESIDENT, 80, "Committee president"),
    (SECRETARY, 80, "Committee secretary"),
    (TREASURER, 80, "Committee treasurer"),
    (OWNER, 50, "Apartment owner"),
    (TENANT, 30, "Apartment tenant"),
    (RESIDENT, 10, "Registered resident"),
]

ROLE_LEVELS = {name: level for name, level, _ in ROLE_DEFINITIONS}

COMMITTEE_ROLES = (PRESIDENT, SECRETARY, TREASURER)


_RESIDENT_BASE = [
    "VIEW_APARTMENTS",
    "VIEW_RELATIONSHIPS",
    "PROPOSE_RELATIONSHIPS",
]

_COMMITTEE_BASE = _RESIDENT_BASE + [
    "MANAGE_RELATIONSHIPS",
    "APPROVE_RELATIONSHIPS",
    "DEACTIVATE_RELATIONSHIPS",
    "MODIFY_OWNERSHIP",
    "MODIFY_TENANCY",
    "RECORD_COMMITTEE_ACTIONS",
    "VIEW_COMMITTEE_DASHBOARD",
    "VIEW_USERS",
    "SEND_NOTIFICATIONS",
    "VIEW_AUDIT_LOG",
]


# Committee records are written by committee members only, never by admins.
_COMMITTEE_ONLY = {"RECORD_COMMITTEE_ACTIONS"}

_ADMIN_ALL = [code for code in get_all_permission_codes() if code not in _COMMITTEE_ONLY]


DEFAULT_ROLE_PERMISSIONS = {
    SUPER_ADMIN: list(_ADMIN_ALL),
    ADMIN: list(_ADMIN_ALL),
    PRESIDENT: _COMMITTEE_BASE + ["OVERRIDE_DECISIONS"],
    SECRETARY: list(_COMMITTEE_BASE),
    TREASURER: list(_COMMITTEE_BASE),
    OWNER: _RESIDENT_BASE + ["REQUEST_TRANSFERS"],
    TENANT: list(_RESIDENT_BASE),
    RESIDENT: ["VIEW_APARTMENTS"],
}

# Capability map used by the ledger's authorization checks.
ROLE_CAPABILITIES = {
    role: frozenset(codes) for role, codes in DEFAULT_ROLE_PERMISSIONS.items()
}


def role_has_capability(role_name: str, permission_code: str) -> bool:
    return permission_code in ROLE_CAPABILITIES.get(role_name, frozenset())


def roles_with_capability(permission_code: str) -> list[str]:
    """Role names granting a capability, highest permission level first."""
    roles = [r for r, caps in ROLE_CAPABILITIES.items() if permission_code in caps]
    return sorted(roles, key=lambda r: ROLE_LEVELS[r], reverse=True)
