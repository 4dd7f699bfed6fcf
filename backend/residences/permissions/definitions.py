# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- RELATIONSHIPS --

RELATIONSHIP_PERMISSIONS = [
    (
        "VIEW_RELATIONSHIPS",
        "View Relationships",
        "View ownership, tenancy and transfer records",
        PermissionCategory.RELATIONSHIPS,
    ),
    (
        "PROPOSE_RELATIONSHIPS",
        "Propose Relationships",
        "Propose ownership or tenancy for yourself",
        PermissionCategory.RELATIONSHIPS,
    ),
    (
        "MANAGE_RELATIONSHIPS",
        "Manage Relationships",
        "Propose relationships and transfers on behalf of other users",
        PermissionCategory.RELATIONSHIPS,
    ),
    (
        "APPROVE_RELATIONSHIPS",
        "Approve Relationships",
        "Approve or reject ownership, tenancy and transfer requests",
        PermissionCategory.RELATIONSHIPS,
    ),
    (
        "DEACTIVATE_RELATIONSHIPS",
        "Deactivate Relationships",
        "End active ownership or tenancy relationships",
        PermissionCategory.RELATIONSHIPS,
    ),
    (
        "MODIFY_OWNERSHIP",
        "Modify Ownership",
        "Adjust the percentage or planned end date of an active ownership",
        PermissionCategory.RELATIONSHIPS,
    ),
    (
        "MODIFY_TENANCY",
        "Modify Tenancy",
        "Extend or adjust an active lease",
        PermissionCategory.RELATIONSHIPS,
    ),
    (
        "REQUEST_TRANSFERS",
        "Request Transfers",
        "Request a transfer of your own ownership share",
        PermissionCategory.RELATIONSHIPS,
    ),
]


# -- COMMITTEE --

COMMITTEE_PERMISSIONS = [
    (
        "RECORD_COMMITTEE_ACTIONS",
        "Record Committee Actions",
        "Append approval, rejection and modification records",
        PermissionCategory.COMMITTEE,
    ),
    (
        "OVERRIDE_DECISIONS",
        "Override Decisions",
        "Record an override of a prior committee decision",
        PermissionCategory.COMMITTEE,
    ),
    (
        "VIEW_COMMITTEE_DASHBOARD",
        "View Committee Dashboard",
        "View pending approvals, committee statistics and history",
        PermissionCategory.COMMITTEE,
    ),
]


# -- APARTMENTS --

APARTMENT_PERMISSIONS = [
    (
        "VIEW_APARTMENTS",
        "View Apartments",
        "View apartment inventory",
        PermissionCategory.APARTMENTS,
    ),
    (
        "MANAGE_APARTMENTS",
        "Manage Apartments",
        "Create, edit and deactivate apartments",
        PermissionCategory.APARTMENTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View resident accounts",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create and deactivate resident accounts",
        PermissionCategory.USERS,
    ),
    (
        "ASSIGN_ROLES",
        "Assign Roles",
        "Assign and deactivate role assignments",
        PermissionCategory.USERS,
    ),
]


# -- NOTIFICATIONS --

NOTIFICATION_PERMISSIONS = [
    (
        "SEND_NOTIFICATIONS",
        "Send Notifications",
        "Send notifications to residents",
        PermissionCategory.NOTIFICATIONS,
    ),
]


# -- AUDIT --

AUDIT_PERMISSIONS = [
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "View audit trail and security events",
        PermissionCategory.AUDIT,
    ),
]


# Combined list of all permissions (preserves original ordering)
PERMISSION_DEFINITIONS = (
    RELATIONSHIP_PERMISSIONS
    + COMMITTEE_PERMISSIONS
    + APARTMENT_PERMISSIONS
    + USER_PERMISSIONS
    + NOTIFICATION_PERMISSIONS
    + AUDIT_PERMISSIONS
)
