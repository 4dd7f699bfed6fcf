# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    RELATIONSHIPS = "RELATIONSHIPS"
    COMMITTEE = "COMMITTEE"
    APARTMENTS = "APARTMENTS"
    USERS = "USERS"
    NOTIFICATIONS = "NOTIFICATIONS"
    AUDIT = "AUDIT"
