# Overview: Service-layer operations for permission; role checks and security event logging.

"""
Permission Checking and Security Event Logging

WHY: Enforce role-based access control and keep a trail of denials.

Permissions are not stored per role in the database. A user's permission
set is the union of the capability sets (residences.permissions) of the
roles they actively hold. The ledger additionally asks the narrower
question "does this user actively hold role R, scoped to apartment A,
and does R carry capability C?" through authorize_role().

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require an active role assignment
- Log denials only: Permission grants are not logged
"""

from __future__ import annotations

from ..errors import AuthorizationError
from ..extensions import db
from ..models import Role, RoleAssignment, SecurityEvent, User
from ..permissions import ROLE_CAPABILITIES, ROLE_LEVELS, role_has_capability
from ..time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - ROLE_ASSIGNED
    - ROLE_DEACTIVATED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def active_assignments(user_id: int, apartment_id: int | None = None) -> list[RoleAssignment]:
    """
    Active role assignments for a user.

    With apartment_id, only building-wide assignments (apartment_id NULL)
    and assignments scoped to that apartment are returned.
    """
    query = (
        db.session.query(RoleAssignment)
        .join(Role, Role.id == RoleAssignment.role_id)
        .filter(
            RoleAssignment.user_id == user_id,
            RoleAssignment.is_active.is_(True),
            Role.is_active.is_(True),
        )
    )
    if apartment_id is not None:
        query = query.filter(
            db.or_(RoleAssignment.apartment_id.is_(None), RoleAssignment.apartment_id == apartment_id)
        )
    return query.all()


def get_user_role_names(user_id: int, apartment_id: int | None = None) -> list[str]:
    """Role names held, highest permission level first."""
    names = {a.role.role_name for a in active_assignments(user_id, apartment_id)}
    return sorted(names, key=lambda n: ROLE_LEVELS.get(n, 0), reverse=True)


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user.

    Returns the union of the capability sets of every active role.
    Deactivated users have no permissions.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return set()

    permission_codes: set[str] = set()
    for role_name in get_user_role_names(user_id):
        permission_codes |= ROLE_CAPABILITIES.get(role_name, frozenset())
    return permission_codes


def user_has_permission(user_id: int, permission_code: str) -> bool:
    """Check if user has a specific permission."""
    return permission_code in get_user_permissions(user_id)


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are logged to security_events.
    """
    if not user_has_permission(user_id, permission_code):
        # Log only denials (policy: no granted logs)
        log_security_event(
            user_id=user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=resource,
            action=permission_code,
            reason=f"Missing permission: {permission_code}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")


def holds_role(user_id: int, role_name: str, apartment_id: int | None = None) -> bool:
    """Identity check: does the user actively hold role_name (in scope of apartment_id)?"""
    return any(a.role.role_name == role_name for a in active_assignments(user_id, apartment_id))


def authorize_role(
    *,
    user_id: int,
    role_name: str | None,
    capability: str,
    apartment_id: int | None = None,
) -> str:
    """
    Authorize an actor acting under a claimed role.

    The user must be active, actively hold role_name (building-wide or
    scoped to apartment_id), and role_name must carry capability.
    Returns the role name. Raises AuthorizationError otherwise.
    """
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None or not user.is_active:
        raise AuthorizationError("Acting user is not an active account")

    if not role_name:
        raise AuthorizationError("An acting role is required")

    if not role_has_capability(role_name, capability):
        raise AuthorizationError(f"Role '{role_name}' cannot perform {capability}")

    if not holds_role(user_id, role_name, apartment_id):
        raise AuthorizationError(f"User {user_id} does not hold an active '{role_name}' role")

    return role_name


def pick_acting_role(user_id: int, capability: str, apartment_id: int | None = None) -> str | None:
    """Highest-level held role carrying capability, or None."""
    for role_name in get_user_role_names(user_id, apartment_id):
        if role_has_capability(role_name, capability):
            return role_name
    return None


def claimed_or_acting_role(
    user_id: int, claimed_role: str | None, capability: str, apartment_id: int | None = None,
) -> str | None:
    """API callers may omit the role they act under; fall back to their highest capable one."""
    if claimed_role:
        return claimed_role
    return pick_acting_role(user_id, capability, apartment_id)
