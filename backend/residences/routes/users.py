# Overview: Flask API routes for user accounts and role assignments; parses input and returns JSON responses.

"""
User administration routes.

Accounts are created by an administrator (MANAGE_USERS); there is no
self-registration. Deactivation is a soft-delete that also revokes every
open session of the account.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import AuthorizationError, LedgerError, NotFoundError, ValidationError
from ..decorators import require_auth, require_permission
from ..models import RoleAssignment, User
from ..permissions import ROLE_LEVELS
from ..services import auth_service, permission_service
from ..validation import coerce_id


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _user_detail(user) -> dict:
    return {
        "user": user.to_dict(),
        "roles": permission_service.get_user_role_names(user.id),
        "role_assignments": [a.to_dict() for a in permission_service.active_assignments(user.id)],
    }


def _check_grantable(role_name: str) -> None:
    """Callers cannot hand out a role ranked above their own highest role."""
    if not isinstance(role_name, str):
        raise ValidationError("role_name must be a string")
    own = max(
        (ROLE_LEVELS.get(name, 0) for name in permission_service.get_user_role_names(g.current_user.id)),
        default=0,
    )
    if ROLE_LEVELS.get(role_name, 0) > own:
        raise AuthorizationError(f"Cannot grant '{role_name}', which outranks your own roles")


def _log_admin_event(event_type: str, action: str, reason: str | None = None) -> None:
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type=event_type,
        success=True,
        resource=request.path,
        action=action,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@users_bp.get("")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    """Query params: include_inactive"""
    include_inactive = (request.args.get("include_inactive") or "").lower() in {"1", "true", "yes"}
    users = auth_service.list_users(include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """
    Create an account, optionally with a first role.

    Request body:
    {
        "full_name": str,
        "mobile_number": str,
        "password": str,
        "email": str (optional),
        "role_name": str (optional),
        "apartment_id": int (optional, scopes role_name)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        role_name = data.get("role_name")
        apartment_id = data.get("apartment_id")
        if apartment_id is not None:
            apartment_id = coerce_id("apartment_id", apartment_id)
        if role_name:
            _check_grantable(role_name)
            auth_service.get_role(role_name)

        user = auth_service.create_user(
            full_name=data["full_name"],
            mobile_number=data["mobile_number"],
            password=data["password"],
            email=data.get("email"),
            must_reset_password=bool(data.get("must_reset_password", False)),
        )
        if role_name:
            auth_service.assign_role(
                user.id, role_name, apartment_id=apartment_id, assigned_by_user_id=g.current_user.id,
            )
        _log_admin_event("USER_CREATED", f"Created user {user.id}", reason=role_name)
        return jsonify(_user_detail(user)), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    """Users may read their own account; anyone else needs VIEW_USERS."""
    if user_id != g.current_user.id and not permission_service.user_has_permission(g.current_user.id, "VIEW_USERS"):
        return jsonify({"error": "Permission denied", "required_permission": "VIEW_USERS"}), 403
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({"error": "not_found"}), 404
    return jsonify(_user_detail(user)), 200


@users_bp.patch("/<int:user_id>/status")
@require_auth
@require_permission("MANAGE_USERS")
def set_user_status_route(user_id: int):
    """Body: {"is_active": bool}. Deactivation revokes the account's sessions."""
    data = request.get_json(silent=True) or {}
    try:
        is_active = data["is_active"]
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be true or false")
        if not is_active and user_id == g.current_user.id:
            raise ValidationError("You cannot deactivate your own account")

        if is_active:
            user = auth_service.reactivate_user(user_id)
            _log_admin_event("USER_REACTIVATED", f"Reactivated user {user_id}")
        else:
            user = auth_service.deactivate_user(user_id)
            _log_admin_event("USER_DEACTIVATED", f"Deactivated user {user_id}", reason="Sessions revoked")
        return jsonify(user.to_dict()), 200
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change status of user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("/<int:user_id>/roles")
@require_auth
@require_permission("ASSIGN_ROLES")
def assign_role_route(user_id: int):
    """Body: {"role_name": str, "apartment_id": int (optional)}. Idempotent."""
    data = request.get_json(silent=True) or {}
    try:
        role_name = data["role_name"]
        apartment_id = data.get("apartment_id")
        if apartment_id is not None:
            apartment_id = coerce_id("apartment_id", apartment_id)
        _check_grantable(role_name)

        assignment = auth_service.assign_role(
            user_id, role_name, apartment_id=apartment_id, assigned_by_user_id=g.current_user.id,
        )
        _log_admin_event("ROLE_ASSIGNED", f"Assigned {role_name} to user {user_id}")
        return jsonify(assignment.to_dict()), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status


@users_bp.delete("/<int:user_id>/roles/<int:assignment_id>")
@require_auth
@require_permission("ASSIGN_ROLES")
def revoke_role_route(user_id: int, assignment_id: int):
    try:
        assignment = db.session.get(RoleAssignment, assignment_id)
        if assignment is None or assignment.user_id != user_id:
            raise NotFoundError(f"Role assignment {assignment_id} not found for user {user_id}")
        assignment = auth_service.deactivate_role_assignment(assignment_id)
        _log_admin_event("ROLE_DEACTIVATED", f"Deactivated role assignment {assignment_id} of user {user_id}")
        return jsonify(assignment.to_dict()), 200
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
