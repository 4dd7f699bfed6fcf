# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

Self-registration is disabled: accounts are created by administrators
through the CLI (flask users create) or POST /api/users.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import LedgerError
from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email or mobile number and create a session token.

    Token must be included in Authorization header for protected routes.
    Failed attempts are recorded in security_events.
    """
    try:
        data = request.get_json(silent=True) or {}
        identifier = data.get("identifier") or data.get("email") or data.get("mobile_number")
        password = data.get("password")

        if not all([identifier, password]):
            return jsonify({"error": "identifier and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(identifier, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource="/api/auth/login",
                action="LOGIN",
                reason=f"Invalid credentials for {identifier}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )

        return jsonify({
            "user": user.to_dict(),
            "roles": permission_service.get_user_role_names(user.id),
            "permissions": sorted(permission_service.get_user_permissions(user.id)),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token used for this request."""
    revoked = session_service.revoke_session(bearer_token())
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="LOGOUT",
        success=True,
        resource="/api/auth/logout",
        action="LOGOUT",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify({"revoked": revoked}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    assignments = permission_service.active_assignments(user.id)
    return jsonify({
        "user": user.to_dict(),
        "roles": permission_service.get_user_role_names(user.id),
        "role_assignments": [a.to_dict() for a in assignments],
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
    }), 200


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    try:
        auth_service.change_password(
            g.current_user.id,
            data.get("current_password"),
            data.get("new_password"),
        )
        db.session.commit()
        # Other devices must log in again
        session_service.revoke_all_user_sessions(g.current_user.id, reason="Password changed")
        return jsonify({"message": "Password changed"}), 200
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
