# backend/residences/routes/system.py
"""
System health and version endpoints.

Health checks cover the database, the session table and the fixed role
set; version exposes non-sensitive deployment information.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Apartment, Role, SessionToken, User
from ..permissions import ROLE_DEFINITIONS
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        apartment_count = db.session.query(Apartment).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "users": user_count,
                "apartments": apartment_count,
            }
        }
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Database error"
        }


def check_session_service_health() -> dict:
    """Check session service health by verifying session table accessibility."""
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False)
        ).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            }
        }
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Session service health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Session service error"
        }


def check_roles_health() -> dict:
    """Degraded when any of the fixed roles is missing (run `flask system init`)."""
    start_time = time.time()
    try:
        present = {name for (name,) in db.session.query(Role.role_name).all()}
        missing = [name for name, _, _ in ROLE_DEFINITIONS if name not in present]
        if missing:
            return {
                "status": "degraded",
                "latency_ms": _elapsed_ms(start_time),
                "warning": f"Missing roles: {', '.join(missing)}",
            }
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {"roles_configured": len(present)},
        }
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Role health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Role table error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: All systems healthy (or degraded but operational)
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "roles": check_roles_health(),
    }
    statuses = [c["status"] for c in checks.values()]

    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    """Does NOT expose secret keys, database credentials or internal paths."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": current_app.config.get("API_VERSION", "1.0.0"),
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
