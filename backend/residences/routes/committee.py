# Overview: Flask API routes for committee records, approval queues, dashboards and the audit trail.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import LedgerError
from ..decorators import require_auth, require_permission, require_any_permission
from ..services import audit_service, committee_service, dashboard_service
from ..services.concurrency import commit_with_retry


committee_bp = Blueprint("committee", __name__, url_prefix="/api")


@committee_bp.get("/committee/actions")
@require_auth
@require_permission("VIEW_COMMITTEE_DASHBOARD")
def list_committee_actions_route():
    """Query params: member_id, action_type, target_table, target_record_id, limit, offset"""
    actions = committee_service.list_committee_actions(
        member_id=request.args.get("member_id", type=int),
        action_type=request.args.get("action_type"),
        target_table=request.args.get("target_table"),
        target_record_id=request.args.get("target_record_id", type=int),
        limit=min(request.args.get("limit", 50, type=int), 500),
        offset=request.args.get("offset", 0, type=int),
    )
    return jsonify({"actions": [a.to_dict() for a in actions]}), 200


@committee_bp.post("/committee/actions")
@require_auth
def record_committee_action_route():
    """
    Append a committee record as the calling member.

    Request body:
    {
        "committee_role": "President" | "Secretary" | "Treasurer",
        "action_type": "approval" | "rejection" | "override" | "modification",
        "target_table": str,
        "target_record_id": int,
        "details": object (optional),
        "reason": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        action = committee_service.record_committee_action(
            member_id=g.current_user.id,
            committee_role=data.get("committee_role"),
            action_type=data["action_type"],
            target_table=data["target_table"],
            target_record_id=data["target_record_id"],
            details=data.get("details"),
            reason=data.get("reason"),
        )
        commit_with_retry()
        return jsonify(action.to_dict()), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record committee action")
        return jsonify({"error": "Internal server error"}), 500


@committee_bp.get("/approvals/pending")
@require_auth
@require_any_permission("APPROVE_RELATIONSHIPS", "VIEW_COMMITTEE_DASHBOARD")
def pending_approvals_route():
    return jsonify(
        dashboard_service.pending_approvals(apartment_id=request.args.get("apartment_id", type=int))
    ), 200


@committee_bp.get("/approvals/history")
@require_auth
@require_any_permission("APPROVE_RELATIONSHIPS", "VIEW_COMMITTEE_DASHBOARD")
def approval_history_route():
    limit = min(request.args.get("limit", 50, type=int), 500)
    return jsonify({"history": dashboard_service.approval_history(limit=limit)}), 200


@committee_bp.get("/dashboard")
@require_auth
def dashboard_route():
    """Sections depend on the capabilities of the caller's active roles."""
    return jsonify(dashboard_service.dashboard_for(g.current_user.id)), 200


@committee_bp.get("/audit")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def audit_log_route():
    """Query params: table_name, record_id, user_id, action, limit, offset"""
    rows = audit_service.list_audit_logs(
        table_name=request.args.get("table_name"),
        record_id=request.args.get("record_id", type=int),
        user_id=request.args.get("user_id", type=int),
        action=request.args.get("action"),
        limit=min(request.args.get("limit", 100, type=int), 1000),
        offset=request.args.get("offset", 0, type=int),
    )
    return jsonify({"audit_logs": [r.to_dict() for r in rows]}), 200
