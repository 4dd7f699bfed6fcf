# Overview: Flask API routes for notifications; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import LedgerError
from ..decorators import require_auth, require_permission
from ..services import notification_service, permission_service


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """Caller's own notifications. Query params: unread_only, priority, limit, offset"""
    unread_only = (request.args.get("unread_only") or "").lower() in {"1", "true", "yes"}
    notifications = notification_service.list_notifications(
        g.current_user.id,
        unread_only=unread_only,
        priority=request.args.get("priority"),
        limit=min(request.args.get("limit", 50, type=int), 200),
        offset=request.args.get("offset", 0, type=int),
    )
    return jsonify({"notifications": [n.to_dict() for n in notifications]}), 200


@notifications_bp.post("")
@require_auth
@require_permission("SEND_NOTIFICATIONS")
def send_notification_route():
    """
    Send a notification to one or more users.

    Request body:
    {
        "user_ids": [int],
        "title": str,
        "message": str,
        "priority": "low" | "medium" | "high" | "critical" (optional),
        "notification_type": str (optional),
        "link_url": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    user_ids = data.get("user_ids")
    if user_ids is None and data.get("user_id") is not None:
        user_ids = [data["user_id"]]

    try:
        notifications = notification_service.send_notification(
            user_ids=user_ids or [],
            title=data.get("title"),
            message=data.get("message"),
            notification_type=data.get("notification_type") or "announcement",
            priority=data.get("priority") or "medium",
            link_url=data.get("link_url"),
            sent_by_user_id=g.current_user.id,
            sent_by_role=permission_service.pick_acting_role(g.current_user.id, "SEND_NOTIFICATIONS"),
        )
        db.session.commit()
        return jsonify({"sent": len(notifications), "notifications": [n.to_dict() for n in notifications]}), 201
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to send notification")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.get("/stats")
@require_auth
def notification_stats_route():
    return jsonify(notification_service.notification_stats(g.current_user.id)), 200


@notifications_bp.post("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(notification_id, g.current_user.id)
        db.session.commit()
        return jsonify(notification.to_dict()), 200
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status


@notifications_bp.post("/read-all")
@require_auth
def mark_all_read_route():
    count = notification_service.mark_all_read(g.current_user.id)
    db.session.commit()
    return jsonify({"marked_read": count}), 200


@notifications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification_route(notification_id: int):
    try:
        notification_service.delete_notification(notification_id, g.current_user.id)
        db.session.commit()
        return "", 204
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
