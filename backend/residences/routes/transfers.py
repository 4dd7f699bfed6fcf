# backend/residences/routes/transfers.py
"""
Ownership transfer API routes.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import LedgerError
from ..decorators import require_auth, require_permission
from ..services import permission_service, transfer_service
from ..services.concurrency import commit_with_retry


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["POST"])
@require_auth
def create_transfer():
    """
    Request an ownership transfer.

    Request body:
    {
        "apartment_id": int,
        "to_user_id": int,
        "ownership_percentage": number,
        "from_user_id": int (optional, defaults to caller),
        "transfer_value": number (optional),
        "reason": str (optional)
    }

    Returns:
        201: Transfer created
        400: Invalid request
        403: Forbidden
        404: Apartment or user not found
    """
    data = request.get_json(silent=True) or {}

    try:
        transfer = transfer_service.request_transfer(
            apartment_id=data["apartment_id"],
            from_user_id=data.get("from_user_id", g.current_user.id),
            to_user_id=data["to_user_id"],
            percentage=data["ownership_percentage"],
            requested_by_id=g.current_user.id,
            reason=data.get("reason"),
            transfer_value=data.get("transfer_value"),
        )

        commit_with_retry()

        return jsonify(transfer.to_dict()), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create transfer")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.route("", methods=["GET"])
@require_auth
@require_permission("VIEW_RELATIONSHIPS")
def list_transfers():
    """
    List transfers. Query params: apartment_id, user_id, status, limit, offset.

    Callers without MANAGE_RELATIONSHIPS only see transfers they are party to.
    """
    user_id = request.args.get("user_id", type=int)
    if not permission_service.user_has_permission(g.current_user.id, "MANAGE_RELATIONSHIPS"):
        user_id = g.current_user.id

    transfers = transfer_service.list_transfers(
        apartment_id=request.args.get("apartment_id", type=int),
        user_id=user_id,
        status=request.args.get("status"),
        limit=min(request.args.get("limit", 100, type=int), 500),
        offset=request.args.get("offset", 0, type=int),
    )
    return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200


@transfers_bp.route("/<int:transfer_id>", methods=["GET"])
@require_auth
@require_permission("VIEW_RELATIONSHIPS")
def get_transfer(transfer_id: int):
    try:
        transfer = transfer_service.get_transfer(transfer_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status

    user_id = g.current_user.id
    if user_id not in (transfer.from_user_id, transfer.to_user_id) and not (
        permission_service.user_has_permission(user_id, "MANAGE_RELATIONSHIPS")
    ):
        return jsonify({"error": "not_found"}), 404
    return jsonify(transfer.to_dict()), 200


@transfers_bp.route("/<int:transfer_id>/resolve", methods=["POST"])
@require_auth
def resolve_transfer(transfer_id: int):
    """
    Approve or reject a pending transfer.

    Request body:
    {
        "decision": "approved" | "rejected",
        "reason": str (required when rejecting),
        "approver_role": str (optional)
    }

    Returns:
        200: Transfer resolved
        400: Invalid decision / source no longer owns the share
        403: Approver not authorized
        404: Transfer not found
        409: Already resolved, or capacity exceeded
    """
    data = request.get_json(silent=True) or {}

    try:
        transfer = transfer_service.get_transfer(transfer_id)
        transfer = transfer_service.resolve_transfer(
            transfer_id=transfer_id,
            decision=data.get("decision"),
            approver_id=g.current_user.id,
            approver_role=permission_service.claimed_or_acting_role(
                g.current_user.id, data.get("approver_role"), "APPROVE_RELATIONSHIPS", transfer.apartment_id,
            ),
            reason=data.get("reason"),
        )

        commit_with_retry()

        return jsonify(transfer.to_dict()), 200

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to resolve transfer %s", transfer_id)
        return jsonify({"error": "Internal server error"}), 500
