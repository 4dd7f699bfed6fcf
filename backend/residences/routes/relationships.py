# Overview: Flask API routes for ownership and tenancy relationships; parses input and returns JSON responses.

"""
Relationship routes.

Approval routes only require authentication: whether the caller may act
is decided by the ledger (role held + capability), which answers 403 and
leaves a DENIED audit row when it may not.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import LedgerError
from ..decorators import require_auth, require_permission
from ..services import permission_service, relationship_service
from ..services.concurrency import commit_with_retry


relationships_bp = Blueprint("relationships", __name__, url_prefix="/api/relationships")

KINDS = "any(ownership, tenancy)"

_GETTERS = {
    "ownership": relationship_service.get_ownership,
    "tenancy": relationship_service.get_tenancy,
}
_LISTERS = {
    "ownership": relationship_service.list_ownerships,
    "tenancy": relationship_service.list_tenancies,
}
_APPROVERS = {
    "ownership": relationship_service.approve_ownership,
    "tenancy": relationship_service.approve_tenancy,
}
_REJECTERS = {
    "ownership": relationship_service.reject_ownership,
    "tenancy": relationship_service.reject_tenancy,
}
_DEACTIVATORS = {
    "ownership": relationship_service.deactivate_ownership,
    "tenancy": relationship_service.deactivate_tenancy,
}


def _commit_and_respond(operation, status: int = 200):
    """Run a ledger operation, commit, and map LedgerError to its HTTP status."""
    try:
        record = operation()
        commit_with_retry()
        return jsonify(record.to_dict()), status
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Relationship operation failed on %s", request.path)
        return jsonify({"error": "Internal server error"}), 500


def _approver_role(data: dict, capability: str, apartment_id: int | None):
    return permission_service.claimed_or_acting_role(
        g.current_user.id, data.get("approver_role"), capability, apartment_id,
    )


@relationships_bp.get(f"/<{KINDS}:kind>")
@require_auth
@require_permission("VIEW_RELATIONSHIPS")
def list_relationships_route(kind: str):
    """
    List ownership or tenancy relationships.

    Query params: apartment_id, user_id, status, limit, offset.
    Callers without MANAGE_RELATIONSHIPS only see their own.
    """
    user_id = request.args.get("user_id", type=int)
    if not permission_service.user_has_permission(g.current_user.id, "MANAGE_RELATIONSHIPS"):
        user_id = g.current_user.id

    rows = _LISTERS[kind](
        apartment_id=request.args.get("apartment_id", type=int),
        user_id=user_id,
        status=request.args.get("status"),
        limit=min(request.args.get("limit", 100, type=int), 500),
        offset=request.args.get("offset", 0, type=int),
    )
    return jsonify({"relationships": [r.to_dict() for r in rows]}), 200


@relationships_bp.get(f"/<{KINDS}:kind>/<int:relationship_id>")
@require_auth
@require_permission("VIEW_RELATIONSHIPS")
def get_relationship_route(kind: str, relationship_id: int):
    try:
        relationship = _GETTERS[kind](relationship_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    if (
        relationship.user_id != g.current_user.id
        and not permission_service.user_has_permission(g.current_user.id, "MANAGE_RELATIONSHIPS")
    ):
        return jsonify({"error": "not_found"}), 404
    return jsonify(relationship.to_dict()), 200


@relationships_bp.post("/ownership")
@require_auth
@require_permission("PROPOSE_RELATIONSHIPS")
def propose_ownership_route():
    """
    Propose an ownership share.

    Request body:
    {
        "apartment_id": int,
        "ownership_percentage": number (0 < p <= 100),
        "user_id": int (optional, defaults to caller),
        "start_date": "YYYY-MM-DD" (optional, defaults to today)
    }
    """
    data = request.get_json(silent=True) or {}
    return _commit_and_respond(
        lambda: relationship_service.propose_ownership(
            user_id=data.get("user_id", g.current_user.id),
            apartment_id=data["apartment_id"],
            percentage=data["ownership_percentage"],
            start_date=data.get("start_date"),
            proposed_by_id=g.current_user.id,
        ),
        status=201,
    )


@relationships_bp.post("/tenancy")
@require_auth
@require_permission("PROPOSE_RELATIONSHIPS")
def propose_tenancy_route():
    """
    Propose a tenancy.

    Request body:
    {
        "apartment_id": int,
        "lease_start_date": "YYYY-MM-DD",
        "lease_end_date": "YYYY-MM-DD",
        "is_auto_renew": bool (optional),
        "user_id": int (optional, defaults to caller)
    }
    """
    data = request.get_json(silent=True) or {}
    return _commit_and_respond(
        lambda: relationship_service.propose_tenancy(
            user_id=data.get("user_id", g.current_user.id),
            apartment_id=data["apartment_id"],
            lease_start_date=data["lease_start_date"],
            lease_end_date=data["lease_end_date"],
            is_auto_renew=data.get("is_auto_renew", False),
            proposed_by_id=g.current_user.id,
        ),
        status=201,
    )


@relationships_bp.post(f"/<{KINDS}:kind>/<int:relationship_id>/approve")
@require_auth
def approve_relationship_route(kind: str, relationship_id: int):
    """Body: {"approver_role": str (optional)}"""
    data = request.get_json(silent=True) or {}

    def _op():
        relationship = _GETTERS[kind](relationship_id)
        return _APPROVERS[kind](
            relationship_id=relationship_id,
            approver_id=g.current_user.id,
            approver_role=_approver_role(data, "APPROVE_RELATIONSHIPS", relationship.apartment_id),
        )

    return _commit_and_respond(_op)


@relationships_bp.post(f"/<{KINDS}:kind>/<int:relationship_id>/reject")
@require_auth
def reject_relationship_route(kind: str, relationship_id: int):
    """Body: {"reason": str, "approver_role": str (optional)}"""
    data = request.get_json(silent=True) or {}

    def _op():
        relationship = _GETTERS[kind](relationship_id)
        return _REJECTERS[kind](
            relationship_id=relationship_id,
            approver_id=g.current_user.id,
            approver_role=_approver_role(data, "APPROVE_RELATIONSHIPS", relationship.apartment_id),
            reason=data.get("reason"),
        )

    return _commit_and_respond(_op)


@relationships_bp.post(f"/<{KINDS}:kind>/<int:relationship_id>/deactivate")
@require_auth
def deactivate_relationship_route(kind: str, relationship_id: int):
    """Body: {"end_date": "YYYY-MM-DD" (optional), "reason": str (optional)}"""
    data = request.get_json(silent=True) or {}
    return _commit_and_respond(
        lambda: _DEACTIVATORS[kind](
            relationship_id=relationship_id,
            actor_id=g.current_user.id,
            end_date=data.get("end_date"),
            reason=data.get("reason"),
        )
    )


@relationships_bp.patch("/tenancy/<int:relationship_id>")
@require_auth
def modify_tenancy_route(relationship_id: int):
    """
    Change an active lease.

    Request body:
    {
        "lease_end_date": "YYYY-MM-DD" (optional),
        "is_auto_renew": bool (optional),
        "actor_role": str (optional),
        "reason": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    def _op():
        relationship = relationship_service.get_tenancy(relationship_id)
        return relationship_service.modify_tenancy(
            relationship_id=relationship_id,
            actor_id=g.current_user.id,
            actor_role=permission_service.claimed_or_acting_role(
                g.current_user.id, data.get("actor_role"), "MODIFY_TENANCY", relationship.apartment_id,
            ),
            lease_end_date=data.get("lease_end_date"),
            is_auto_renew=data.get("is_auto_renew"),
            reason=data.get("reason"),
        )

    return _commit_and_respond(_op)


@relationships_bp.patch("/ownership/<int:relationship_id>")
@require_auth
def modify_ownership_route(relationship_id: int):
    """Body: {"ownership_percentage", "end_date", "actor_role", "reason"}, all optional."""
    data = request.get_json(silent=True) or {}

    def _op():
        relationship = relationship_service.get_ownership(relationship_id)
        return relationship_service.modify_ownership(
            relationship_id=relationship_id,
            actor_id=g.current_user.id,
            actor_role=permission_service.claimed_or_acting_role(
                g.current_user.id, data.get("actor_role"), "MODIFY_OWNERSHIP", relationship.apartment_id,
            ),
            percentage=data.get("ownership_percentage"),
            end_date=data.get("end_date"),
            reason=data.get("reason"),
        )

    return _commit_and_respond(_op)
