# Overview: Flask API routes for apartments; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..errors import LedgerError
from ..decorators import require_auth, require_permission
from ..services import apartment_service
from ..services.concurrency import commit_with_retry


apartments_bp = Blueprint("apartments", __name__, url_prefix="/api/apartments")


def _parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@apartments_bp.get("")
@require_auth
@require_permission("VIEW_APARTMENTS")
def list_apartments_route():
    """
    List apartments.

    Query params: include_inactive, floor_number, unit_type, building_name
    """
    floor = request.args.get("floor_number", type=int)
    apartments = apartment_service.list_apartments(
        include_inactive=_parse_bool(request.args.get("include_inactive")),
        floor_number=floor,
        unit_type=request.args.get("unit_type"),
        building_name=request.args.get("building_name"),
    )
    return jsonify({"apartments": [a.to_dict() for a in apartments]}), 200


@apartments_bp.post("")
@require_auth
@require_permission("MANAGE_APARTMENTS")
def create_apartment_route():
    try:
        apartment = apartment_service.create_apartment(request.get_json(silent=True))
        commit_with_retry()
        current_app.logger.info("Apartment %s created", apartment.display_name)
        return jsonify(apartment.to_dict()), 201
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create apartment")
        return jsonify({"error": "Internal server error"}), 500


@apartments_bp.get("/<int:apartment_id>")
@require_auth
@require_permission("VIEW_APARTMENTS")
def get_apartment_route(apartment_id: int):
    """Apartment with its active owners, tenants and ownership headroom."""
    try:
        return jsonify(apartment_service.apartment_detail(apartment_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@apartments_bp.patch("/<int:apartment_id>")
@require_auth
@require_permission("MANAGE_APARTMENTS")
def update_apartment_route(apartment_id: int):
    try:
        apartment = apartment_service.update_apartment(apartment_id, request.get_json(silent=True))
        commit_with_retry()
        return jsonify(apartment.to_dict()), 200
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update apartment %s", apartment_id)
        return jsonify({"error": "Internal server error"}), 500


@apartments_bp.post("/<int:apartment_id>/deactivate")
@require_auth
@require_permission("MANAGE_APARTMENTS")
def deactivate_apartment_route(apartment_id: int):
    try:
        apartment = apartment_service.deactivate_apartment(apartment_id)
        commit_with_retry()
        current_app.logger.info("Apartment %s deactivated", apartment.display_name)
        return jsonify(apartment.to_dict()), 200
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate apartment %s", apartment_id)
        return jsonify({"error": "Internal server error"}), 500
