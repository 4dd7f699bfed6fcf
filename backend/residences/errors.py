# backend/residences/errors.py
"""
Ledger error taxonomy and JSON error handlers.

Every failure the relationship ledger reports is a LedgerError subclass.
Each carries the HTTP status the API layer maps it to, so routes can do:

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status

None of these are retried by the ledger; only transient lock failures
(OperationalError / StaleDataError) are retried, inside run_with_retry.
"""
from flask import jsonify


class LedgerError(Exception):
    """Base class for synchronous ledger failures."""
    http_status = 400
    code = "LEDGER_ERROR"

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class ValidationError(LedgerError, ValueError):
    """Malformed or out-of-range input, raised before any write."""
    http_status = 400
    code = "VALIDATION_ERROR"


class AuthorizationError(LedgerError):
    """Actor does not hold the role the operation requires."""
    http_status = 403
    code = "AUTHORIZATION_ERROR"


class NotFoundError(LedgerError):
    """Referenced user, apartment or record does not exist."""
    http_status = 404
    code = "NOT_FOUND"


class CapacityError(LedgerError):
    """Active ownership on an apartment would exceed 100%."""
    http_status = 409
    code = "CAPACITY_EXCEEDED"


class StateError(LedgerError):
    """Operation attempted on an instance in a terminal (or wrong) state."""
    http_status = 409
    code = "INVALID_STATE"


def register_error_handlers(app):
    @app.errorhandler(LedgerError)
    def ledger_error(e):
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(400)
    def bad_request(e): return jsonify(error="bad_request"), 400

    @app.errorhandler(401)
    def unauthorized(e): return jsonify(error="unauthorized"), 401

    @app.errorhandler(403)
    def forbidden(e): return jsonify(error="forbidden"), 403

    @app.errorhandler(404)
    def not_found(e): return jsonify(error="not_found"), 404

    @app.errorhandler(405)
    def method_not_allowed(e): return jsonify(error="method_not_allowed"), 405

    @app.errorhandler(500)
    def server_error(e): return jsonify(error="server_error"), 500
