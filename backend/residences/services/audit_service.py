# Overview: Append-only audit trail for ledger changes and refused transitions.

"""
Audit Trail

Two kinds of rows are written to audit_logs:

- INSERT / UPDATE rows, added inside the caller's transaction so they
  commit (or roll back) together with the change they describe.
- DENIED rows, for transitions that failed with a LedgerError. The
  failed transaction is rolled back first, then the DENIED row is
  committed on its own so the refusal stays discoverable.

No business logic reads audit_logs back.
"""

from __future__ import annotations

from functools import wraps

from flask import current_app, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerError
from ..extensions import db
from ..models import AuditLog
from ..models.audit import AUDIT_DENIED


def _client_context() -> tuple[str | None, str | None]:
    if not has_request_context():
        return None, None
    return request.remote_addr, request.headers.get("User-Agent")


def record_change(
    *,
    action: str,
    table_name: str,
    record_id: int | None,
    user_id: int | None,
    old_value: dict | None = None,
    new_value: dict | None = None,
    user_role: str | None = None,
    reason: str | None = None,
) -> AuditLog:
    """Add an audit row to the current transaction (no commit)."""
    ip_address, user_agent = _client_context()
    entry = AuditLog(
        user_id=user_id,
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_value=old_value,
        new_value=new_value,
        ip_address=ip_address,
        user_agent=user_agent,
        user_role=user_role,
        reason=reason,
    )
    db.session.add(entry)
    return entry


def record_denied(
    *,
    table_name: str,
    operation: str,
    record_id: int | None,
    user_id: int | None,
    user_role: str | None,
    error: LedgerError,
) -> AuditLog | None:
    """
    Commit a DENIED row for a failed transition.

    The caller must already have rolled back. A failure here is logged and
    swallowed so the original LedgerError still reaches the caller.
    """
    try:
        entry = record_change(
            action=AUDIT_DENIED,
            table_name=table_name,
            record_id=record_id,
            user_id=user_id,
            new_value={"operation": operation, "error": error.code},
            user_role=user_role,
            reason=str(error),
        )
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to write audit row for refused %s on %s", operation, table_name
        )
        return None


def audited_transition(table_name: str, *, actor: str, record: str | None = None, role: str | None = None):
    """
    Decorator for keyword-only ledger operations.

    On LedgerError: roll back, record a DENIED audit row, re-raise.
    actor/record/role name the keyword arguments holding the acting user id,
    the target record id and the claimed role.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except LedgerError as exc:
                db.session.rollback()
                record_denied(
                    table_name=table_name,
                    operation=func.__name__,
                    record_id=kwargs.get(record) if record else None,
                    user_id=kwargs.get(actor),
                    user_role=kwargs.get(role) if role else None,
                    error=exc,
                )
                raise
        return wrapper
    return decorator


def list_audit_logs(
    *,
    table_name: str | None = None,
    record_id: int | None = None,
    user_id: int | None = None,
    action: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[AuditLog]:
    query = db.session.query(AuditLog)
    if table_name:
        query = query.filter(AuditLog.table_name == table_name)
    if record_id is not None:
        query = query.filter(AuditLog.record_id == record_id)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if action:
        query = query.filter(AuditLog.action == action)
    return (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
