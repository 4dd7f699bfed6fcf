from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


AUDIT_INSERT = "INSERT"
AUDIT_UPDATE = "UPDATE"
AUDIT_DELETE = "DELETE"
# Failed or refused ledger transition; written after the rollback
AUDIT_DENIED = "DENIED"
AUDIT_ACTIONS = (AUDIT_INSERT, AUDIT_UPDATE, AUDIT_DELETE, AUDIT_DENIED)


class AuditLog(db.Model):
    """
    Compliance change log with old/new value snapshots.

    No business logic reads this table back. IMMUTABLE: append-only.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_table_record", "table_name", "record_id"),
        db.Index("ix_audit_logs_user_created", "user_id", "created_at"),
        db.CheckConstraint(
            "action IN ('INSERT', 'UPDATE', 'DELETE', 'DENIED')",
            name="ck_audit_logs_action",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    action = db.Column(db.String(16), nullable=False, index=True)
    table_name = db.Column(db.String(50), nullable=False)
    record_id = db.Column(db.Integer, nullable=True)

    old_value = db.Column(db.JSON, nullable=True)
    new_value = db.Column(db.JSON, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    user_role = db.Column(db.String(50), nullable=True)
    reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User", backref=db.backref("audit_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "ip_address": self.ip_address,
            "user_role": self.user_role,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
