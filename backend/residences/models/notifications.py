from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PRIORITY_LOW = "low"
PRIORITY_MEDIUM = "medium"
PRIORITY_HIGH = "high"
PRIORITY_CRITICAL = "critical"
NOTIFICATION_PRIORITIES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH, PRIORITY_CRITICAL)


class Notification(db.Model):
    """Message delivered to one user, with read state and priority."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "is_read"),
        db.Index("ix_notifications_priority_read", "priority", "is_read"),
        db.CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'critical')",
            name="ck_notifications_priority",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    notification_type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    link_url = db.Column(db.String(500), nullable=True)

    priority = db.Column(db.String(10), nullable=False, default=PRIORITY_MEDIUM)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sent_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    sent_by_role = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("notifications", lazy=True))
    sent_by = db.relationship("User", foreign_keys=[sent_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "notification_type": self.notification_type,
            "title": self.title,
            "message": self.message,
            "link_url": self.link_url,
            "priority": self.priority,
            "is_read": self.is_read,
            "read_at": to_utc_z(self.read_at) if self.read_at else None,
            "sent_by_user_id": self.sent_by_user_id,
            "sent_by_role": self.sent_by_role,
            "created_at": to_utc_z(self.created_at),
        }
