from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ACTION_APPROVAL = "approval"
ACTION_REJECTION = "rejection"
ACTION_OVERRIDE = "override"
ACTION_MODIFICATION = "modification"
COMMITTEE_ACTION_TYPES = (ACTION_APPROVAL, ACTION_REJECTION, ACTION_OVERRIDE, ACTION_MODIFICATION)


class CommitteeAction(db.Model):
    """
    Record of a decision a committee member made against a target record.

    IMMUTABLE: Never update or delete. Append-only.
    """
    __tablename__ = "committee_actions"
    __table_args__ = (
        db.Index("ix_committee_actions_member", "member_user_id", "created_at"),
        db.Index("ix_committee_actions_target", "target_table", "target_record_id"),
        db.CheckConstraint(
            "committee_role IN ('President', 'Secretary', 'Treasurer')",
            name="ck_committee_actions_role",
        ),
        db.CheckConstraint(
            "action_type IN ('approval', 'rejection', 'override', 'modification')",
            name="ck_committee_actions_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    member_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    committee_role = db.Column(db.String(20), nullable=False)
    action_type = db.Column(db.String(20), nullable=False, index=True)

    target_table = db.Column(db.String(50), nullable=False)
    target_record_id = db.Column(db.Integer, nullable=False)

    action_details = db.Column(db.JSON, nullable=True)
    reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    member = db.relationship("User", backref=db.backref("committee_actions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "member_user_id": self.member_user_id,
            "member_name": self.member.full_name if self.member else None,
            "committee_role": self.committee_role,
            "action_type": self.action_type,
            "target_table": self.target_table,
            "target_record_id": self.target_record_id,
            "action_details": self.action_details,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
