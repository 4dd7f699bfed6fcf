from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


# Relationship lifecycle: pending -> active -> ended, or pending -> rejected.
RELATIONSHIP_STATUS_PENDING = "pending"
RELATIONSHIP_STATUS_ACTIVE = "active"
RELATIONSHIP_STATUS_REJECTED = "rejected"
RELATIONSHIP_STATUS_ENDED = "ended"
RELATIONSHIP_STATUSES = (
    RELATIONSHIP_STATUS_PENDING,
    RELATIONSHIP_STATUS_ACTIVE,
    RELATIONSHIP_STATUS_REJECTED,
    RELATIONSHIP_STATUS_ENDED,
)
RELATIONSHIP_TERMINAL_STATUSES = (RELATIONSHIP_STATUS_REJECTED, RELATIONSHIP_STATUS_ENDED)

# Transfer lifecycle: pending -> approved | rejected (both terminal).
TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_APPROVED = "approved"
TRANSFER_STATUS_REJECTED = "rejected"
TRANSFER_STATUSES = (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_APPROVED, TRANSFER_STATUS_REJECTED)


def _in_list(column: str, values) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


def _pct(value):
    return float(value) if value is not None else None


class OwnershipRelationship(db.Model):
    """
    A user's ownership share of an apartment.

    INVARIANTS:
    - At most one active row per (user_id, apartment_id), backed by a
      partial unique index.
    - Sum of ownership_percentage over active rows of an apartment <= 100,
      checked under a lock on the apartment row at approval time.

    is_active is True exactly when status == "active".
    """
    __tablename__ = "ownership_relationships"
    __table_args__ = (
        db.Index(
            "uq_ownership_active_user_apartment",
            "user_id", "apartment_id",
            unique=True,
            postgresql_where=db.text("is_active = true"),
            sqlite_where=db.text("is_active = 1"),
        ),
        db.Index("ix_ownership_apartment_active", "apartment_id", "is_active"),
        db.Index("ix_ownership_status", "status"),
        db.CheckConstraint(
            "ownership_percentage > 0 AND ownership_percentage <= 100",
            name="ck_ownership_percentage",
        ),
        db.CheckConstraint(_in_list("status", RELATIONSHIP_STATUSES), name="ck_ownership_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    apartment_id = db.Column(db.Integer, db.ForeignKey("apartments.id"), nullable=False, index=True)

    ownership_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=RELATIONSHIP_STATUS_PENDING)
    is_active = db.Column(db.Boolean, nullable=False, default=False)

    proposed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by_role = db.Column(db.String(50), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    ended_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Set when the row was created or grown by an approved transfer
    source_transfer_id = db.Column(db.Integer, db.ForeignKey("ownership_transfers.id"), nullable=True)
    # Set when an active share was changed by a committee member
    modified_by_committee = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        server_default=db.func.now(), onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("ownerships", lazy=True))
    apartment = db.relationship("Apartment", backref=db.backref("ownerships", lazy=True))
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "apartment_id": self.apartment_id,
            "ownership_percentage": _pct(self.ownership_percentage),
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "status": self.status,
            "is_active": self.is_active,
            "proposed_by_user_id": self.proposed_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_by_role": self.approved_by_role,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "rejection_reason": self.rejection_reason,
            "ended_by_user_id": self.ended_by_user_id,
            "source_transfer_id": self.source_transfer_id,
            "modified_by_committee": self.modified_by_committee,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class TenantRelationship(db.Model):
    """
    A user's lease on an apartment.

    INVARIANTS:
    - At most one active row per (user_id, apartment_id).
    - lease_end_date >= lease_start_date.

    modified_by_committee marks a lease changed by a committee member
    after approval (extension, auto-renew change).
    """
    __tablename__ = "tenant_relationships"
    __table_args__ = (
        db.Index(
            "uq_tenancy_active_user_apartment",
            "user_id", "apartment_id",
            unique=True,
            postgresql_where=db.text("is_active = true"),
            sqlite_where=db.text("is_active = 1"),
        ),
        db.Index("ix_tenancy_apartment_active", "apartment_id", "is_active"),
        db.Index("ix_tenancy_status", "status"),
        db.CheckConstraint("lease_end_date >= lease_start_date", name="ck_tenancy_lease_window"),
        db.CheckConstraint(_in_list("status", RELATIONSHIP_STATUSES), name="ck_tenancy_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    apartment_id = db.Column(db.Integer, db.ForeignKey("apartments.id"), nullable=False, index=True)

    lease_start_date = db.Column(db.Date, nullable=False)
    lease_end_date = db.Column(db.Date, nullable=False)
    is_auto_renew = db.Column(db.Boolean, nullable=False, default=False)
    end_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=RELATIONSHIP_STATUS_PENDING)
    is_active = db.Column(db.Boolean, nullable=False, default=False)

    proposed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by_role = db.Column(db.String(50), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    ended_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    modified_by_committee = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        server_default=db.func.now(), onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("tenancies", lazy=True))
    apartment = db.relationship("Apartment", backref=db.backref("tenancies", lazy=True))
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "apartment_id": self.apartment_id,
            "lease_start_date": to_iso_date(self.lease_start_date),
            "lease_end_date": to_iso_date(self.lease_end_date),
            "is_auto_renew": self.is_auto_renew,
            "end_date": to_iso_date(self.end_date),
            "status": self.status,
            "is_active": self.is_active,
            "proposed_by_user_id": self.proposed_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_by_role": self.approved_by_role,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "rejection_reason": self.rejection_reason,
            "ended_by_user_id": self.ended_by_user_id,
            "modified_by_committee": self.modified_by_committee,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class OwnershipTransfer(db.Model):
    """
    Request to move an ownership percentage between two users of one apartment.

    approved and rejected are terminal; a terminal transfer is never
    modified again.
    """
    __tablename__ = "ownership_transfers"
    __table_args__ = (
        db.Index("ix_transfers_apartment_status", "apartment_id", "status"),
        db.CheckConstraint("from_user_id != to_user_id", name="ck_transfers_distinct_users"),
        db.CheckConstraint(
            "ownership_percentage > 0 AND ownership_percentage <= 100",
            name="ck_transfers_percentage",
        ),
        db.CheckConstraint(_in_list("status", TRANSFER_STATUSES), name="ck_transfers_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    apartment_id = db.Column(db.Integer, db.ForeignKey("apartments.id"), nullable=False, index=True)
    from_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    ownership_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    transfer_value = db.Column(db.Numeric(15, 2), nullable=True)
    reason = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_PENDING)
    request_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    requested_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by_role = db.Column(db.String(50), nullable=True)
    approval_date = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    transfer_completion_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    apartment = db.relationship("Apartment", backref=db.backref("transfers", lazy=True))
    from_user = db.relationship("User", foreign_keys=[from_user_id])
    to_user = db.relationship("User", foreign_keys=[to_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_terminal(self) -> bool:
        return self.status != TRANSFER_STATUS_PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "apartment_id": self.apartment_id,
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "ownership_percentage": _pct(self.ownership_percentage),
            "transfer_value": _pct(self.transfer_value),
            "reason": self.reason,
            "status": self.status,
            "request_date": to_utc_z(self.request_date),
            "requested_by_user_id": self.requested_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_by_role": self.approved_by_role,
            "approval_date": to_utc_z(self.approval_date) if self.approval_date else None,
            "rejection_reason": self.rejection_reason,
            "transfer_completion_date": (
                to_utc_z(self.transfer_completion_date) if self.transfer_completion_date else None
            ),
            "version_id": self.version_id,
        }
