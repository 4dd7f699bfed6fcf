from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class User(db.Model):
    """
    Resident and staff accounts.

    WHY: Every approval, transfer and committee record must be attributable.
    Users are never hard-deleted while referenced; deactivation sets
    is_active=False and stamps deactivated_at.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True, index=True)
    mobile_number = db.Column(db.String(20), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)
    must_reset_password = db.Column(db.Boolean, nullable=False, default=False)

    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    mobile_verified = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        server_default=db.func.now(), onupdate=db.func.now(),
    )
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "mobile_number": self.mobile_number,
            "email_verified": self.email_verified,
            "mobile_verified": self.mobile_verified,
            "must_reset_password": self.must_reset_password,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
            "deactivated_at": to_utc_z(self.deactivated_at) if self.deactivated_at else None,
        }


class Role(db.Model):
    """
    Fixed role tags (Super Admin, Admin, President, ... Resident).

    permission_level orders roles for display and for picking an acting
    role; what a role may actually do comes from the capability map in
    residences.permissions.
    """
    __tablename__ = "roles"
    __table_args__ = (
        db.CheckConstraint("permission_level >= 0", name="ck_roles_permission_level"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    role_name = db.Column(db.String(50), nullable=False, unique=True)
    permission_level = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role_name": self.role_name,
            "permission_level": self.permission_level,
            "description": self.description,
            "is_active": self.is_active,
        }


class RoleAssignment(db.Model):
    """
    User-Role association, optionally scoped to one apartment.

    At most one active assignment per (user, role, apartment). Assignments
    are deactivated (is_active=False, deactivated_at), never deleted.
    """
    __tablename__ = "user_roles"
    __table_args__ = (
        db.Index(
            "uq_user_roles_active",
            "user_id", "role_id", "apartment_id",
            unique=True,
            postgresql_where=db.text("is_active = true"),
            sqlite_where=db.text("is_active = 1"),
        ),
        db.Index("ix_user_roles_user_active", "user_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)
    apartment_id = db.Column(db.Integer, db.ForeignKey("apartments.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    assigned_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("role_assignments", lazy=True))
    role = db.relationship("Role", backref=db.backref("assignments", lazy=True))
    apartment = db.relationship("Apartment", backref=db.backref("role_assignments", lazy=True))
    assigned_by = db.relationship("User", foreign_keys=[assigned_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role_id": self.role_id,
            "role_name": self.role.role_name if self.role else None,
            "apartment_id": self.apartment_id,
            "is_active": self.is_active,
            "assigned_by_user_id": self.assigned_by_user_id,
            "assigned_at": to_utc_z(self.assigned_at),
            "deactivated_at": to_utc_z(self.deactivated_at) if self.deactivated_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer session tokens.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts come from config (SESSION_*_HOURS)
    - Revocable on logout or account deactivation
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
