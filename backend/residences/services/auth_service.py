# Overview: Service-layer operations for accounts, passwords and role assignment.

"""
Authentication and Account Service

WHY: Every ledger action must be attributable to one account. Uses bcrypt
for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters; uppercase, lowercase, digit and special char required
- Users log in with email or mobile number
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app

from ..errors import NotFoundError, StateError, ValidationError
from ..extensions import db
from ..models import Apartment, Role, RoleAssignment, User
from ..permissions import ROLE_DEFINITIONS
from ..time_utils import utcnow
from . import session_service


MOBILE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash (timing-safe via bcrypt.checkpw)."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    full_name: str,
    mobile_number: str,
    password: str,
    email: str | None = None,
    must_reset_password: bool = False,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: If fields are invalid or mobile/email already registered
        PasswordValidationError: If password doesn't meet requirements
    """
    full_name = (full_name or "").strip()
    mobile_number = (mobile_number or "").strip()
    email = (email or "").strip().lower() or None

    if len(full_name) < 2:
        raise ValidationError("Full name must be at least 2 characters")
    if not MOBILE_PATTERN.match(mobile_number):
        raise ValidationError("Mobile number must be 10-15 digits")
    if email is not None and "@" not in email:
        raise ValidationError("Invalid email address")

    conditions = [User.mobile_number == mobile_number]
    if email is not None:
        conditions.append(User.email == email)
    existing = db.session.query(User).filter(db.or_(*conditions)).first()
    if existing:
        raise ValidationError("Mobile number or email already registered")

    user = User(
        full_name=full_name,
        mobile_number=mobile_number,
        email=email,
        password_hash=hash_password(password),
        must_reset_password=must_reset_password,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate user with email or mobile number and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    identifier = (identifier or "").strip()
    user = db.session.query(User).filter(
        db.or_(User.email == identifier.lower(), User.mobile_number == identifier),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def change_password(user_id: int, current_password: str, new_password: str) -> User:
    user = require_active_user(user_id)
    if not verify_password(current_password or "", user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    user.must_reset_password = False
    return user


def require_active_user(user_id: int | None) -> User:
    """Load an active user or raise NotFoundError."""
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None or not user.is_active:
        raise NotFoundError(f"User {user_id} not found")
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.id).all()


def deactivate_user(user_id: int) -> User:
    """
    Soft-delete: keep the row (it is referenced by history), block logins
    and revoke every open session. Commits.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if user.is_active:
        user.is_active = False
        user.deactivated_at = utcnow()
    session_service.revoke_all_user_sessions(user.id, reason="Account deactivated")
    return user


def reactivate_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if not user.is_active:
        user.is_active = True
        user.deactivated_at = None
        db.session.commit()
    return user


def get_role(role_name: str) -> Role:
    role = db.session.query(Role).filter_by(role_name=role_name, is_active=True).first()
    if not role:
        raise NotFoundError(f"Role {role_name} not found")
    return role


def assign_role(
    user_id: int,
    role_name: str,
    apartment_id: int | None = None,
    assigned_by_user_id: int | None = None,
) -> RoleAssignment:
    """
    Assign role to user, optionally scoped to an apartment.

    Idempotent: an existing active assignment for the same
    (user, role, apartment) is returned unchanged.
    """
    role = get_role(role_name)
    require_active_user(user_id)
    if apartment_id is not None and db.session.get(Apartment, apartment_id) is None:
        raise NotFoundError(f"Apartment {apartment_id} not found")

    existing = db.session.query(RoleAssignment).filter_by(
        user_id=user_id,
        role_id=role.id,
        apartment_id=apartment_id,
        is_active=True,
    ).first()

    if existing:
        return existing

    assignment = RoleAssignment(
        user_id=user_id,
        role_id=role.id,
        apartment_id=apartment_id,
        assigned_by_user_id=assigned_by_user_id,
        is_active=True,
    )

    db.session.add(assignment)
    db.session.commit()
    return assignment


def deactivate_role_assignment(assignment_id: int) -> RoleAssignment:
    """Assignments are deactivated, never deleted."""
    assignment = db.session.get(RoleAssignment, assignment_id)
    if assignment is None:
        raise NotFoundError(f"Role assignment {assignment_id} not found")
    if not assignment.is_active:
        raise StateError(f"Role assignment {assignment_id} is already inactive")
    assignment.is_active = False
    assignment.deactivated_at = utcnow()
    db.session.commit()
    return assignment


def create_default_roles() -> int:
    """Create the fixed role set if missing. Returns count created."""
    created = 0
    for name, level, desc in ROLE_DEFINITIONS:
        existing = db.session.query(Role).filter_by(role_name=name).first()
        if not existing:
            db.session.add(Role(role_name=name, permission_level=level, description=desc))
            created += 1

    db.session.commit()
    return created
