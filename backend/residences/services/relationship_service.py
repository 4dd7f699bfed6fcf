# Overview: Service-layer operations for ownership and tenancy relationships.

"""
Relationship Ledger: ownership and tenancy lifecycle.

LIFECYCLE (same shape for both kinds):
1. pending: proposed, not in force
2. active: approved by a user acting under an approval-capable role
3. ended: deactivated (end_date set, is_active False)
4. rejected: refused by an approver; a reason is required

rejected and ended are terminal. A new claim is always a new row; a
terminal row is never brought back.

INVARIANTS:
- At most one active ownership and one active tenancy per (user, apartment).
  Enforced here and by partial unique indexes on is_active.
- Sum of active ownership percentages per apartment <= 100. Approval locks
  the apartment row before summing, so of two approvals racing for the
  same headroom the second to commit fails with CapacityError.

Every operation is keyword-only, runs inside run_with_retry, and leaves the
commit to the caller. A LedgerError rolls the session back and leaves a
DENIED audit row (see audit_service.audited_transition).
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import AuthorizationError, CapacityError, NotFoundError, StateError, ValidationError
from ..extensions import db
from ..models import Apartment, OwnershipRelationship, TenantRelationship
from ..models.audit import AUDIT_INSERT
from ..models.committee import ACTION_APPROVAL, ACTION_MODIFICATION, ACTION_REJECTION
from ..models.notifications import PRIORITY_HIGH, PRIORITY_MEDIUM
from ..models.relationships import (
    RELATIONSHIP_STATUS_ACTIVE,
    RELATIONSHIP_STATUS_ENDED,
    RELATIONSHIP_STATUS_PENDING,
    RELATIONSHIP_STATUS_REJECTED,
    RELATIONSHIP_TERMINAL_STATUSES,
)
from ..permissions import COMMITTEE_ROLES
from ..time_utils import today, utcnow
from ..validation import coerce_date, coerce_id, coerce_percentage
from . import apartment_service, audit_service, auth_service, committee_service, notification_service, permission_service
from .audit_service import audited_transition
from .concurrency import flush_or_conflict, get_locked, run_with_retry


OWNERSHIP_TABLE = "ownership_relationships"
TENANCY_TABLE = "tenant_relationships"

MAX_OWNERSHIP = Decimal("100")

_LABELS = {
    OwnershipRelationship: "Ownership",
    TenantRelationship: "Tenancy",
}


# =============================================================================
# SHARED HELPERS
# =============================================================================

def _label(model) -> str:
    return _LABELS[model]


def _require_reason(reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to reject a request")
    return reason


def acting_role_for(actor_id: int, capability: str, apartment_id: int) -> str:
    """
    Highest role the actor holds building-wide or for apartment_id that
    carries capability. Roles scoped to other apartments do not count.
    """
    role = permission_service.pick_acting_role(actor_id, capability, apartment_id)
    if role is None:
        raise AuthorizationError(f"User {actor_id} lacks {capability} for apartment {apartment_id}")
    return permission_service.authorize_role(
        user_id=actor_id, role_name=role, capability=capability, apartment_id=apartment_id,
    )


def _check_proposer(proposed_by_id: int | None, user_id: int, apartment_id: int) -> None:
    """
    Proposing for yourself needs PROPOSE_RELATIONSHIPS; for someone else,
    MANAGE_RELATIONSHIPS. proposed_by_id None means a system caller (CLI).
    """
    if proposed_by_id is None:
        return
    capability = "PROPOSE_RELATIONSHIPS" if proposed_by_id == user_id else "MANAGE_RELATIONSHIPS"
    acting_role_for(proposed_by_id, capability, apartment_id)


def active_relationship(model, user_id: int, apartment_id: int, *, lock: bool = False):
    query = db.session.query(model).filter(
        model.user_id == user_id,
        model.apartment_id == apartment_id,
        model.is_active.is_(True),
    )
    if lock:
        query = query.with_for_update()
    return query.first()


def _load(model, relationship_id: int):
    relationship = db.session.get(model, relationship_id)
    if relationship is None:
        raise NotFoundError(f"{_label(model)} relationship {relationship_id} not found")
    return relationship


def _authorize_decision(relationship, approver_id: int, approver_role: str, capability: str) -> str:
    role = permission_service.authorize_role(
        user_id=approver_id,
        role_name=approver_role,
        capability=capability,
        apartment_id=relationship.apartment_id,
    )
    if approver_id == relationship.user_id:
        raise AuthorizationError("Approvers cannot decide on their own ownership or tenancy")
    return role


def _lock_pending(model, relationship_id: int):
    """Re-read under lock; the status check must see committed state."""
    relationship = get_locked(model, relationship_id)
    if relationship is None:
        raise NotFoundError(f"{_label(model)} relationship {relationship_id} not found")
    if relationship.status != RELATIONSHIP_STATUS_PENDING:
        raise StateError(
            f"{_label(model)} relationship {relationship_id} is {relationship.status}, not pending"
        )
    return relationship


def _activate(relationship, approver_id: int, approver_role: str) -> None:
    relationship.status = RELATIONSHIP_STATUS_ACTIVE
    relationship.is_active = True
    relationship.approved_by_user_id = approver_id
    relationship.approved_by_role = approver_role
    relationship.approved_at = utcnow()


def _reject(relationship, approver_id: int, approver_role: str, reason: str) -> None:
    relationship.status = RELATIONSHIP_STATUS_REJECTED
    relationship.is_active = False
    relationship.rejection_reason = reason
    relationship.approved_by_user_id = approver_id
    relationship.approved_by_role = approver_role
    relationship.approved_at = utcnow()


def _record_proposal(model, table_name: str, relationship, proposed_by_id, message: str) -> None:
    audit_service.record_change(
        action=AUDIT_INSERT,
        table_name=table_name,
        record_id=relationship.id,
        user_id=proposed_by_id,
        new_value=relationship.to_dict(),
    )
    notification_service.notify_approvers(
        apartment_id=relationship.apartment_id,
        notification_type=f"{_label(model).lower()}_request",
        title=f"{_label(model)} approval needed",
        message=message,
        link_url=f"/approvals/{table_name}/{relationship.id}",
        exclude_user_ids=(relationship.user_id,),
        sent_by_user_id=proposed_by_id,
    )


def _decide(
    model,
    table_name: str,
    *,
    relationship_id: int,
    approver_id: int,
    approver_role: str,
    reason: str | None,
    approve: bool,
    before_activate=None,
):
    relationship = _load(model, relationship_id)
    role = _authorize_decision(relationship, approver_id, approver_role, "APPROVE_RELATIONSHIPS")

    # Lock order everywhere: apartment, then relationship/transfer rows.
    apartment = get_locked(Apartment, relationship.apartment_id)
    relationship = _lock_pending(model, relationship_id)
    before = relationship.to_dict()
    label = _label(model)

    if approve:
        if apartment is None or not apartment.is_active:
            raise StateError(f"Apartment {relationship.apartment_id} is not active")
        if active_relationship(model, relationship.user_id, relationship.apartment_id) is not None:
            raise ValidationError(
                f"User {relationship.user_id} already has an active {label.lower()} of apartment "
                f"{apartment.display_name}"
            )
        if before_activate is not None:
            before_activate(relationship, apartment)
        _activate(relationship, approver_id, role)
        action_type = ACTION_APPROVAL
        title = f"{label} approved"
        message = f"Your {label.lower()} of apartment {apartment.display_name} has been approved."
        priority = PRIORITY_MEDIUM
    else:
        _reject(relationship, approver_id, role, reason)
        action_type = ACTION_REJECTION
        display = apartment.display_name if apartment is not None else relationship.apartment_id
        title = f"{label} rejected"
        message = f"Your {label.lower()} request for apartment {display} was rejected: {reason}"
        priority = PRIORITY_HIGH

    flush_or_conflict(
        f"User {relationship.user_id} already has an active {label.lower()} of apartment "
        f"{relationship.apartment_id}"
    )

    committee_service.record_decision(
        record=relationship,
        table_name=table_name,
        action_type=action_type,
        actor_id=approver_id,
        actor_role=role,
        before=before,
        reason=reason,
        notify_user_ids=(relationship.user_id,),
        title=title,
        message=message,
        priority=priority,
        link_url=f"/relationships/{table_name}/{relationship.id}",
    )
    current_app.logger.info(
        "%s relationship %s %s by user %s (%s)",
        label, relationship.id, relationship.status, approver_id, role,
    )
    return relationship


def _deactivate(model, table_name: str, *, relationship_id: int, actor_id: int, end_date, reason):
    relationship = get_locked(model, relationship_id)
    if relationship is None:
        raise NotFoundError(f"{_label(model)} relationship {relationship_id} not found")
    role = acting_role_for(actor_id, "DEACTIVATE_RELATIONSHIPS", relationship.apartment_id)

    # Already terminal: no-op
    if relationship.status in RELATIONSHIP_TERMINAL_STATUSES:
        return relationship
    if relationship.status == RELATIONSHIP_STATUS_PENDING:
        raise StateError(
            f"{_label(model)} relationship {relationship_id} is pending; approve or reject it instead"
        )

    end = coerce_date("end_date", end_date) if end_date is not None else today()
    start = relationship.start_date if model is OwnershipRelationship else relationship.lease_start_date
    if end < start:
        raise ValidationError("end_date cannot be before the relationship start")

    before = relationship.to_dict()

    relationship.status = RELATIONSHIP_STATUS_ENDED
    relationship.is_active = False
    relationship.end_date = end
    relationship.ended_by_user_id = actor_id
    db.session.flush()

    apartment = db.session.get(Apartment, relationship.apartment_id)
    label = _label(model)
    committee_service.record_decision(
        record=relationship,
        table_name=table_name,
        action_type=ACTION_MODIFICATION,
        actor_id=actor_id,
        actor_role=role,
        before=before,
        reason=reason,
        details={"operation": "deactivate"},
        notify_user_ids=(relationship.user_id,) if relationship.user_id != actor_id else (),
        title=f"{label} ended",
        message=f"Your {label.lower()} of apartment {apartment.display_name} ended on {end.isoformat()}.",
        notification_type="relationship_ended",
    )
    return relationship


# =============================================================================
# OWNERSHIP
# =============================================================================

@audited_transition(OWNERSHIP_TABLE, actor="proposed_by_id")
def propose_ownership(
    *,
    user_id: int,
    apartment_id: int,
    percentage,
    start_date=None,
    proposed_by_id: int | None = None,
) -> OwnershipRelationship:
    """
    Create a pending ownership claim.

    Raises:
        ValidationError: percentage <= 0 or > 100, bad start_date, or the
            user already has an active ownership of the apartment
        NotFoundError: user or apartment missing / inactive
        AuthorizationError: proposer may not propose for user_id
    """
    user_id = coerce_id("user_id", user_id)
    apartment_id = coerce_id("apartment_id", apartment_id)
    pct = coerce_percentage(percentage)
    start = coerce_date("start_date", start_date) if start_date is not None else today()

    def _op():
        _check_proposer(proposed_by_id, user_id, apartment_id)
        user = auth_service.require_active_user(user_id)
        apartment = apartment_service.require_active_apartment(apartment_id)

        existing = active_relationship(OwnershipRelationship, user_id, apartment_id)
        if existing is not None:
            raise ValidationError(
                f"User {user_id} already has an active ownership of apartment {apartment.display_name}"
            )

        relationship = OwnershipRelationship(
            user_id=user_id,
            apartment_id=apartment_id,
            ownership_percentage=pct,
            start_date=start,
            status=RELATIONSHIP_STATUS_PENDING,
            is_active=False,
            proposed_by_user_id=proposed_by_id,
        )
        db.session.add(relationship)
        db.session.flush()

        _record_proposal(
            OwnershipRelationship, OWNERSHIP_TABLE, relationship, proposed_by_id,
            f"{user.full_name} requests {pct}% ownership of apartment {apartment.display_name}.",
        )
        return relationship

    return run_with_retry(_op)


def _check_capacity(relationship: OwnershipRelationship, apartment: Apartment) -> None:
    total = apartment_service.active_ownership_total(apartment.id)
    requested = Decimal(str(relationship.ownership_percentage))
    if total + requested > MAX_OWNERSHIP:
        raise CapacityError(
            f"Approving {requested}% would bring apartment {apartment.display_name} to "
            f"{total + requested}% ownership (currently {total}%, limit 100%)"
        )


@audited_transition(OWNERSHIP_TABLE, actor="approver_id", record="relationship_id", role="approver_role")
def approve_ownership(*, relationship_id: int, approver_id: int, approver_role: str) -> OwnershipRelationship:
    """
    Activate a pending ownership.

    Raises:
        AuthorizationError: approver does not actively hold an approval-capable
            approver_role, or is the prospective owner
        StateError: relationship is not pending
        CapacityError: active ownership of the apartment would exceed 100%
        ValidationError: the user already has an active ownership of the apartment
    """
    def _op():
        return _decide(
            OwnershipRelationship, OWNERSHIP_TABLE,
            relationship_id=relationship_id,
            approver_id=approver_id,
            approver_role=approver_role,
            reason=None,
            approve=True,
            before_activate=_check_capacity,
        )

    return run_with_retry(_op)


@audited_transition(OWNERSHIP_TABLE, actor="approver_id", record="relationship_id", role="approver_role")
def reject_ownership(
    *, relationship_id: int, approver_id: int, approver_role: str, reason: str,
) -> OwnershipRelationship:
    reason = _require_reason(reason)

    def _op():
        return _decide(
            OwnershipRelationship, OWNERSHIP_TABLE,
            relationship_id=relationship_id,
            approver_id=approver_id,
            approver_role=approver_role,
            reason=reason,
            approve=False,
        )

    return run_with_retry(_op)


@audited_transition(OWNERSHIP_TABLE, actor="actor_id", record="relationship_id")
def deactivate_ownership(
    *, relationship_id: int, actor_id: int, end_date=None, reason: str | None = None,
) -> OwnershipRelationship:
    """End an active ownership. Idempotent on ended/rejected rows."""
    def _op():
        return _deactivate(
            OwnershipRelationship, OWNERSHIP_TABLE,
            relationship_id=relationship_id, actor_id=actor_id, end_date=end_date, reason=reason,
        )

    return run_with_retry(_op)


@audited_transition(OWNERSHIP_TABLE, actor="actor_id", record="relationship_id", role="actor_role")
def modify_ownership(
    *,
    relationship_id: int,
    actor_id: int,
    actor_role: str,
    percentage=None,
    end_date=None,
    reason: str | None = None,
) -> OwnershipRelationship:
    """
    Change the share or planned end date of an active ownership.

    end_date here is a planned end only; the row stays active until
    deactivate_ownership ends it.

    Raises:
        AuthorizationError: actor_role lacks MODIFY_OWNERSHIP for the
            apartment, or the actor is the owner
        StateError: relationship is not active
        CapacityError: the new share would push active ownership past 100%
        ValidationError: bad percentage, or end_date before start_date
    """
    new_pct = coerce_percentage(percentage) if percentage is not None else None
    new_end = coerce_date("end_date", end_date) if end_date is not None else None
    if new_pct is None and new_end is None:
        raise ValidationError("Nothing to change: provide percentage and/or end_date")

    def _op():
        relationship = _load(OwnershipRelationship, relationship_id)
        role = _authorize_decision(relationship, actor_id, actor_role, "MODIFY_OWNERSHIP")

        apartment = get_locked(Apartment, relationship.apartment_id)
        relationship = get_locked(OwnershipRelationship, relationship_id)
        if relationship.status != RELATIONSHIP_STATUS_ACTIVE:
            raise StateError(f"Ownership relationship {relationship_id} is {relationship.status}, not active")
        if new_end is not None and new_end < relationship.start_date:
            raise ValidationError("end_date cannot be before start_date")

        current = Decimal(str(relationship.ownership_percentage)).quantize(Decimal("0.01"))
        if new_pct is not None and new_pct > current:
            others = apartment_service.active_ownership_total(apartment.id) - current
            if others + new_pct > MAX_OWNERSHIP:
                raise CapacityError(
                    f"Changing the share to {new_pct}% would bring apartment {apartment.display_name} to "
                    f"{others + new_pct}% ownership (other owners hold {others}%, limit 100%)"
                )

        before = relationship.to_dict()
        changes = {}
        if new_pct is not None and new_pct != current:
            changes["ownership_percentage"] = {"from": str(current), "to": str(new_pct)}
            relationship.ownership_percentage = new_pct
        if new_end is not None and new_end != relationship.end_date:
            changes["end_date"] = {"from": before["end_date"], "to": new_end.isoformat()}
            relationship.end_date = new_end
        if not changes:
            return relationship

        if role in COMMITTEE_ROLES:
            relationship.modified_by_committee = True
        db.session.flush()

        committee_service.record_decision(
            record=relationship,
            table_name=OWNERSHIP_TABLE,
            action_type=ACTION_MODIFICATION,
            actor_id=actor_id,
            actor_role=role,
            before=before,
            reason=reason,
            details={"changes": changes},
            notify_user_ids=(relationship.user_id,),
            title="Ownership updated",
            message=(
                f"Your ownership of apartment {apartment.display_name} is now "
                f"{relationship.ownership_percentage}%."
            ),
            notification_type="ownership_modified",
        )
        current_app.logger.info(
            "Ownership relationship %s modified by user %s (%s): %s",
            relationship.id, actor_id, role, ", ".join(sorted(changes)),
        )
        return relationship

    return run_with_retry(_op)


# =============================================================================
# TENANCY
# =============================================================================

@audited_transition(TENANCY_TABLE, actor="proposed_by_id")
def propose_tenancy(
    *,
    user_id: int,
    apartment_id: int,
    lease_start_date,
    lease_end_date,
    is_auto_renew: bool = False,
    proposed_by_id: int | None = None,
) -> TenantRelationship:
    """
    Create a pending tenancy.

    Raises:
        ValidationError: lease_end_date before lease_start_date, bad dates,
            or an active tenancy already exists for (user, apartment)
        NotFoundError: user or apartment missing / inactive
    """
    user_id = coerce_id("user_id", user_id)
    apartment_id = coerce_id("apartment_id", apartment_id)
    start = coerce_date("lease_start_date", lease_start_date)
    end = coerce_date("lease_end_date", lease_end_date)
    if end < start:
        raise ValidationError("lease_end_date cannot be before lease_start_date")
    if not isinstance(is_auto_renew, bool):
        raise ValidationError("is_auto_renew must be true or false")

    def _op():
        _check_proposer(proposed_by_id, user_id, apartment_id)
        user = auth_service.require_active_user(user_id)
        apartment = apartment_service.require_active_apartment(apartment_id)

        existing = active_relationship(TenantRelationship, user_id, apartment_id)
        if existing is not None:
            raise ValidationError(
                f"User {user_id} already has an active tenancy of apartment {apartment.display_name}"
            )

        relationship = TenantRelationship(
            user_id=user_id,
            apartment_id=apartment_id,
            lease_start_date=start,
            lease_end_date=end,
            is_auto_renew=is_auto_renew,
            status=RELATIONSHIP_STATUS_PENDING,
            is_active=False,
            proposed_by_user_id=proposed_by_id,
        )
        db.session.add(relationship)
        db.session.flush()

        _record_proposal(
            TenantRelationship, TENANCY_TABLE, relationship, proposed_by_id,
            f"{user.full_name} requests a lease of apartment {apartment.display_name} "
            f"from {start.isoformat()} to {end.isoformat()}.",
        )
        return relationship

    return run_with_retry(_op)


@audited_transition(TENANCY_TABLE, actor="approver_id", record="relationship_id", role="approver_role")
def approve_tenancy(*, relationship_id: int, approver_id: int, approver_role: str) -> TenantRelationship:
    """Activate a pending tenancy. Same authorization contract as approve_ownership."""
    def _op():
        return _decide(
            TenantRelationship, TENANCY_TABLE,
            relationship_id=relationship_id,
            approver_id=approver_id,
            approver_role=approver_role,
            reason=None,
            approve=True,
        )

    return run_with_retry(_op)


@audited_transition(TENANCY_TABLE, actor="approver_id", record="relationship_id", role="approver_role")
def reject_tenancy(
    *, relationship_id: int, approver_id: int, approver_role: str, reason: str,
) -> TenantRelationship:
    reason = _require_reason(reason)

    def _op():
        return _decide(
            TenantRelationship, TENANCY_TABLE,
            relationship_id=relationship_id,
            approver_id=approver_id,
            approver_role=approver_role,
            reason=reason,
            approve=False,
        )

    return run_with_retry(_op)


@audited_transition(TENANCY_TABLE, actor="actor_id", record="relationship_id", role="actor_role")
def modify_tenancy(
    *,
    relationship_id: int,
    actor_id: int,
    actor_role: str,
    lease_end_date=None,
    is_auto_renew: bool | None = None,
    reason: str | None = None,
) -> TenantRelationship:
    """
    Change an active lease (extend/shorten the end date, toggle auto-renew).

    A change made under a committee role sets modified_by_committee and
    appends a "modification" committee record.
    """
    new_end = coerce_date("lease_end_date", lease_end_date) if lease_end_date is not None else None
    if new_end is None and is_auto_renew is None:
        raise ValidationError("Nothing to change: provide lease_end_date and/or is_auto_renew")
    if is_auto_renew is not None and not isinstance(is_auto_renew, bool):
        raise ValidationError("is_auto_renew must be true or false")

    def _op():
        relationship = _load(TenantRelationship, relationship_id)
        role = _authorize_decision(relationship, actor_id, actor_role, "MODIFY_TENANCY")

        relationship = get_locked(TenantRelationship, relationship_id)
        if relationship.status != RELATIONSHIP_STATUS_ACTIVE:
            raise StateError(f"Tenancy relationship {relationship_id} is {relationship.status}, not active")
        if new_end is not None and new_end < relationship.lease_start_date:
            raise ValidationError("lease_end_date cannot be before lease_start_date")

        before = relationship.to_dict()
        changes = {}
        if new_end is not None and new_end != relationship.lease_end_date:
            changes["lease_end_date"] = {"from": before["lease_end_date"], "to": new_end.isoformat()}
            relationship.lease_end_date = new_end
        if is_auto_renew is not None and is_auto_renew != relationship.is_auto_renew:
            changes["is_auto_renew"] = {"from": relationship.is_auto_renew, "to": is_auto_renew}
            relationship.is_auto_renew = is_auto_renew
        if not changes:
            return relationship

        if role in COMMITTEE_ROLES:
            relationship.modified_by_committee = True
        db.session.flush()

        apartment = db.session.get(Apartment, relationship.apartment_id)
        committee_service.record_decision(
            record=relationship,
            table_name=TENANCY_TABLE,
            action_type=ACTION_MODIFICATION,
            actor_id=actor_id,
            actor_role=role,
            before=before,
            reason=reason,
            details={"changes": changes},
            notify_user_ids=(relationship.user_id,),
            title="Lease updated",
            message=(
                f"Your lease of apartment {apartment.display_name} now ends "
                f"{relationship.lease_end_date.isoformat()}"
                f"{' and renews automatically' if relationship.is_auto_renew else ''}."
            ),
            notification_type="lease_modified",
        )
        return relationship

    return run_with_retry(_op)


@audited_transition(TENANCY_TABLE, actor="actor_id", record="relationship_id")
def deactivate_tenancy(
    *, relationship_id: int, actor_id: int, end_date=None, reason: str | None = None,
) -> TenantRelationship:
    """End an active tenancy. Idempotent on ended/rejected rows."""
    def _op():
        return _deactivate(
            TenantRelationship, TENANCY_TABLE,
            relationship_id=relationship_id, actor_id=actor_id, end_date=end_date, reason=reason,
        )

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def _list(model, *, apartment_id=None, user_id=None, status=None, limit=100, offset=0):
    query = db.session.query(model)
    if apartment_id is not None:
        query = query.filter(model.apartment_id == apartment_id)
    if user_id is not None:
        query = query.filter(model.user_id == user_id)
    if status:
        query = query.filter(model.status == status)
    return query.order_by(model.created_at.desc(), model.id.desc()).offset(offset).limit(limit).all()


def list_ownerships(**filters) -> list[OwnershipRelationship]:
    return _list(OwnershipRelationship, **filters)


def list_tenancies(**filters) -> list[TenantRelationship]:
    return _list(TenantRelationship, **filters)


def get_ownership(relationship_id: int) -> OwnershipRelationship:
    return _load(OwnershipRelationship, relationship_id)


def get_tenancy(relationship_id: int) -> TenantRelationship:
    return _load(TenantRelationship, relationship_id)


def find_invariant_violations() -> list[str]:
    """
    Scan for stored states the ledger should never produce.

    Returns human-readable problems; empty list means consistent.
    """
    problems = []

    over = (
        db.session.query(
            OwnershipRelationship.apartment_id,
            db.func.sum(OwnershipRelationship.ownership_percentage),
        )
        .filter(OwnershipRelationship.is_active.is_(True))
        .group_by(OwnershipRelationship.apartment_id)
        .all()
    )
    for apartment_id, total in over:
        if Decimal(str(total)).quantize(Decimal("0.01")) > MAX_OWNERSHIP:
            problems.append(f"apartment {apartment_id}: active ownership totals {total}%")

    for model in (OwnershipRelationship, TenantRelationship):
        dupes = (
            db.session.query(model.user_id, model.apartment_id, db.func.count(model.id))
            .filter(model.is_active.is_(True))
            .group_by(model.user_id, model.apartment_id)
            .having(db.func.count(model.id) > 1)
            .all()
        )
        for user_id, apartment_id, count in dupes:
            problems.append(
                f"{model.__tablename__}: user {user_id} has {count} active rows on apartment {apartment_id}"
            )

        mismatched = (
            db.session.query(model.id)
            .filter(db.or_(
                db.and_(model.is_active.is_(True), model.status != RELATIONSHIP_STATUS_ACTIVE),
                db.and_(model.is_active.is_(False), model.status == RELATIONSHIP_STATUS_ACTIVE),
            ))
            .all()
        )
        for (record_id,) in mismatched:
            problems.append(f"{model.__tablename__} {record_id}: is_active disagrees with status")

    bad_leases = (
        db.session.query(TenantRelationship.id)
        .filter(TenantRelationship.lease_end_date < TenantRelationship.lease_start_date)
        .all()
    )
    for (record_id,) in bad_leases:
        problems.append(f"tenant_relationships {record_id}: lease ends before it starts")

    return problems
