# Overview: Service-layer operations for ownership transfers between users of one apartment.

"""
Ownership Transfers

A transfer moves ownership_percentage from from_user to to_user on one
apartment. It is pending until an approver resolves it:

- approved: the source ownership is reduced (ended when it reaches 0),
  the destination's active ownership is increased or a new active row is
  created. The apartment total is unchanged by construction and is
  re-checked after the move.
- rejected: nothing moves; a reason is required.

Both outcomes are terminal. Resolving a terminal transfer raises
StateError and changes nothing.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import AuthorizationError, CapacityError, NotFoundError, StateError, ValidationError
from ..extensions import db
from ..models import Apartment, OwnershipRelationship, OwnershipTransfer
from ..models.audit import AUDIT_INSERT, AUDIT_UPDATE
from ..models.committee import ACTION_APPROVAL, ACTION_REJECTION
from ..models.notifications import PRIORITY_HIGH, PRIORITY_MEDIUM
from ..models.relationships import (
    RELATIONSHIP_STATUS_ACTIVE,
    RELATIONSHIP_STATUS_ENDED,
    TRANSFER_STATUS_APPROVED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_REJECTED,
)
from ..time_utils import today, utcnow
from ..validation import coerce_decimal, coerce_id, coerce_percentage
from . import apartment_service, audit_service, auth_service, committee_service, notification_service, permission_service
from .audit_service import audited_transition
from .concurrency import flush_or_conflict, get_locked, run_with_retry
from .relationship_service import MAX_OWNERSHIP, OWNERSHIP_TABLE, acting_role_for, active_relationship


TRANSFER_TABLE = "ownership_transfers"

_DECISIONS = {
    "approve": TRANSFER_STATUS_APPROVED,
    "approved": TRANSFER_STATUS_APPROVED,
    "reject": TRANSFER_STATUS_REJECTED,
    "rejected": TRANSFER_STATUS_REJECTED,
}


def _normalize_decision(decision) -> str:
    outcome = _DECISIONS.get(str(decision or "").strip().lower())
    if outcome is None:
        raise ValidationError("decision must be 'approved' or 'rejected'")
    return outcome


@audited_transition(TRANSFER_TABLE, actor="requested_by_id")
def request_transfer(
    *,
    apartment_id: int,
    from_user_id: int,
    to_user_id: int,
    percentage,
    requested_by_id: int | None = None,
    reason: str | None = None,
    transfer_value=None,
) -> OwnershipTransfer:
    """
    Create a pending transfer.

    Raises:
        ValidationError: bad percentage, from_user == to_user, negative
            transfer_value, or from_user does not actively own at least
            the percentage
        NotFoundError: apartment or either user missing / inactive
        AuthorizationError: requester is neither the source owner (with
            REQUEST_TRANSFERS) nor holds MANAGE_RELATIONSHIPS
    """
    pct = coerce_percentage(percentage)
    apartment_id = coerce_id("apartment_id", apartment_id)
    from_user_id = coerce_id("from_user_id", from_user_id)
    to_user_id = coerce_id("to_user_id", to_user_id)
    if from_user_id == to_user_id:
        raise ValidationError("A transfer needs two different users")
    value = None
    if transfer_value is not None:
        value = coerce_decimal("transfer_value", transfer_value).quantize(Decimal("0.01"))
        if value < 0:
            raise ValidationError("transfer_value cannot be negative")

    def _op():
        if requested_by_id is not None:
            capability = "REQUEST_TRANSFERS" if requested_by_id == from_user_id else "MANAGE_RELATIONSHIPS"
            acting_role_for(requested_by_id, capability, apartment_id)

        apartment = apartment_service.require_active_apartment(apartment_id)
        source_user = auth_service.require_active_user(from_user_id)
        target_user = auth_service.require_active_user(to_user_id)

        source = active_relationship(OwnershipRelationship, from_user_id, apartment_id)
        if source is None:
            raise ValidationError(
                f"User {from_user_id} has no active ownership of apartment {apartment.display_name}"
            )
        if Decimal(str(source.ownership_percentage)) < pct:
            raise ValidationError(
                f"User {from_user_id} owns {source.ownership_percentage}% of apartment "
                f"{apartment.display_name}, cannot transfer {pct}%"
            )

        transfer = OwnershipTransfer(
            apartment_id=apartment_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            ownership_percentage=pct,
            transfer_value=value,
            reason=(reason or "").strip() or None,
            status=TRANSFER_STATUS_PENDING,
            request_date=utcnow(),
            requested_by_user_id=requested_by_id,
        )
        db.session.add(transfer)
        db.session.flush()

        audit_service.record_change(
            action=AUDIT_INSERT,
            table_name=TRANSFER_TABLE,
            record_id=transfer.id,
            user_id=requested_by_id,
            new_value=transfer.to_dict(),
        )
        notification_service.notify_approvers(
            apartment_id=apartment_id,
            notification_type="transfer_request",
            title="Ownership transfer approval needed",
            message=(
                f"{source_user.full_name} requests to transfer {pct}% of apartment "
                f"{apartment.display_name} to {target_user.full_name}."
            ),
            link_url=f"/approvals/{TRANSFER_TABLE}/{transfer.id}",
            exclude_user_ids=(from_user_id, to_user_id),
            sent_by_user_id=requested_by_id,
        )
        return transfer

    return run_with_retry(_op)


def _apply_transfer(transfer: OwnershipTransfer, apartment: Apartment, approver_id: int, role: str) -> dict:
    """
    Move the percentage. Caller holds the apartment and transfer locks.

    Returns a summary for the committee details.
    """
    pct = Decimal(str(transfer.ownership_percentage))

    source = active_relationship(OwnershipRelationship, transfer.from_user_id, transfer.apartment_id, lock=True)
    if source is None or Decimal(str(source.ownership_percentage)) < pct:
        raise ValidationError(
            f"User {transfer.from_user_id} no longer owns {pct}% of apartment {apartment.display_name}"
        )
    auth_service.require_active_user(transfer.to_user_id)

    source_before = source.to_dict()
    remaining = Decimal(str(source.ownership_percentage)) - pct
    if remaining == 0:
        source.status = RELATIONSHIP_STATUS_ENDED
        source.is_active = False
        source.end_date = today()
        source.ended_by_user_id = approver_id
    else:
        source.ownership_percentage = remaining
    db.session.flush()
    audit_service.record_change(
        action=AUDIT_UPDATE,
        table_name=OWNERSHIP_TABLE,
        record_id=source.id,
        user_id=approver_id,
        old_value=source_before,
        new_value=source.to_dict(),
        user_role=role,
        reason=f"Ownership transfer {transfer.id}",
    )

    destination = active_relationship(OwnershipRelationship, transfer.to_user_id, transfer.apartment_id, lock=True)
    now = utcnow()
    if destination is not None:
        destination_before = destination.to_dict()
        destination.ownership_percentage = Decimal(str(destination.ownership_percentage)) + pct
        destination.source_transfer_id = transfer.id
        db.session.flush()
        audit_service.record_change(
            action=AUDIT_UPDATE,
            table_name=OWNERSHIP_TABLE,
            record_id=destination.id,
            user_id=approver_id,
            old_value=destination_before,
            new_value=destination.to_dict(),
            user_role=role,
            reason=f"Ownership transfer {transfer.id}",
        )
    else:
        destination = OwnershipRelationship(
            user_id=transfer.to_user_id,
            apartment_id=transfer.apartment_id,
            ownership_percentage=pct,
            start_date=today(),
            status=RELATIONSHIP_STATUS_ACTIVE,
            is_active=True,
            proposed_by_user_id=transfer.requested_by_user_id,
            approved_by_user_id=approver_id,
            approved_by_role=role,
            approved_at=now,
            source_transfer_id=transfer.id,
        )
        db.session.add(destination)
        flush_or_conflict(
            f"User {transfer.to_user_id} already has an active ownership of apartment {apartment.display_name}"
        )
        audit_service.record_change(
            action=AUDIT_INSERT,
            table_name=OWNERSHIP_TABLE,
            record_id=destination.id,
            user_id=approver_id,
            new_value=destination.to_dict(),
            user_role=role,
            reason=f"Ownership transfer {transfer.id}",
        )

    total = apartment_service.active_ownership_total(apartment.id)
    if total > MAX_OWNERSHIP:
        raise CapacityError(
            f"Transfer {transfer.id} would leave apartment {apartment.display_name} at {total}% ownership"
        )

    transfer.transfer_completion_date = now
    return {
        "source_relationship_id": source.id,
        "source_remaining_percentage": float(remaining),
        "destination_relationship_id": destination.id,
        "destination_percentage": float(destination.ownership_percentage),
    }


@audited_transition(TRANSFER_TABLE, actor="approver_id", record="transfer_id", role="approver_role")
def resolve_transfer(
    *,
    transfer_id: int,
    decision: str,
    approver_id: int,
    approver_role: str,
    reason: str | None = None,
) -> OwnershipTransfer:
    """
    Approve or reject a pending transfer.

    Raises:
        ValidationError: unknown decision, rejection without a reason, or
            the source no longer owns the percentage
        AuthorizationError: approver lacks an approval-capable role or is
            a party to the transfer
        StateError: transfer already approved or rejected
        CapacityError: apartment total would exceed 100% after the move
    """
    outcome = _normalize_decision(decision)
    reason = (reason or "").strip() or None
    if outcome == TRANSFER_STATUS_REJECTED and not reason:
        raise ValidationError("A reason is required to reject a request")

    def _op():
        transfer = db.session.get(OwnershipTransfer, transfer_id)
        if transfer is None:
            raise NotFoundError(f"Ownership transfer {transfer_id} not found")

        role = permission_service.authorize_role(
            user_id=approver_id,
            role_name=approver_role,
            capability="APPROVE_RELATIONSHIPS",
            apartment_id=transfer.apartment_id,
        )
        if approver_id in (transfer.from_user_id, transfer.to_user_id):
            raise AuthorizationError("Approvers cannot decide on a transfer they are party to")

        apartment = get_locked(Apartment, transfer.apartment_id)
        transfer = get_locked(OwnershipTransfer, transfer_id)
        if transfer.status != TRANSFER_STATUS_PENDING:
            raise StateError(f"Ownership transfer {transfer_id} is already {transfer.status}")

        before = transfer.to_dict()
        details = {}
        if outcome == TRANSFER_STATUS_APPROVED:
            details = _apply_transfer(transfer, apartment, approver_id, role)
        else:
            transfer.rejection_reason = reason

        transfer.status = outcome
        transfer.approved_by_user_id = approver_id
        transfer.approved_by_role = role
        transfer.approval_date = utcnow()
        db.session.flush()

        approved = outcome == TRANSFER_STATUS_APPROVED
        committee_service.record_decision(
            record=transfer,
            table_name=TRANSFER_TABLE,
            action_type=ACTION_APPROVAL if approved else ACTION_REJECTION,
            actor_id=approver_id,
            actor_role=role,
            before=before,
            reason=reason,
            details=details,
            notify_user_ids=(transfer.from_user_id, transfer.to_user_id),
            title="Ownership transfer approved" if approved else "Ownership transfer rejected",
            message=(
                f"The transfer of {transfer.ownership_percentage}% of apartment "
                f"{apartment.display_name} was {outcome}"
                + (f": {reason}" if reason and not approved else ".")
            ),
            notification_type="transfer_decision",
            priority=PRIORITY_MEDIUM if approved else PRIORITY_HIGH,
            link_url=f"/transfers/{transfer.id}",
        )
        current_app.logger.info(
            "Ownership transfer %s %s by user %s (%s)", transfer.id, outcome, approver_id, role,
        )
        return transfer

    return run_with_retry(_op)


def get_transfer(transfer_id: int) -> OwnershipTransfer:
    transfer = db.session.get(OwnershipTransfer, transfer_id)
    if transfer is None:
        raise NotFoundError(f"Ownership transfer {transfer_id} not found")
    return transfer


def list_transfers(
    *,
    apartment_id: int | None = None,
    user_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[OwnershipTransfer]:
    query = db.session.query(OwnershipTransfer)
    if apartment_id is not None:
        query = query.filter(OwnershipTransfer.apartment_id == apartment_id)
    if user_id is not None:
        query = query.filter(
            db.or_(OwnershipTransfer.from_user_id == user_id, OwnershipTransfer.to_user_id == user_id)
        )
    if status:
        query = query.filter(OwnershipTransfer.status == status)
    return (
        query.order_by(OwnershipTransfer.request_date.desc(), OwnershipTransfer.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
