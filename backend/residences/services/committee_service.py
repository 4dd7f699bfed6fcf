# Overview: Service-layer operations for committee (President/Secretary/Treasurer) records.

"""
Committee Actions

committee_actions is append-only: rows are inserted, never updated or
deleted. Two writers:

- record_committee_action(): explicit API/CLI entry point; the member must
  actively hold a committee role, and an override additionally needs a
  role carrying OVERRIDE_DECISIONS.
- record_decision(): called by the ledger services after an approval,
  rejection or modification they have already authorized. It writes the
  committee row (when the decider acted as a committee member), the
  UPDATE audit row and the fire-and-forget notifications.
"""

from __future__ import annotations

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Apartment,
    CommitteeAction,
    OwnershipRelationship,
    OwnershipTransfer,
    TenantRelationship,
    User,
)
from ..models.audit import AUDIT_INSERT, AUDIT_UPDATE
from ..models.committee import ACTION_OVERRIDE, COMMITTEE_ACTION_TYPES
from ..models.notifications import PRIORITY_MEDIUM
from ..permissions import COMMITTEE_ROLES, role_has_capability
from . import audit_service, notification_service, permission_service
from .audit_service import audited_transition
from .concurrency import run_with_retry


COMMITTEE_TABLE = "committee_actions"

TARGET_MODELS = {
    "ownership_relationships": OwnershipRelationship,
    "tenant_relationships": TenantRelationship,
    "ownership_transfers": OwnershipTransfer,
    "apartments": Apartment,
    "users": User,
}


def target_apartment_id(target) -> int | None:
    """Apartment a committee record's target belongs to; None for users."""
    if isinstance(target, Apartment):
        return target.id
    return getattr(target, "apartment_id", None)


def append_committee_action(
    *,
    member_id: int,
    committee_role: str,
    action_type: str,
    target_table: str,
    target_record_id: int,
    details: dict | None = None,
    reason: str | None = None,
) -> CommitteeAction:
    """Insert one committee row in the current transaction. No authorization."""
    action = CommitteeAction(
        member_user_id=member_id,
        committee_role=committee_role,
        action_type=action_type,
        target_table=target_table,
        target_record_id=target_record_id,
        action_details=details,
        reason=reason,
    )
    db.session.add(action)
    db.session.flush()
    return action


@audited_transition(COMMITTEE_TABLE, actor="member_id", role="committee_role")
def record_committee_action(
    *,
    member_id: int,
    committee_role: str,
    action_type: str,
    target_table: str,
    target_record_id: int,
    details: dict | None = None,
    reason: str | None = None,
) -> CommitteeAction:
    """
    Append a committee record on behalf of a committee member.

    Raises:
        AuthorizationError: member does not actively hold committee_role,
            committee_role is not a committee role, or an override is
            recorded by a role without OVERRIDE_DECISIONS
        ValidationError: unknown action_type / target_table, bad details
        NotFoundError: target record does not exist
    """
    def _op():
        if committee_role not in COMMITTEE_ROLES:
            raise AuthorizationError(f"'{committee_role}' is not a committee role")
        if action_type not in COMMITTEE_ACTION_TYPES:
            raise ValidationError(f"action_type must be one of: {', '.join(COMMITTEE_ACTION_TYPES)}")
        model = TARGET_MODELS.get(target_table)
        if model is None:
            raise ValidationError(f"target_table must be one of: {', '.join(sorted(TARGET_MODELS))}")
        if details is not None and not isinstance(details, dict):
            raise ValidationError("details must be an object")
        target = db.session.get(model, target_record_id)
        if target is None:
            raise NotFoundError(f"{target_table} record {target_record_id} not found")

        # A role scoped to one apartment only covers records of that apartment
        permission_service.authorize_role(
            user_id=member_id,
            role_name=committee_role,
            capability="RECORD_COMMITTEE_ACTIONS",
            apartment_id=target_apartment_id(target),
        )
        if action_type == ACTION_OVERRIDE and not role_has_capability(committee_role, "OVERRIDE_DECISIONS"):
            raise AuthorizationError(f"Role '{committee_role}' cannot record overrides")

        action = append_committee_action(
            member_id=member_id,
            committee_role=committee_role,
            action_type=action_type,
            target_table=target_table,
            target_record_id=target_record_id,
            details=details,
            reason=reason,
        )
        audit_service.record_change(
            action=AUDIT_INSERT,
            table_name=COMMITTEE_TABLE,
            record_id=action.id,
            user_id=member_id,
            new_value=action.to_dict(),
            user_role=committee_role,
            reason=reason,
        )
        return action

    return run_with_retry(_op)


def record_decision(
    *,
    record,
    table_name: str,
    action_type: str,
    actor_id: int,
    actor_role: str | None,
    before: dict | None,
    reason: str | None = None,
    details: dict | None = None,
    notify_user_ids: tuple[int, ...] = (),
    title: str | None = None,
    message: str | None = None,
    notification_type: str = "approval_decision",
    priority: str = PRIORITY_MEDIUM,
    link_url: str | None = None,
) -> CommitteeAction | None:
    """
    Decision trail for an already-authorized ledger transition.

    Committee row only when actor_role is a committee role; the audit row
    always; notifications best-effort.
    """
    after = record.to_dict()
    committee_action = None
    if actor_role in COMMITTEE_ROLES:
        committee_action = append_committee_action(
            member_id=actor_id,
            committee_role=actor_role,
            action_type=action_type,
            target_table=table_name,
            target_record_id=record.id,
            details={
                "previous_status": (before or {}).get("status"),
                "new_status": after.get("status"),
                **(details or {}),
            },
            reason=reason,
        )

    audit_service.record_change(
        action=AUDIT_UPDATE,
        table_name=table_name,
        record_id=record.id,
        user_id=actor_id,
        old_value=before,
        new_value=after,
        user_role=actor_role,
        reason=reason,
    )

    if title and message:
        for user_id in notify_user_ids:
            notification_service.notify(
                user_id=user_id,
                notification_type=notification_type,
                title=title,
                message=message,
                priority=priority,
                link_url=link_url,
                sent_by_user_id=actor_id,
                sent_by_role=actor_role,
            )

    return committee_action


def list_committee_actions(
    *,
    member_id: int | None = None,
    action_type: str | None = None,
    target_table: str | None = None,
    target_record_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[CommitteeAction]:
    query = db.session.query(CommitteeAction)
    if member_id is not None:
        query = query.filter(CommitteeAction.member_user_id == member_id)
    if action_type:
        query = query.filter(CommitteeAction.action_type == action_type)
    if target_table:
        query = query.filter(CommitteeAction.target_table == target_table)
    if target_record_id is not None:
        query = query.filter(CommitteeAction.target_record_id == target_record_id)
    return (
        query.order_by(CommitteeAction.created_at.desc(), CommitteeAction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def action_counts_by_type(since=None) -> dict[str, int]:
    """Committee actions grouped by action_type (all four keys present)."""
    query = db.session.query(CommitteeAction.action_type, db.func.count(CommitteeAction.id))
    if since is not None:
        query = query.filter(CommitteeAction.created_at >= since)
    counts = {t: 0 for t in COMMITTEE_ACTION_TYPES}
    for action_type, count in query.group_by(CommitteeAction.action_type).all():
        counts[action_type] = count
    return counts
