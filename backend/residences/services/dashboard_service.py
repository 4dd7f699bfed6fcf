# Overview: Service-layer read models for approval queues and role-specific dashboards.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import (
    Apartment,
    AuditLog,
    CommitteeAction,
    Notification,
    OwnershipRelationship,
    OwnershipTransfer,
    RoleAssignment,
    TenantRelationship,
    User,
)
from ..models.audit import AUDIT_DENIED, AUDIT_UPDATE
from ..models.notifications import PRIORITY_CRITICAL
from ..models.relationships import (
    RELATIONSHIP_STATUS_ACTIVE,
    RELATIONSHIP_STATUS_PENDING,
    TRANSFER_STATUS_PENDING,
)
from ..time_utils import today, to_utc_z, utcnow
from . import committee_service, notification_service, permission_service, transfer_service


LEDGER_TABLES = ("ownership_relationships", "tenant_relationships", "ownership_transfers")

LEASE_EXPIRY_WINDOW_DAYS = 30


def _with_names(rows) -> list[dict]:
    result = []
    for row in rows:
        item = row.to_dict()
        item["full_name"] = row.user.full_name if row.user else None
        item["apartment"] = row.apartment.display_name if row.apartment else None
        result.append(item)
    return result


def pending_approvals(apartment_id: int | None = None) -> dict:
    """Everything waiting on an approver, oldest first."""
    ownerships = db.session.query(OwnershipRelationship).filter(
        OwnershipRelationship.status == RELATIONSHIP_STATUS_PENDING
    )
    tenancies = db.session.query(TenantRelationship).filter(
        TenantRelationship.status == RELATIONSHIP_STATUS_PENDING
    )
    transfers = db.session.query(OwnershipTransfer).filter(
        OwnershipTransfer.status == TRANSFER_STATUS_PENDING
    )
    if apartment_id is not None:
        ownerships = ownerships.filter(OwnershipRelationship.apartment_id == apartment_id)
        tenancies = tenancies.filter(TenantRelationship.apartment_id == apartment_id)
        transfers = transfers.filter(OwnershipTransfer.apartment_id == apartment_id)

    ownerships = ownerships.order_by(OwnershipRelationship.created_at, OwnershipRelationship.id).all()
    tenancies = tenancies.order_by(TenantRelationship.created_at, TenantRelationship.id).all()
    transfers = transfers.order_by(OwnershipTransfer.request_date, OwnershipTransfer.id).all()

    return {
        "ownerships": _with_names(ownerships),
        "tenancies": _with_names(tenancies),
        "transfers": [t.to_dict() for t in transfers],
        "counts": {
            "ownerships": len(ownerships),
            "tenancies": len(tenancies),
            "transfers": len(transfers),
            "total": len(ownerships) + len(tenancies) + len(transfers),
        },
    }


def approval_history(*, limit: int = 50) -> list[dict]:
    """
    Recent decisions on ledger records, newest first.

    Committee rows and audit rows are merged so decisions made under an
    Admin role (which leave no committee row) still show up.
    """
    actions = committee_service.list_committee_actions(limit=limit)
    audit_rows = (
        db.session.query(AuditLog)
        .filter(
            AuditLog.table_name.in_(LEDGER_TABLES),
            AuditLog.action.in_((AUDIT_UPDATE, AUDIT_DENIED)),
        )
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )

    entries = [
        {
            "source": "committee",
            "occurred_at": a.created_at,
            "user_id": a.member_user_id,
            "role": a.committee_role,
            "action": a.action_type,
            "table_name": a.target_table,
            "record_id": a.target_record_id,
            "reason": a.reason,
        }
        for a in actions
    ]
    entries += [
        {
            "source": "audit",
            "occurred_at": row.created_at,
            "user_id": row.user_id,
            "role": row.user_role,
            "action": row.action,
            "table_name": row.table_name,
            "record_id": row.record_id,
            "reason": row.reason,
        }
        for row in audit_rows
    ]
    entries.sort(key=lambda e: e["occurred_at"], reverse=True)
    for entry in entries:
        entry["occurred_at"] = to_utc_z(entry["occurred_at"])
    return entries[:limit]


def _administration_section(user_id: int) -> dict:
    return {
        "users": {
            "total": db.session.query(User).count(),
            "active": db.session.query(User).filter(User.is_active.is_(True)).count(),
        },
        "apartments": {
            "total": db.session.query(Apartment).count(),
            "active": db.session.query(Apartment).filter(Apartment.is_active.is_(True)).count(),
        },
        "active_role_assignments": (
            db.session.query(RoleAssignment).filter(RoleAssignment.is_active.is_(True)).count()
        ),
        "pending_approvals": pending_approvals()["counts"],
    }


def committee_dashboard(user_id: int) -> dict:
    since = utcnow() - timedelta(days=30)
    critical_unread = (
        db.session.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
            Notification.priority == PRIORITY_CRITICAL,
        )
        .count()
    )
    return {
        "pending_approvals": pending_approvals()["counts"],
        "recent_actions": [a.to_dict() for a in committee_service.list_committee_actions(limit=10)],
        "actions_last_30_days": committee_service.action_counts_by_type(since=since),
        "my_actions": (
            db.session.query(CommitteeAction).filter(CommitteeAction.member_user_id == user_id).count()
        ),
        "critical_unread_notifications": critical_unread,
    }


def _my_relationships_section(user_id: int) -> dict:
    ownerships = (
        db.session.query(OwnershipRelationship)
        .filter(
            OwnershipRelationship.user_id == user_id,
            OwnershipRelationship.status.in_((RELATIONSHIP_STATUS_PENDING, RELATIONSHIP_STATUS_ACTIVE)),
        )
        .all()
    )
    tenancies = (
        db.session.query(TenantRelationship)
        .filter(
            TenantRelationship.user_id == user_id,
            TenantRelationship.status.in_((RELATIONSHIP_STATUS_PENDING, RELATIONSHIP_STATUS_ACTIVE)),
        )
        .all()
    )
    horizon = today() + timedelta(days=LEASE_EXPIRY_WINDOW_DAYS)
    expiring = [
        t for t in tenancies
        if t.status == RELATIONSHIP_STATUS_ACTIVE and not t.is_auto_renew and t.lease_end_date <= horizon
    ]
    return {
        "ownerships": _with_names(ownerships),
        "tenancies": _with_names(tenancies),
        "transfers": [
            t.to_dict() for t in transfer_service.list_transfers(user_id=user_id, status=TRANSFER_STATUS_PENDING)
        ],
        "leases_expiring_soon": [t.id for t in expiring],
    }


# (capability, section name, builder). A user sees each section whose
# capability one of their active roles carries.
DASHBOARD_SECTIONS = [
    ("MANAGE_USERS", "administration", _administration_section),
    ("VIEW_COMMITTEE_DASHBOARD", "committee", committee_dashboard),
    ("VIEW_RELATIONSHIPS", "my_relationships", _my_relationships_section),
]


def dashboard_for(user_id: int) -> dict:
    permissions = permission_service.get_user_permissions(user_id)
    sections = {
        name: builder(user_id)
        for capability, name, builder in DASHBOARD_SECTIONS
        if capability in permissions
    }
    return {
        "roles": permission_service.get_user_role_names(user_id),
        "sections": sections,
        "notifications": notification_service.notification_stats(user_id),
    }
