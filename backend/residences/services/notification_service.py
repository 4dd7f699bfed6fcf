# Overview: Service-layer operations for notifications; delivery, read state and stats.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Notification, RoleAssignment, Role, User
from ..models.notifications import NOTIFICATION_PRIORITIES, PRIORITY_MEDIUM
from ..permissions import roles_with_capability
from ..time_utils import utcnow


def notify(
    *,
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    priority: str = PRIORITY_MEDIUM,
    link_url: str | None = None,
    sent_by_user_id: int | None = None,
    sent_by_role: str | None = None,
) -> Notification | None:
    """
    Fire-and-forget delivery inside the caller's transaction.

    The insert runs in a SAVEPOINT: if it fails, only the savepoint is
    rolled back, a warning is logged and None is returned. The ledger
    change that triggered it still commits.
    """
    try:
        with db.session.begin_nested():
            notification = Notification(
                user_id=user_id,
                notification_type=notification_type,
                title=title,
                message=message,
                priority=priority,
                link_url=link_url,
                sent_by_user_id=sent_by_user_id,
                sent_by_role=sent_by_role,
            )
            db.session.add(notification)
        return notification
    except SQLAlchemyError:
        current_app.logger.warning(
            "Notification %r to user %s was not delivered", notification_type, user_id,
            exc_info=True,
        )
        return None


def approver_user_ids(apartment_id: int | None = None) -> list[int]:
    """Active users holding a role that may approve relationships."""
    role_names = roles_with_capability("APPROVE_RELATIONSHIPS")
    query = (
        db.session.query(RoleAssignment.user_id)
        .join(Role, Role.id == RoleAssignment.role_id)
        .join(User, User.id == RoleAssignment.user_id)
        .filter(
            RoleAssignment.is_active.is_(True),
            User.is_active.is_(True),
            Role.role_name.in_(role_names),
        )
    )
    if apartment_id is not None:
        query = query.filter(
            db.or_(RoleAssignment.apartment_id.is_(None), RoleAssignment.apartment_id == apartment_id)
        )
    return sorted({row[0] for row in query.all()})


def notify_approvers(
    *,
    apartment_id: int | None,
    notification_type: str,
    title: str,
    message: str,
    link_url: str | None = None,
    exclude_user_ids: tuple[int, ...] = (),
    sent_by_user_id: int | None = None,
) -> int:
    """Notify every approver of a new pending request. Returns count delivered."""
    delivered = 0
    for user_id in approver_user_ids(apartment_id):
        if user_id in exclude_user_ids:
            continue
        if notify(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            link_url=link_url,
            sent_by_user_id=sent_by_user_id,
        ):
            delivered += 1
    return delivered


def send_notification(
    *,
    user_ids: list[int],
    title: str,
    message: str,
    notification_type: str = "announcement",
    priority: str = PRIORITY_MEDIUM,
    link_url: str | None = None,
    sent_by_user_id: int | None = None,
    sent_by_role: str | None = None,
) -> list[Notification]:
    """
    Explicit send from the API (single or bulk).

    Unlike notify(), input problems are reported to the caller.
    """
    if not user_ids:
        raise ValidationError("At least one recipient is required")
    if priority not in NOTIFICATION_PRIORITIES:
        raise ValidationError(f"priority must be one of: {', '.join(NOTIFICATION_PRIORITIES)}")
    if not (title or "").strip() or not (message or "").strip():
        raise ValidationError("title and message are required")

    unique_ids = sorted(set(user_ids))
    found = {
        u.id for u in db.session.query(User).filter(User.id.in_(unique_ids), User.is_active.is_(True)).all()
    }
    missing = [uid for uid in unique_ids if uid not in found]
    if missing:
        raise NotFoundError(f"Users not found: {', '.join(str(m) for m in missing)}")

    created = []
    for user_id in unique_ids:
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type,
            title=title.strip(),
            message=message.strip(),
            priority=priority,
            link_url=link_url,
            sent_by_user_id=sent_by_user_id,
            sent_by_role=sent_by_role,
        )
        db.session.add(notification)
        created.append(notification)
    db.session.flush()
    return created


def list_notifications(
    user_id: int,
    *,
    unread_only: bool = False,
    priority: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    query = db.session.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    if priority:
        query = query.filter(Notification.priority == priority)
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def _get_own_notification(notification_id: int, user_id: int) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError(f"Notification {notification_id} not found")
    return notification


def mark_read(notification_id: int, user_id: int) -> Notification:
    notification = _get_own_notification(notification_id, user_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
    return notification


def mark_all_read(user_id: int) -> int:
    now = utcnow()
    unread = db.session.query(Notification).filter_by(user_id=user_id, is_read=False).all()
    for notification in unread:
        notification.is_read = True
        notification.read_at = now
    return len(unread)


def delete_notification(notification_id: int, user_id: int) -> None:
    notification = _get_own_notification(notification_id, user_id)
    db.session.delete(notification)


def notification_stats(user_id: int) -> dict:
    rows = (
        db.session.query(Notification.priority, Notification.is_read, db.func.count(Notification.id))
        .filter(Notification.user_id == user_id)
        .group_by(Notification.priority, Notification.is_read)
        .all()
    )
    total = 0
    unread = 0
    unread_by_priority = {p: 0 for p in NOTIFICATION_PRIORITIES}
    for priority, is_read, count in rows:
        total += count
        if not is_read:
            unread += count
            unread_by_priority[priority] = unread_by_priority.get(priority, 0) + count
    return {
        "total": total,
        "unread": unread,
        "unread_by_priority": unread_by_priority,
    }
