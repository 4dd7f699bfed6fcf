from .auth import User, Role, RoleAssignment, SessionToken
from .security import SecurityEvent
from .apartments import Apartment
from .relationships import OwnershipRelationship, TenantRelationship, OwnershipTransfer
from .committee import CommitteeAction
from .audit import AuditLog
from .notifications import Notification

__all__ = [
    'User', 'Role', 'RoleAssignment', 'SessionToken', 'SecurityEvent',
    'Apartment',
    'OwnershipRelationship', 'TenantRelationship', 'OwnershipTransfer',
    'CommitteeAction', 'AuditLog',
    'Notification',
]
