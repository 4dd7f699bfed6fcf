"""
Tenancy ledger tests.

Verifies:
- Lease window validation happens before any write
- Approval, rejection and deactivation follow the ownership contract
- Committee lease modifications set modified_by_committee
"""

import pytest

from residences.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from residences.models import CommitteeAction, TenantRelationship
from residences.permissions import ADMIN, PRESIDENT, SECRETARY, TENANT
from residences.services import relationship_service


def _propose(db_session, user, apartment, start="2026-01-01", end="2026-12-31", auto_renew=False):
    relationship = relationship_service.propose_tenancy(
        user_id=user.id,
        apartment_id=apartment.id,
        lease_start_date=start,
        lease_end_date=end,
        is_auto_renew=auto_renew,
        proposed_by_id=user.id,
    )
    db_session.commit()
    return relationship.id


def _active_tenancy(db_session, user, apartment, approver, **kwargs):
    rel_id = _propose(db_session, user, apartment, **kwargs)
    relationship_service.approve_tenancy(relationship_id=rel_id, approver_id=approver.id, approver_role=PRESIDENT)
    db_session.commit()
    return rel_id


class TestProposeTenancy:

    def test_lease_end_before_start_writes_nothing(self, db_session, apartment, tenant_user):
        with pytest.raises(ValidationError):
            relationship_service.propose_tenancy(
                user_id=tenant_user.id,
                apartment_id=apartment.id,
                lease_start_date="2026-06-01",
                lease_end_date="2026-05-31",
                proposed_by_id=tenant_user.id,
            )
        assert db_session.query(TenantRelationship).count() == 0

    def test_single_day_lease_allowed(self, db_session, apartment, tenant_user):
        rel_id = _propose(db_session, tenant_user, apartment, start="2026-06-01", end="2026-06-01")
        assert db_session.get(TenantRelationship, rel_id).status == "pending"

    @pytest.mark.parametrize("start,end", [("not-a-date", "2026-12-31"), ("2026-01-01", None), ("2026-13-01", "2026-12-31")])
    def test_malformed_dates(self, db_session, apartment, tenant_user, start, end):
        with pytest.raises(ValidationError):
            relationship_service.propose_tenancy(
                user_id=tenant_user.id,
                apartment_id=apartment.id,
                lease_start_date=start,
                lease_end_date=end,
                proposed_by_id=tenant_user.id,
            )

    def test_auto_renew_must_be_boolean(self, db_session, apartment, tenant_user):
        with pytest.raises(ValidationError):
            relationship_service.propose_tenancy(
                user_id=tenant_user.id,
                apartment_id=apartment.id,
                lease_start_date="2026-01-01",
                lease_end_date="2026-12-31",
                is_auto_renew="yes",
                proposed_by_id=tenant_user.id,
            )

    def test_duplicate_active_tenancy_refused(self, db_session, apartment, tenant_user, president):
        _active_tenancy(db_session, tenant_user, apartment, president)

        with pytest.raises(ValidationError, match="already has an active tenancy"):
            _propose(db_session, tenant_user, apartment)

    def test_inactive_apartment(self, db_session, apartment, tenant_user):
        apartment.is_active = False
        db_session.commit()

        with pytest.raises(NotFoundError):
            _propose(db_session, tenant_user, apartment)


class TestDecideTenancy:

    def test_approve_by_secretary(self, db_session, apartment, tenant_user, secretary):
        rel_id = _propose(db_session, tenant_user, apartment, auto_renew=True)
        relationship = relationship_service.approve_tenancy(
            relationship_id=rel_id, approver_id=secretary.id, approver_role=SECRETARY,
        )
        db_session.commit()

        assert relationship.status == "active"
        assert relationship.is_auto_renew is True
        assert relationship.approved_by_role == SECRETARY

    def test_owner_cannot_approve(self, db_session, apartment, tenant_user, owner_u1):
        rel_id = _propose(db_session, tenant_user, apartment)

        with pytest.raises(AuthorizationError):
            relationship_service.approve_tenancy(
                relationship_id=rel_id, approver_id=owner_u1.id, approver_role="Owner",
            )
        assert db_session.get(TenantRelationship, rel_id).status == "pending"

    def test_missing_role_refused(self, db_session, apartment, tenant_user, president):
        rel_id = _propose(db_session, tenant_user, apartment)

        with pytest.raises(AuthorizationError):
            relationship_service.approve_tenancy(
                relationship_id=rel_id, approver_id=president.id, approver_role=None,
            )

    def test_reject(self, db_session, apartment, tenant_user, president):
        rel_id = _propose(db_session, tenant_user, apartment)
        relationship = relationship_service.reject_tenancy(
            relationship_id=rel_id, approver_id=president.id, approver_role=PRESIDENT,
            reason="Owner did not consent",
        )
        db_session.commit()

        assert relationship.status == "rejected"
        assert relationship.is_active is False

    def test_reject_without_reason(self, db_session, apartment, tenant_user, president):
        rel_id = _propose(db_session, tenant_user, apartment)

        with pytest.raises(ValidationError):
            relationship_service.reject_tenancy(
                relationship_id=rel_id, approver_id=president.id, approver_role=PRESIDENT, reason=None,
            )


class TestDeactivateTenancy:

    def test_deactivate_then_noop(self, db_session, apartment, tenant_user, president):
        rel_id = _active_tenancy(db_session, tenant_user, apartment, president)

        relationship = relationship_service.deactivate_tenancy(
            relationship_id=rel_id, actor_id=president.id, end_date="2026-03-31",
        )
        db_session.commit()
        assert relationship.status == "ended"
        assert relationship.end_date.isoformat() == "2026-03-31"

        again = relationship_service.deactivate_tenancy(
            relationship_id=rel_id, actor_id=president.id, end_date="2026-04-30",
        )
        assert again.end_date.isoformat() == "2026-03-31"

    def test_end_before_lease_start(self, db_session, apartment, tenant_user, president):
        rel_id = _active_tenancy(db_session, tenant_user, apartment, president)

        with pytest.raises(ValidationError):
            relationship_service.deactivate_tenancy(
                relationship_id=rel_id, actor_id=president.id, end_date="2025-12-31",
            )

    def test_rejected_is_noop(self, db_session, apartment, tenant_user, president):
        rel_id = _propose(db_session, tenant_user, apartment)
        relationship_service.reject_tenancy(
            relationship_id=rel_id, approver_id=president.id, approver_role=PRESIDENT, reason="No",
        )
        db_session.commit()

        relationship = relationship_service.deactivate_tenancy(relationship_id=rel_id, actor_id=president.id)
        assert relationship.status == "rejected"
        assert relationship.end_date is None

    def test_unknown_tenancy(self, db_session, president):
        with pytest.raises(NotFoundError):
            relationship_service.deactivate_tenancy(relationship_id=999, actor_id=president.id)


class TestModifyTenancy:

    def test_committee_extension(self, db_session, apartment, tenant_user, president):
        rel_id = _active_tenancy(db_session, tenant_user, apartment, president)

        relationship = relationship_service.modify_tenancy(
            relationship_id=rel_id,
            actor_id=president.id,
            actor_role=PRESIDENT,
            lease_end_date="2027-06-30",
            reason="Extension agreed",
        )
        db_session.commit()

        assert relationship.lease_end_date.isoformat() == "2027-06-30"
        assert relationship.modified_by_committee is True

        action = db_session.query(CommitteeAction).filter_by(
            target_record_id=rel_id, action_type="modification",
        ).one()
        assert action.action_details["changes"]["lease_end_date"] == {"from": "2026-12-31", "to": "2027-06-30"}

    def test_admin_change_is_not_a_committee_change(self, db_session, apartment, tenant_user, president, admin):
        rel_id = _active_tenancy(db_session, tenant_user, apartment, president)

        relationship = relationship_service.modify_tenancy(
            relationship_id=rel_id, actor_id=admin.id, actor_role=ADMIN, is_auto_renew=True,
        )
        db_session.commit()

        assert relationship.is_auto_renew is True
        assert relationship.modified_by_committee is False
        assert db_session.query(CommitteeAction).filter_by(action_type="modification").count() == 0

    def test_unchanged_values_record_nothing(self, db_session, apartment, tenant_user, president):
        rel_id = _active_tenancy(db_session, tenant_user, apartment, president)
        before = db_session.query(CommitteeAction).count()

        relationship = relationship_service.modify_tenancy(
            relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT, lease_end_date="2026-12-31",
        )

        assert relationship.modified_by_committee is False
        assert db_session.query(CommitteeAction).count() == before

    def test_nothing_to_change(self, db_session, apartment, tenant_user, president):
        rel_id = _active_tenancy(db_session, tenant_user, apartment, president)

        with pytest.raises(ValidationError):
            relationship_service.modify_tenancy(relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT)

    def test_pending_cannot_be_modified(self, db_session, apartment, tenant_user, president):
        rel_id = _propose(db_session, tenant_user, apartment)

        with pytest.raises(StateError):
            relationship_service.modify_tenancy(
                relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT, is_auto_renew=True,
            )

    def test_tenant_cannot_modify_own_lease(self, db_session, apartment, tenant_user, president):
        rel_id = _active_tenancy(db_session, tenant_user, apartment, president)

        with pytest.raises(AuthorizationError):
            relationship_service.modify_tenancy(
                relationship_id=rel_id, actor_id=tenant_user.id, actor_role=TENANT, lease_end_date="2027-12-31",
            )

    def test_end_before_start_refused(self, db_session, apartment, tenant_user, president):
        rel_id = _active_tenancy(db_session, tenant_user, apartment, president)

        with pytest.raises(ValidationError):
            relationship_service.modify_tenancy(
                relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT, lease_end_date="2025-01-01",
            )
