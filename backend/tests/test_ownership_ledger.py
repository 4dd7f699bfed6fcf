"""
Ownership ledger tests.

Verifies:
- Proposal validation (percentage range, duplicates, missing records)
- Approval authorization (committee-capable role held, no self-approval)
- The 100% capacity limit per apartment
- Rejection and deactivation lifecycle, including idempotent re-deactivation
"""

from datetime import date
from decimal import Decimal

import pytest

from residences.errors import AuthorizationError, CapacityError, NotFoundError, StateError, ValidationError
from residences.models import AuditLog, CommitteeAction, OwnershipRelationship
from residences.permissions import ADMIN, OWNER, PRESIDENT, SECRETARY
from residences.services import apartment_service, relationship_service


def _propose(db_session, user, apartment, percentage):
    relationship = relationship_service.propose_ownership(
        user_id=user.id,
        apartment_id=apartment.id,
        percentage=percentage,
        proposed_by_id=user.id,
    )
    db_session.commit()
    return relationship.id


def _approve(db_session, relationship_id, approver, role=PRESIDENT):
    relationship = relationship_service.approve_ownership(
        relationship_id=relationship_id,
        approver_id=approver.id,
        approver_role=role,
    )
    db_session.commit()
    return relationship


# =============================================================================
# PROPOSAL
# =============================================================================


class TestProposeOwnership:

    def test_proposal_is_pending(self, db_session, apartment, owner_u1):
        rel_id = _propose(db_session, owner_u1, apartment, 60)

        relationship = db_session.get(OwnershipRelationship, rel_id)
        assert relationship.status == "pending"
        assert relationship.is_active is False
        assert relationship.ownership_percentage == Decimal("60.00")
        assert relationship.proposed_by_user_id == owner_u1.id

    def test_proposal_is_audited(self, db_session, apartment, owner_u1):
        rel_id = _propose(db_session, owner_u1, apartment, 25)

        rows = db_session.query(AuditLog).filter_by(
            table_name="ownership_relationships", record_id=rel_id, action="INSERT",
        ).all()
        assert len(rows) == 1
        assert rows[0].new_value["status"] == "pending"

    @pytest.mark.parametrize("percentage", [0, -5, 100.01, "100.004", "33.333", 150, "abc", True, None])
    def test_rejects_out_of_range_percentage(self, db_session, apartment, owner_u1, percentage):
        with pytest.raises(ValidationError):
            relationship_service.propose_ownership(
                user_id=owner_u1.id,
                apartment_id=apartment.id,
                percentage=percentage,
                proposed_by_id=owner_u1.id,
            )
        assert db_session.query(OwnershipRelationship).count() == 0

    def test_accepts_full_share(self, db_session, apartment, owner_u1):
        rel_id = _propose(db_session, owner_u1, apartment, "100")
        assert db_session.get(OwnershipRelationship, rel_id).ownership_percentage == Decimal("100.00")

    def test_trailing_zero_is_not_a_third_decimal(self, db_session, apartment, owner_u1):
        rel_id = _propose(db_session, owner_u1, apartment, "33.330")
        assert db_session.get(OwnershipRelationship, rel_id).ownership_percentage == Decimal("33.33")

    def test_ids_may_arrive_as_strings(self, db_session, apartment, owner_u1):
        relationship = relationship_service.propose_ownership(
            user_id=str(owner_u1.id),
            apartment_id=str(apartment.id),
            percentage=10,
            proposed_by_id=owner_u1.id,
        )
        db_session.commit()
        assert relationship.user_id == owner_u1.id
        assert relationship.apartment_id == apartment.id

    @pytest.mark.parametrize("bad_id", ["abc", "1.5", 0, -3, None])
    def test_malformed_ids_refused(self, db_session, apartment, owner_u1, bad_id):
        with pytest.raises(ValidationError):
            relationship_service.propose_ownership(
                user_id=bad_id, apartment_id=apartment.id, percentage=10, proposed_by_id=owner_u1.id,
            )

    def test_rejects_second_claim_while_active(self, db_session, apartment, owner_u1, president):
        _approve(db_session, _propose(db_session, owner_u1, apartment, 30), president)

        with pytest.raises(ValidationError, match="already has an active ownership"):
            relationship_service.propose_ownership(
                user_id=owner_u1.id, apartment_id=apartment.id, percentage=10, proposed_by_id=owner_u1.id,
            )

    def test_pending_proposals_may_coexist(self, db_session, apartment, owner_u1):
        _propose(db_session, owner_u1, apartment, 50)
        _propose(db_session, owner_u1, apartment, 40)

        assert db_session.query(OwnershipRelationship).filter_by(status="pending").count() == 2

    def test_unknown_apartment(self, db_session, owner_u1):
        with pytest.raises(NotFoundError):
            relationship_service.propose_ownership(
                user_id=owner_u1.id, apartment_id=99999, percentage=10, proposed_by_id=owner_u1.id,
            )

    def test_unknown_user(self, db_session, apartment, president):
        with pytest.raises(NotFoundError):
            relationship_service.propose_ownership(
                user_id=99999, apartment_id=apartment.id, percentage=10, proposed_by_id=president.id,
            )

    def test_proposing_for_someone_else_needs_manage(self, db_session, apartment, owner_u1, owner_u2):
        with pytest.raises(AuthorizationError):
            relationship_service.propose_ownership(
                user_id=owner_u2.id, apartment_id=apartment.id, percentage=10, proposed_by_id=owner_u1.id,
            )

    def test_committee_may_propose_for_someone_else(self, db_session, apartment, owner_u1, secretary):
        relationship = relationship_service.propose_ownership(
            user_id=owner_u1.id, apartment_id=apartment.id, percentage=10, proposed_by_id=secretary.id,
        )
        db_session.commit()
        assert relationship.proposed_by_user_id == secretary.id

    def test_approvers_are_notified(self, db_session, apartment, owner_u1, president, secretary):
        from residences.models import Notification

        _propose(db_session, owner_u1, apartment, 10)

        recipients = {n.user_id for n in db_session.query(Notification).filter_by(
            notification_type="ownership_request",
        )}
        assert {president.id, secretary.id} <= recipients
        assert owner_u1.id not in recipients


# =============================================================================
# APPROVAL AND CAPACITY
# =============================================================================


class TestApproveOwnership:

    def test_capacity_scenario(self, db_session, apartment, owner_u1, owner_u2, president):
        """60% approved, 50% refused, 40% accepted: the apartment ends at exactly 100%."""
        _approve(db_session, _propose(db_session, owner_u1, apartment, 60), president)

        over_id = _propose(db_session, owner_u2, apartment, 50)
        with pytest.raises(CapacityError):
            relationship_service.approve_ownership(
                relationship_id=over_id, approver_id=president.id, approver_role=PRESIDENT,
            )
        assert db_session.get(OwnershipRelationship, over_id).status == "pending"
        assert apartment_service.active_ownership_total(apartment.id) == Decimal("60.00")

        fits_id = _propose(db_session, owner_u2, apartment, 40)
        relationship = _approve(db_session, fits_id, president)

        assert relationship.status == "active"
        assert relationship.is_active is True
        assert apartment_service.active_ownership_total(apartment.id) == Decimal("100.00")

    def test_approval_stamps_approver(self, db_session, apartment, owner_u1, treasurer):
        relationship = _approve(
            db_session, _propose(db_session, owner_u1, apartment, 20), treasurer, role="Treasurer",
        )

        assert relationship.approved_by_user_id == treasurer.id
        assert relationship.approved_by_role == "Treasurer"
        assert relationship.approved_at is not None

    def test_committee_approval_is_recorded(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 20)
        _approve(db_session, rel_id, president)

        actions = db_session.query(CommitteeAction).filter_by(target_record_id=rel_id).all()
        assert len(actions) == 1
        assert actions[0].action_type == "approval"
        assert actions[0].committee_role == PRESIDENT
        assert actions[0].action_details["new_status"] == "active"

    def test_admin_approval_leaves_no_committee_row(self, db_session, apartment, owner_u1, admin):
        rel_id = _propose(db_session, owner_u1, apartment, 20)
        _approve(db_session, rel_id, admin, role="Admin")

        assert db_session.query(CommitteeAction).count() == 0
        update = db_session.query(AuditLog).filter_by(
            table_name="ownership_relationships", record_id=rel_id, action="UPDATE",
        ).one()
        assert update.user_role == "Admin"

    def test_non_committee_role_cannot_approve(self, db_session, apartment, owner_u1, owner_u2):
        rel_id = _propose(db_session, owner_u1, apartment, 60)

        with pytest.raises(AuthorizationError):
            relationship_service.approve_ownership(
                relationship_id=rel_id, approver_id=owner_u2.id, approver_role=OWNER,
            )
        assert db_session.get(OwnershipRelationship, rel_id).status == "pending"

    def test_claimed_role_must_be_held(self, db_session, apartment, owner_u1, owner_u2):
        rel_id = _propose(db_session, owner_u1, apartment, 60)

        with pytest.raises(AuthorizationError):
            relationship_service.approve_ownership(
                relationship_id=rel_id, approver_id=owner_u2.id, approver_role=PRESIDENT,
            )

    def test_self_approval_refused(self, db_session, apartment, president):
        rel_id = _propose(db_session, president, apartment, 25)

        with pytest.raises(AuthorizationError):
            relationship_service.approve_ownership(
                relationship_id=rel_id, approver_id=president.id, approver_role=PRESIDENT,
            )
        assert db_session.get(OwnershipRelationship, rel_id).status == "pending"

    def test_apartment_scoped_role(self, db_session, make_apartment, make_user, owner_u1):
        home = make_apartment(unit_number=1)
        other = make_apartment(unit_number=2)
        scoped = make_user("Scoped President", PRESIDENT, apartment_id=home.id)

        rel_id = _propose(db_session, owner_u1, other, 10)
        with pytest.raises(AuthorizationError):
            relationship_service.approve_ownership(
                relationship_id=rel_id, approver_id=scoped.id, approver_role=PRESIDENT,
            )

        home_rel_id = _propose(db_session, owner_u1, home, 10)
        assert _approve(db_session, home_rel_id, scoped).status == "active"

    def test_approving_twice_is_a_state_error(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 20)
        _approve(db_session, rel_id, president)

        with pytest.raises(StateError):
            relationship_service.approve_ownership(
                relationship_id=rel_id, approver_id=president.id, approver_role=PRESIDENT,
            )

    def test_second_active_row_refused_on_approval(self, db_session, apartment, owner_u1, president):
        first = _propose(db_session, owner_u1, apartment, 20)
        second = _propose(db_session, owner_u1, apartment, 30)
        _approve(db_session, first, president)

        with pytest.raises(ValidationError):
            relationship_service.approve_ownership(
                relationship_id=second, approver_id=president.id, approver_role=PRESIDENT,
            )
        assert db_session.get(OwnershipRelationship, second).status == "pending"

    def test_unique_index_conflict_is_a_validation_error(
        self, db_session, monkeypatch, apartment, owner_u1, president,
    ):
        first = _propose(db_session, owner_u1, apartment, 20)
        second = _propose(db_session, owner_u1, apartment, 30)
        _approve(db_session, first, president)
        # Skip the read-side check so the write hits the partial unique index
        monkeypatch.setattr(relationship_service, "active_relationship", lambda *args, **kwargs: None)

        with pytest.raises(ValidationError, match="already has an active ownership"):
            relationship_service.approve_ownership(
                relationship_id=second, approver_id=president.id, approver_role=PRESIDENT,
            )

        assert db_session.get(OwnershipRelationship, second).status == "pending"
        denied = db_session.query(AuditLog).filter_by(action="DENIED", record_id=second).one()
        assert denied.new_value == {"operation": "approve_ownership", "error": "VALIDATION_ERROR"}

    def test_unknown_relationship(self, db_session, president):
        with pytest.raises(NotFoundError):
            relationship_service.approve_ownership(
                relationship_id=424242, approver_id=president.id, approver_role=PRESIDENT,
            )

    def test_owner_is_notified(self, db_session, apartment, owner_u1, president):
        from residences.models import Notification

        _approve(db_session, _propose(db_session, owner_u1, apartment, 20), president)

        notes = db_session.query(Notification).filter_by(user_id=owner_u1.id).all()
        assert any(n.title == "Ownership approved" for n in notes)


# =============================================================================
# REJECTION
# =============================================================================


class TestRejectOwnership:

    def test_reject_requires_reason(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 20)

        with pytest.raises(ValidationError):
            relationship_service.reject_ownership(
                relationship_id=rel_id, approver_id=president.id, approver_role=PRESIDENT, reason="  ",
            )
        assert db_session.get(OwnershipRelationship, rel_id).status == "pending"

    def test_reject_is_terminal(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 20)
        relationship = relationship_service.reject_ownership(
            relationship_id=rel_id, approver_id=president.id, approver_role=PRESIDENT,
            reason="Sale deed missing",
        )
        db_session.commit()

        assert relationship.status == "rejected"
        assert relationship.rejection_reason == "Sale deed missing"
        assert relationship.approved_by_user_id == president.id

        with pytest.raises(StateError):
            relationship_service.approve_ownership(
                relationship_id=rel_id, approver_id=president.id, approver_role=PRESIDENT,
            )

        action = db_session.query(CommitteeAction).filter_by(target_record_id=rel_id).one()
        assert action.action_type == "rejection"
        assert action.reason == "Sale deed missing"


# =============================================================================
# DEACTIVATION
# =============================================================================


class TestDeactivateOwnership:

    def test_deactivate_frees_capacity(self, db_session, apartment, owner_u1, owner_u2, president):
        rel_id = _propose(db_session, owner_u1, apartment, 80)
        _approve(db_session, rel_id, president)

        relationship = relationship_service.deactivate_ownership(relationship_id=rel_id, actor_id=president.id)
        db_session.commit()
        assert relationship.status == "ended"
        assert relationship.is_active is False
        assert relationship.end_date is not None
        assert relationship.ended_by_user_id == president.id

        relationship = _approve(db_session, _propose(db_session, owner_u2, apartment, 50), president)
        assert relationship.status == "active"

    def test_deactivate_is_idempotent(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 80)
        _approve(db_session, rel_id, president)
        relationship_service.deactivate_ownership(relationship_id=rel_id, actor_id=president.id)
        db_session.commit()
        actions_before = db_session.query(CommitteeAction).count()
        audits_before = db_session.query(AuditLog).count()

        relationship = relationship_service.deactivate_ownership(relationship_id=rel_id, actor_id=president.id)
        db_session.commit()

        assert relationship.status == "ended"
        assert db_session.query(CommitteeAction).count() == actions_before
        assert db_session.query(AuditLog).count() == audits_before

    def test_deactivate_pending_is_state_error(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 80)

        with pytest.raises(StateError):
            relationship_service.deactivate_ownership(relationship_id=rel_id, actor_id=president.id)

    def test_end_date_before_start_refused(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 80)
        _approve(db_session, rel_id, president)

        with pytest.raises(ValidationError):
            relationship_service.deactivate_ownership(
                relationship_id=rel_id, actor_id=president.id, end_date="2000-01-01",
            )
        assert db_session.get(OwnershipRelationship, rel_id).status == "active"

    def test_owner_cannot_deactivate(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 80)
        _approve(db_session, rel_id, president)

        with pytest.raises(AuthorizationError):
            relationship_service.deactivate_ownership(relationship_id=rel_id, actor_id=owner_u1.id)

    def test_role_scoped_to_another_apartment(self, db_session, make_apartment, make_user, owner_u1, president):
        home = make_apartment(unit_number=1)
        other = make_apartment(unit_number=2)
        scoped = make_user("Scoped Secretary", SECRETARY, apartment_id=other.id)
        home_rel = _propose(db_session, owner_u1, home, 40)
        other_rel = _propose(db_session, owner_u1, other, 40)
        _approve(db_session, home_rel, president)
        _approve(db_session, other_rel, president)

        with pytest.raises(AuthorizationError):
            relationship_service.deactivate_ownership(relationship_id=home_rel, actor_id=scoped.id)
        assert db_session.get(OwnershipRelationship, home_rel).status == "active"

        relationship = relationship_service.deactivate_ownership(relationship_id=other_rel, actor_id=scoped.id)
        db_session.commit()
        assert relationship.status == "ended"

    def test_committee_deactivation_is_a_modification(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 80)
        _approve(db_session, rel_id, president)
        relationship_service.deactivate_ownership(
            relationship_id=rel_id, actor_id=president.id, reason="Unit sold",
        )
        db_session.commit()

        action = db_session.query(CommitteeAction).filter_by(
            target_record_id=rel_id, action_type="modification",
        ).one()
        assert action.action_details["operation"] == "deactivate"
        assert action.reason == "Unit sold"


# =============================================================================
# MODIFICATION
# =============================================================================


def _modify(db_session, relationship_id, actor, role=PRESIDENT, **changes):
    relationship = relationship_service.modify_ownership(
        relationship_id=relationship_id, actor_id=actor.id, actor_role=role, **changes,
    )
    db_session.commit()
    return relationship


class TestModifyOwnership:

    def test_committee_increase_within_capacity(self, db_session, apartment, owner_u1, owner_u2, president):
        rel_id = _propose(db_session, owner_u1, apartment, 50)
        _approve(db_session, rel_id, president)
        _approve(db_session, _propose(db_session, owner_u2, apartment, 30), president)

        relationship = _modify(db_session, rel_id, president, percentage="70", reason="Deed corrected")

        assert relationship.ownership_percentage == Decimal("70.00")
        assert relationship.modified_by_committee is True
        assert apartment_service.active_ownership_total(apartment.id) == Decimal("100.00")
        action = db_session.query(CommitteeAction).filter_by(
            target_record_id=rel_id, action_type="modification",
        ).one()
        assert action.action_details["changes"]["ownership_percentage"] == {"from": "50.00", "to": "70.00"}
        assert action.reason == "Deed corrected"

    def test_increase_past_capacity_refused(self, db_session, apartment, owner_u1, owner_u2, president):
        rel_id = _propose(db_session, owner_u1, apartment, 50)
        _approve(db_session, rel_id, president)
        _approve(db_session, _propose(db_session, owner_u2, apartment, 40), president)

        with pytest.raises(CapacityError):
            relationship_service.modify_ownership(
                relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT, percentage="60.01",
            )

        assert db_session.get(OwnershipRelationship, rel_id).ownership_percentage == Decimal("50.00")
        assert apartment_service.active_ownership_total(apartment.id) == Decimal("90.00")

    def test_decrease_always_fits(self, db_session, apartment, owner_u1, owner_u2, president):
        rel_id = _propose(db_session, owner_u1, apartment, 60)
        _approve(db_session, rel_id, president)
        _approve(db_session, _propose(db_session, owner_u2, apartment, 40), president)

        assert _modify(db_session, rel_id, president, percentage=10).ownership_percentage == Decimal("10.00")
        assert apartment_service.active_ownership_total(apartment.id) == Decimal("50.00")

    def test_admin_change_is_not_a_committee_change(self, db_session, apartment, owner_u1, president, admin):
        rel_id = _propose(db_session, owner_u1, apartment, 50)
        _approve(db_session, rel_id, president)

        relationship = _modify(db_session, rel_id, admin, role=ADMIN, percentage=25)

        assert relationship.modified_by_committee is False
        assert db_session.query(CommitteeAction).filter_by(
            target_record_id=rel_id, action_type="modification",
        ).count() == 0
        update = db_session.query(AuditLog).filter_by(
            table_name="ownership_relationships", record_id=rel_id, action="UPDATE", user_role=ADMIN,
        ).one()
        assert update.new_value["ownership_percentage"] == 25.0

    def test_planned_end_date_keeps_row_active(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 50)
        _approve(db_session, rel_id, president)

        relationship = _modify(db_session, rel_id, president, end_date="2099-12-31")

        assert relationship.status == "active"
        assert relationship.is_active is True
        assert relationship.end_date == date(2099, 12, 31)

    def test_end_before_start_refused(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 50)
        _approve(db_session, rel_id, president)

        with pytest.raises(ValidationError):
            relationship_service.modify_ownership(
                relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT, end_date="2000-01-01",
            )

    def test_unchanged_values_record_nothing(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 50)
        _approve(db_session, rel_id, president)
        audits_before = db_session.query(AuditLog).count()

        relationship = _modify(db_session, rel_id, president, percentage="50.00")

        assert relationship.modified_by_committee is False
        assert db_session.query(AuditLog).count() == audits_before

    def test_nothing_to_change(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 50)
        _approve(db_session, rel_id, president)

        with pytest.raises(ValidationError):
            relationship_service.modify_ownership(relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT)

    def test_pending_cannot_be_modified(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 50)

        with pytest.raises(StateError):
            relationship_service.modify_ownership(
                relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT, percentage=40,
            )

    def test_owner_cannot_modify_own_share(self, db_session, apartment, owner_u1, president):
        rel_id = _propose(db_session, owner_u1, apartment, 50)
        _approve(db_session, rel_id, president)

        with pytest.raises(AuthorizationError):
            relationship_service.modify_ownership(
                relationship_id=rel_id, actor_id=owner_u1.id, actor_role=OWNER, percentage=90,
            )

    def test_committee_member_cannot_modify_own_share(self, db_session, apartment, president, secretary):
        rel_id = _propose(db_session, president, apartment, 50)
        _approve(db_session, rel_id, secretary, role=SECRETARY)

        with pytest.raises(AuthorizationError):
            relationship_service.modify_ownership(
                relationship_id=rel_id, actor_id=president.id, actor_role=PRESIDENT, percentage=90,
            )
        assert db_session.get(OwnershipRelationship, rel_id).ownership_percentage == Decimal("50.00")


# =============================================================================
# QUERIES
# =============================================================================


class TestOwnershipQueries:

    def test_list_filters(self, db_session, make_apartment, owner_u1, owner_u2, president):
        first = make_apartment(unit_number=1)
        second = make_apartment(unit_number=2)
        _approve(db_session, _propose(db_session, owner_u1, first, 50), president)
        _propose(db_session, owner_u2, first, 20)
        _propose(db_session, owner_u2, second, 20)

        assert len(relationship_service.list_ownerships(apartment_id=first.id)) == 2
        assert len(relationship_service.list_ownerships(user_id=owner_u2.id)) == 2
        assert len(relationship_service.list_ownerships(status="active")) == 1

    def test_get_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            relationship_service.get_ownership(12345)

    def test_clean_ledger_has_no_violations(self, db_session, apartment, owner_u1, owner_u2, president):
        _approve(db_session, _propose(db_session, owner_u1, apartment, 60), president)
        _approve(db_session, _propose(db_session, owner_u2, apartment, 40), president)

        assert relationship_service.find_invariant_violations() == []

    def test_over_allocation_is_reported(self, db_session, apartment, owner_u1, owner_u2):
        for user, pct in ((owner_u1, "60"), (owner_u2, "50")):
            db_session.add(OwnershipRelationship(
                user_id=user.id,
                apartment_id=apartment.id,
                ownership_percentage=Decimal(pct),
                start_date=date.today(),
                status="active",
                is_active=True,
            ))
        db_session.commit()

        problems = relationship_service.find_invariant_violations()
        assert any("110" in p for p in problems)
