"""
Ownership transfer tests.

Verifies:
- Request validation against the source's active share
- Approval moves the percentage without changing the apartment total
- Source ownership ends when its share reaches zero
- Resolved transfers are terminal
"""

from decimal import Decimal

import pytest

from residences.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from residences.models import CommitteeAction, OwnershipRelationship, OwnershipTransfer
from residences.permissions import OWNER, PRESIDENT
from residences.services import apartment_service, relationship_service, transfer_service


def _own(db_session, user, apartment, percentage, approver):
    relationship = relationship_service.propose_ownership(
        user_id=user.id, apartment_id=apartment.id, percentage=percentage, proposed_by_id=user.id,
    )
    db_session.commit()
    relationship_service.approve_ownership(
        relationship_id=relationship.id, approver_id=approver.id, approver_role=PRESIDENT,
    )
    db_session.commit()
    return relationship.id


def _request(db_session, apartment, source, target, percentage, **kwargs):
    transfer = transfer_service.request_transfer(
        apartment_id=apartment.id,
        from_user_id=source.id,
        to_user_id=target.id,
        percentage=percentage,
        requested_by_id=source.id,
        **kwargs,
    )
    db_session.commit()
    return transfer.id


def _resolve(db_session, transfer_id, approver, decision="approved", reason=None):
    transfer = transfer_service.resolve_transfer(
        transfer_id=transfer_id,
        decision=decision,
        approver_id=approver.id,
        approver_role=PRESIDENT,
        reason=reason,
    )
    db_session.commit()
    return transfer


def _active_share(db_session, user, apartment):
    relationship = relationship_service.active_relationship(OwnershipRelationship, user.id, apartment.id)
    return None if relationship is None else Decimal(str(relationship.ownership_percentage))


class TestRequestTransfer:

    def test_request_is_pending(self, db_session, apartment, owner_u1, owner_u2, president):
        _own(db_session, owner_u1, apartment, 100, president)

        transfer_id = _request(db_session, apartment, owner_u1, owner_u2, 40, transfer_value="2500000")

        transfer = db_session.get(OwnershipTransfer, transfer_id)
        assert transfer.status == "pending"
        assert transfer.transfer_value == Decimal("2500000.00")
        assert transfer.requested_by_user_id == owner_u1.id
        # nothing moves until approval
        assert _active_share(db_session, owner_u1, apartment) == Decimal("100")

    def test_cannot_transfer_more_than_owned(self, db_session, apartment, owner_u1, owner_u2, president):
        _own(db_session, owner_u1, apartment, 30, president)

        with pytest.raises(ValidationError):
            _request(db_session, apartment, owner_u1, owner_u2, 40)
        assert db_session.query(OwnershipTransfer).count() == 0

    def test_source_must_own(self, db_session, apartment, owner_u1, owner_u2):
        with pytest.raises(ValidationError):
            _request(db_session, apartment, owner_u1, owner_u2, 10)

    def test_same_user_refused(self, db_session, apartment, owner_u1, president):
        _own(db_session, owner_u1, apartment, 50, president)

        with pytest.raises(ValidationError):
            _request(db_session, apartment, owner_u1, owner_u1, 10)

    def test_negative_value_refused(self, db_session, apartment, owner_u1, owner_u2, president):
        _own(db_session, owner_u1, apartment, 50, president)

        with pytest.raises(ValidationError):
            _request(db_session, apartment, owner_u1, owner_u2, 10, transfer_value=-1)

    def test_unknown_target(self, db_session, apartment, owner_u1, president):
        _own(db_session, owner_u1, apartment, 50, president)

        with pytest.raises(NotFoundError):
            transfer_service.request_transfer(
                apartment_id=apartment.id, from_user_id=owner_u1.id, to_user_id=77777,
                percentage=10, requested_by_id=owner_u1.id,
            )

    def test_third_party_needs_manage(self, db_session, apartment, owner_u1, owner_u2, tenant_user, president):
        _own(db_session, owner_u1, apartment, 50, president)

        with pytest.raises(AuthorizationError):
            transfer_service.request_transfer(
                apartment_id=apartment.id, from_user_id=owner_u1.id, to_user_id=owner_u2.id,
                percentage=10, requested_by_id=tenant_user.id,
            )


class TestResolveTransfer:

    def test_partial_transfer_creates_destination(self, db_session, apartment, owner_u1, owner_u2, president):
        _own(db_session, owner_u1, apartment, 100, president)
        transfer_id = _request(db_session, apartment, owner_u1, owner_u2, 40)

        transfer = _resolve(db_session, transfer_id, president)

        assert transfer.status == "approved"
        assert transfer.approved_by_role == PRESIDENT
        assert transfer.transfer_completion_date is not None
        assert _active_share(db_session, owner_u1, apartment) == Decimal("60")
        assert _active_share(db_session, owner_u2, apartment) == Decimal("40")
        assert apartment_service.active_ownership_total(apartment.id) == Decimal("100.00")

        destination = relationship_service.active_relationship(OwnershipRelationship, owner_u2.id, apartment.id)
        assert destination.source_transfer_id == transfer_id
        assert destination.approved_by_user_id == president.id

    def test_full_transfer_ends_source_and_augments_destination(
        self, db_session, apartment, owner_u1, owner_u2, president,
    ):
        source_id = _own(db_session, owner_u1, apartment, 60, president)
        destination_id = _own(db_session, owner_u2, apartment, 40, president)
        transfer_id = _request(db_session, apartment, owner_u1, owner_u2, 60)

        _resolve(db_session, transfer_id, president)

        source = db_session.get(OwnershipRelationship, source_id)
        assert source.status == "ended"
        assert source.is_active is False
        assert source.end_date is not None

        destination = db_session.get(OwnershipRelationship, destination_id)
        assert destination.status == "active"
        assert Decimal(str(destination.ownership_percentage)) == Decimal("100")
        assert apartment_service.active_ownership_total(apartment.id) == Decimal("100.00")

    def test_resolving_twice_changes_nothing(self, db_session, apartment, owner_u1, owner_u2, president):
        _own(db_session, owner_u1, apartment, 100, president)
        transfer_id = _request(db_session, apartment, owner_u1, owner_u2, 40)
        _resolve(db_session, transfer_id, president)

        with pytest.raises(StateError):
            _resolve(db_session, transfer_id, president, decision="rejected", reason="changed my mind")

        transfer = db_session.get(OwnershipTransfer, transfer_id)
        assert transfer.status == "approved"
        assert transfer.rejection_reason is None
        assert _active_share(db_session, owner_u1, apartment) == Decimal("60")
        assert _active_share(db_session, owner_u2, apartment) == Decimal("40")

    def test_reject_moves_nothing(self, db_session, apartment, owner_u1, owner_u2, president):
        _own(db_session, owner_u1, apartment, 100, president)
        transfer_id = _request(db_session, apartment, owner_u1, owner_u2, 40)

        transfer = _resolve(db_session, transfer_id, president, decision="reject", reason="Unpaid dues")

        assert transfer.status == "rejected"
        assert transfer.rejection_reason == "Unpaid dues"
        assert _active_share(db_session, owner_u1, apartment) == Decimal("100")
        assert _active_share(db_session, owner_u2, apartment) is None

        action = db_session.query(CommitteeAction).filter_by(
            target_table="ownership_transfers", target_record_id=transfer_id,
        ).one()
        assert action.action_type == "rejection"

    def test_reject_requires_reason(self, db_session, apartment, owner_u1, owner_u2, president):
        _own(db_session, owner_u1, apartment, 100, president)
        transfer_id = _request(db_session, apartment, owner_u1, owner_u2, 40)

        with pytest.raises(ValidationError):
            _resolve(db_session, transfer_id, president, decision="rejected")
        assert db_session.get(OwnershipTransfer, transfer_id).status == "pending"

    def test_unknown_decision(self, db_session, apartment, owner_u1, owner_u2, president):
        _own(db_session, owner_u1, apartment, 100, president)
        transfer_id = _request(db_session, apartment, owner_u1, owner_u2, 40)

        with pytest.raises(ValidationError):
            _resolve(db_session, transfer_id, president, decision="maybe")

    def test_owner_cannot_approve(self, db_session, apartment, owner_u1, owner_u2, make_user, president):
        _own(db_session, owner_u1, apartment, 100, president)
        transfer_id = _request(db_session, apartment, owner_u1, owner_u2, 40)
        bystander = make_user("Other Owner", OWNER)

        with pytest.raises(AuthorizationError):
            transfer_service.resolve_transfer(
                transfer_id=transfer_id, decision="approved", approver_id=bystander.id, approver_role=OWNER,
            )
        assert db_session.get(OwnershipTransfer, transfer_id).status == "pending"

    def test_party_cannot_approve(self, db_session, apartment, owner_u1, make_user, president):
        buyer = make_user("Buyer President", OWNER, PRESIDENT)
        _own(db_session, owner_u1, apartment, 100, president)
        transfer_id = _request(db_session, apartment, owner_u1, buyer, 40)

        with pytest.raises(AuthorizationError):
            transfer_service.resolve_transfer(
                transfer_id=transfer_id, decision="approved", approver_id=buyer.id, approver_role=PRESIDENT,
            )

    def test_source_sold_in_between(self, db_session, apartment, owner_u1, owner_u2, make_user, president):
        third = make_user("Third Owner", OWNER)
        _own(db_session, owner_u1, apartment, 100, president)
        first = _request(db_session, apartment, owner_u1, owner_u2, 60)
        second = _request(db_session, apartment, owner_u1, third, 60)
        _resolve(db_session, first, president)

        with pytest.raises(ValidationError):
            _resolve(db_session, second, president)
        assert db_session.get(OwnershipTransfer, second).status == "pending"
        assert _active_share(db_session, third, apartment) is None

    def test_unknown_transfer(self, db_session, president):
        with pytest.raises(NotFoundError):
            _resolve(db_session, 31337, president)


class TestListTransfers:

    def test_filters(self, db_session, apartment, owner_u1, owner_u2, make_user, president):
        third = make_user("Third Owner", OWNER)
        _own(db_session, owner_u1, apartment, 100, president)
        first = _request(db_session, apartment, owner_u1, owner_u2, 10)
        _request(db_session, apartment, owner_u1, third, 10)
        _resolve(db_session, first, president)

        assert len(transfer_service.list_transfers(apartment_id=apartment.id)) == 2
        assert [t.id for t in transfer_service.list_transfers(user_id=owner_u2.id)] == [first]
        assert len(transfer_service.list_transfers(user_id=owner_u1.id)) == 2
        assert len(transfer_service.list_transfers(status="pending")) == 1
