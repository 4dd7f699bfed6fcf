# Overview: Service-layer operations for apartments; inventory of units.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, StateError, ValidationError
from ..extensions import db
from ..models import Apartment, OwnershipRelationship, TenantRelationship
from ..models.relationships import RELATIONSHIP_STATUS_ACTIVE, RELATIONSHIP_STATUS_PENDING
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_apartment, validate_payload
from .concurrency import get_locked


APARTMENT_POLICY = ModelValidationPolicy(
    writable_fields={"floor_number", "unit_type", "unit_number", "square_footage", "building_name"},
    required_on_create={"floor_number", "unit_type", "unit_number"},
)


def _unit_taken(floor_number: int, unit_type: str, unit_number: int, exclude_id: int | None = None) -> bool:
    query = db.session.query(Apartment).filter_by(
        floor_number=floor_number, unit_type=unit_type, unit_number=unit_number,
    )
    if exclude_id is not None:
        query = query.filter(Apartment.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def create_apartment(payload: dict) -> Apartment:
    patch = validate_payload(model=Apartment, payload=payload, policy=APARTMENT_POLICY, partial=False)
    enforce_rules_apartment(patch)

    if _unit_taken(patch["floor_number"], patch["unit_type"], patch["unit_number"]):
        raise ValidationError(
            f"Apartment {patch['floor_number']}{patch['unit_type']}-{patch['unit_number']} already exists"
        )

    apartment = Apartment(**patch)
    db.session.add(apartment)
    try:
        db.session.flush()
    except IntegrityError:
        # Concurrent insert of the same unit
        db.session.rollback()
        raise ValidationError("Apartment unit already exists")
    return apartment


def update_apartment(apartment_id: int, payload: dict) -> Apartment:
    apartment = get_apartment(apartment_id)
    patch = validate_payload(model=Apartment, payload=payload, policy=APARTMENT_POLICY, partial=True)
    enforce_rules_apartment(patch)

    floor_number = patch.get("floor_number", apartment.floor_number)
    unit_type = patch.get("unit_type", apartment.unit_type)
    unit_number = patch.get("unit_number", apartment.unit_number)
    if _unit_taken(floor_number, unit_type, unit_number, exclude_id=apartment.id):
        raise ValidationError(f"Apartment {floor_number}{unit_type}-{unit_number} already exists")

    for key, value in patch.items():
        setattr(apartment, key, value)
    return apartment


def deactivate_apartment(apartment_id: int) -> Apartment:
    """
    Retire an apartment. Refused while any relationship on it is active
    or pending, so no claim is left pointing at a retired unit.
    """
    apartment = get_locked(Apartment, apartment_id)
    if apartment is None:
        raise NotFoundError(f"Apartment {apartment_id} not found")
    if not apartment.is_active:
        raise StateError(f"Apartment {apartment.display_name} is already inactive")

    open_statuses = (RELATIONSHIP_STATUS_PENDING, RELATIONSHIP_STATUS_ACTIVE)
    open_claims = (
        db.session.query(OwnershipRelationship)
        .filter(OwnershipRelationship.apartment_id == apartment_id, OwnershipRelationship.status.in_(open_statuses))
        .count()
        + db.session.query(TenantRelationship)
        .filter(TenantRelationship.apartment_id == apartment_id, TenantRelationship.status.in_(open_statuses))
        .count()
    )
    if open_claims:
        raise StateError(
            f"Apartment {apartment.display_name} still has {open_claims} open ownership or tenancy records"
        )

    apartment.is_active = False
    apartment.deactivated_at = utcnow()
    return apartment


def get_apartment(apartment_id: int) -> Apartment:
    apartment = db.session.get(Apartment, apartment_id)
    if apartment is None:
        raise NotFoundError(f"Apartment {apartment_id} not found")
    return apartment


def require_active_apartment(apartment_id: int | None, *, lock: bool = False) -> Apartment:
    """Load an active apartment (optionally FOR UPDATE) or raise NotFoundError."""
    if apartment_id is None:
        raise NotFoundError("Apartment not found")
    if lock:
        apartment = get_locked(Apartment, apartment_id)
    else:
        apartment = db.session.get(Apartment, apartment_id)
    if apartment is None or not apartment.is_active:
        raise NotFoundError(f"Apartment {apartment_id} not found")
    return apartment


def list_apartments(
    *,
    include_inactive: bool = False,
    floor_number: int | None = None,
    unit_type: str | None = None,
    building_name: str | None = None,
) -> list[Apartment]:
    query = db.session.query(Apartment)
    if not include_inactive:
        query = query.filter(Apartment.is_active.is_(True))
    if floor_number is not None:
        query = query.filter(Apartment.floor_number == floor_number)
    if unit_type:
        query = query.filter(Apartment.unit_type == unit_type.upper())
    if building_name:
        query = query.filter(Apartment.building_name == building_name)
    return query.order_by(Apartment.floor_number, Apartment.unit_type, Apartment.unit_number).all()


def active_ownership_total(apartment_id: int) -> Decimal:
    """Sum of ownership_percentage over active relationships on the apartment."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(OwnershipRelationship.ownership_percentage), 0))
        .filter(
            OwnershipRelationship.apartment_id == apartment_id,
            OwnershipRelationship.is_active.is_(True),
        )
        .scalar()
    )
    return Decimal(str(total or 0)).quantize(Decimal("0.01"))


def apartment_detail(apartment_id: int) -> dict:
    """Apartment with its active owners and tenants."""
    apartment = get_apartment(apartment_id)
    owners = (
        db.session.query(OwnershipRelationship)
        .filter_by(apartment_id=apartment_id, is_active=True)
        .order_by(OwnershipRelationship.ownership_percentage.desc())
        .all()
    )
    tenants = db.session.query(TenantRelationship).filter_by(apartment_id=apartment_id, is_active=True).all()
    total = active_ownership_total(apartment_id)
    return {
        **apartment.to_dict(),
        "owners": [
            {**o.to_dict(), "full_name": o.user.full_name if o.user else None} for o in owners
        ],
        "tenants": [
            {**t.to_dict(), "full_name": t.user.full_name if t.user else None} for t in tenants
        ],
        "total_ownership_percentage": float(total),
        "available_ownership_percentage": float(Decimal("100") - total),
    }
