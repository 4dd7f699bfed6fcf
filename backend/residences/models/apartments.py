from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Apartment(db.Model):
    """
    A unit identified by (floor_number, unit_type, unit_number).

    The apartment row doubles as the lock target for ownership capacity
    checks: approvals lock it before summing active percentages.
    """
    __tablename__ = "apartments"
    __table_args__ = (
        db.UniqueConstraint("floor_number", "unit_type", "unit_number", name="uq_apartments_unit"),
        db.CheckConstraint("floor_number >= 1", name="ck_apartments_floor"),
        db.Index("ix_apartments_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    floor_number = db.Column(db.Integer, nullable=False)
    unit_type = db.Column(db.String(10), nullable=False)
    unit_number = db.Column(db.Integer, nullable=False)
    square_footage = db.Column(db.Integer, nullable=True)
    building_name = db.Column(db.String(100), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        server_default=db.func.now(), onupdate=db.func.now(),
    )

    @property
    def display_name(self) -> str:
        return f"{self.floor_number}{self.unit_type}-{self.unit_number}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "floor_number": self.floor_number,
            "unit_type": self.unit_type,
            "unit_number": self.unit_number,
            "display_name": self.display_name,
            "square_footage": self.square_footage,
            "building_name": self.building_name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
