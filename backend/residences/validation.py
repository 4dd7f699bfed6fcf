from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_date, parse_iso_datetime


PERCENT_QUANT = Decimal("0.01")
MAX_PERCENT = Decimal("100")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or 'e' in stripped.lower() or '.' in stripped:
            raise ValidationError(f"{key} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(coltype, Numeric):
        return coerce_decimal(col.key, value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        try:
            dt = parse_iso_datetime(str(value))
        except ValueError:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        return dt

    if isinstance(coltype, Date):
        return coerce_date(col.key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def coerce_decimal(key: str, value: Any) -> Decimal:
    """Accept int, float, Decimal or numeric string; reject bools and NaN/inf."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{key} must be a number")
    if not number.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    return number


def coerce_date(key: str, value: Any) -> date:
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an ISO-8601 date (YYYY-MM-DD)")
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 date (YYYY-MM-DD)")
    return parsed


def coerce_id(key: str, value: Any) -> int:
    """Record ids arrive as JSON numbers or numeric strings."""
    number = _coerce_int(key, value)
    if number < 1:
        raise ValidationError(f"{key} must be a positive integer")
    return number


def coerce_percentage(value: Any, key: str = "ownership_percentage") -> Decimal:
    """
    Validate an ownership percentage: 0 < p <= 100, at most two decimal places.

    Returned quantized to 0.01.
    """
    if value is None:
        raise ValidationError(f"{key} is required")
    pct = coerce_decimal(key, value)
    if pct <= 0 or pct > MAX_PERCENT:
        raise ValidationError(f"{key} must be greater than 0 and at most 100")
    if pct != pct.quantize(PERCENT_QUANT):
        raise ValidationError(f"{key} allows at most two decimal places")
    return pct.quantize(PERCENT_QUANT)


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_apartment(patch: dict) -> None:
    """Apartment rules not captured by column metadata."""
    if "floor_number" in patch and patch["floor_number"] is not None:
        if patch["floor_number"] < 1:
            raise ValidationError("floor_number must be >= 1")
    if "unit_number" in patch and patch["unit_number"] is not None:
        if patch["unit_number"] < 1:
            raise ValidationError("unit_number must be >= 1")
    if "square_footage" in patch and patch["square_footage"] is not None:
        if patch["square_footage"] <= 0:
            raise ValidationError("square_footage must be > 0")
    if "unit_type" in patch and patch["unit_type"] is not None:
        patch["unit_type"] = patch["unit_type"].upper()
