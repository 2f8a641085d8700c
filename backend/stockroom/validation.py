from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import InvalidQuantity, ValidationError
from stockroom.time_utils import parse_iso_datetime


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Stock quantities are Numeric(14, 3)
MAX_QUANTITY = Decimal("99999999999.999")
QUANTITY_STEP = Decimal("0.001")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: payload key -> column key, for request fields named differently
      from the column that types them (e.g. adjust "warehouse_id")
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    aliases: dict[str, str] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_quantity(value: Any, *, name: str = "quantity") -> Decimal:
    """
    Parse a strictly positive stock quantity.

    Accepts ints, decimal strings and floats (via their string form);
    rejects booleans, NaN/Infinity, scientific notation and more than
    three decimal places.
    """
    if value is None or isinstance(value, bool):
        raise InvalidQuantity(f"{name} must be a positive number")

    if isinstance(value, Decimal):
        qty = value
    elif isinstance(value, (int, float)):
        qty = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower():
            raise InvalidQuantity(f"{name} must be a plain decimal number")
        try:
            qty = Decimal(stripped)
        except InvalidOperation:
            raise InvalidQuantity(f"{name} must be a positive number")
    else:
        raise InvalidQuantity(f"{name} must be a positive number")

    if not qty.is_finite() or qty <= 0:
        raise InvalidQuantity(f"{name} must be a positive number")
    if qty > MAX_QUANTITY:
        raise InvalidQuantity(f"{name} is too large")
    if qty != qty.quantize(QUANTITY_STEP):
        raise InvalidQuantity(f"{name} supports at most 3 decimal places")
    return qty


def parse_int(value: Any, *, name: str) -> int:
    """Strict integer parsing: rejects booleans, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def _coerce_value(col, key: str, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return parse_int(value, name=key)

    if isinstance(coltype, Numeric):
        return parse_quantity(value, name=key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


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
    Returns a cleaned patch dict keyed by the payload's field names.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if policy.aliases.get(k, k) not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[policy.aliases.get(k, k)]
        required = k in policy.required_on_create

        if raw is None:
            if required or not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, k, raw)

        if isinstance(col.type, (String, Text)) and (required or not col.nullable):
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch
