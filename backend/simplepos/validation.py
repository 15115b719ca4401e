from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import InvalidInputError
from .services.money import to_decimal


# Maximum price: $99,999,999.99 (Numeric(10, 2))
MAX_PRICE = Decimal("99999999.99")


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


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise InvalidInputError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise InvalidInputError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise InvalidInputError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise InvalidInputError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise InvalidInputError(f"{col.key} must be an integer, not a decimal")
        raise InvalidInputError(f"{col.key} must be an integer")

    # Decimals (money, rates)
    if isinstance(coltype, Numeric):
        try:
            return to_decimal(value)
        except ValueError:
            raise InvalidInputError(f"{col.key} must be a number")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise InvalidInputError(f"{col.key} must be true or false")

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
    Returns a cleaned patch dict with only writable column fields.

    Keys in the allowlist that are not columns (e.g. "barcodes") are left for
    the caller to handle and are not copied into the patch.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidInputError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise InvalidInputError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise InvalidInputError(f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k not in cols:
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise InvalidInputError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise InvalidInputError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise InvalidInputError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    """
    for key in ("price", "cost"):
        if key in patch and patch[key] is not None:
            if patch[key] < 0:
                raise InvalidInputError(f"{key} must be >= 0")
            if patch[key] > MAX_PRICE:
                raise InvalidInputError(f"{key} cannot exceed {MAX_PRICE}")

    if "tax_rate" in patch and patch["tax_rate"] is not None:
        if not (0 <= patch["tax_rate"] <= 1):
            raise InvalidInputError("tax_rate must be a fraction between 0 and 1")

    if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] < 0:
        raise InvalidInputError("quantity must be >= 0")

    if "pack_size" in patch and patch["pack_size"] is not None and patch["pack_size"] < 1:
        raise InvalidInputError("pack_size must be >= 1")


def normalize_barcodes(raw: Any) -> list[str]:
    """Trim, drop blanks, de-duplicate (order kept). At least one required."""
    if not isinstance(raw, list):
        raise InvalidInputError("barcodes must be a list of strings")
    seen: list[str] = []
    for value in raw:
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise InvalidInputError("barcodes must be a list of strings")
        code = str(value).strip()
        if code and code not in seen:
            seen.append(code)
    if not seen:
        raise InvalidInputError("At least one barcode is required")
    return seen
