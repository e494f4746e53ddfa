from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Integer, String

from .errors import ValidationError


# Maximum product price: $9,999.99
MAX_PRICE_CENTS = 999_999

# Maximum reported scratcher sales for one shift: $999,999.99
MAX_REPORTED_CENTS = 99_999_999


def coerce_int(field: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # "1e15", "1E10"
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _column_value(column, raw: Any):
    if raw is None:
        if not column.nullable:
            raise ValidationError(f"{column.key} cannot be null")
        return None

    # JSON booleans only; the string "false" is truthy
    if isinstance(column.type, Boolean):
        if not isinstance(raw, bool):
            raise ValidationError(f"{column.key} must be true or false")
        return raw

    if isinstance(column.type, Integer):
        return coerce_int(column.key, raw)

    if isinstance(column.type, String):
        text = str(raw).strip()
        if column.type.length and len(text) > column.type.length:
            raise ValidationError(f"{column.key} exceeds max length {column.type.length}")
        return text

    return raw


def clean_patch(model, payload: Any, *, writable: frozenset[str]) -> dict:
    """
    Normalize a partial update against model's mapped columns.

    Only keys in writable are accepted; each value is checked for
    nullability, Integer/Boolean/String type and String length.
    Keys absent from payload are absent from the result.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    columns = {c.key: c for c in model.__mapper__.columns}
    rejected = sorted(k for k in payload if k not in writable or k not in columns)
    if rejected:
        raise ValidationError(
            f"Field not allowed: {', '.join(rejected)}",
            details={"fields": rejected},
        )

    return {key: _column_value(columns[key], raw) for key, raw in payload.items()}


def parse_price_cents(value: Any, *, field: str = "Price", max_cents: int = MAX_PRICE_CENTS) -> int:
    """
    Convert a dollar amount (number or numeric string) to integer cents.

    The amount must be finite, non-negative and at most max_cents;
    "5", 5, 5.0 and "5.00" all give 500.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required.")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number.")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number.")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number.")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0.")

    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents > max_cents:
        raise ValidationError(f"{field} cannot exceed ${max_cents / 100:,.2f}")
    return cents


def clean_optional_text(value: Any, *, field: str, max_length: int) -> str | None:
    """Trim free text; blank becomes None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        return None
    if len(stripped) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return stripped
