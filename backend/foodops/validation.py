from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import (
    end_of_business_day,
    normalize_datetime,
    parse_iso_date,
    parse_iso_datetime,
    start_of_business_day,
)


# Upper bound for any single quantity or amount; keeps integer columns sane
MAX_AMOUNT = 999_999_999_999


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
    # bool is an int subclass; never accept it as a number
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
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
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return normalize_datetime(value)
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        return coerce_date(value, field=col.key)

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

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def coerce_date(value: Any, *, field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{field} must be a YYYY-MM-DD date")
        if parsed is None:
            raise ValidationError(f"{field} must be a YYYY-MM-DD date")
        return parsed
    raise ValidationError(f"{field} must be a date")


def coerce_datetime(value: Any, *, field: str = "datetime") -> datetime:
    try:
        dt = normalize_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    if dt is None:
        raise ValidationError(f"{field} is required")
    return dt


def require_positive_quantity(value: Any, *, field: str = "quantity") -> int:
    qty = _coerce_int(field, value)
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    if qty > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return qty


def require_non_negative_amount(value: Any, *, field: str = "amount") -> int:
    amount = _coerce_int(field, value)
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def require_choice(value: Any, choices, *, field: str) -> str:
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(choices))}")
    return value


def require_period(start: Any, end: Any) -> tuple[datetime, datetime]:
    """
    Normalize a statement period to inclusive UTC-naive bounds.

    A plain date as `start` means the start of that business day, as `end`
    the last instant of that business day.
    """
    if start is None or end is None:
        raise ValidationError("period start and end are required")

    start_dt = _period_bound(start, "start", start_of_business_day)
    end_dt = _period_bound(end, "end", end_of_business_day)
    if start_dt > end_dt:
        raise ValidationError("period start must not be after period end")
    return start_dt, end_dt


def _period_bound(value: Any, field: str, from_day) -> datetime:
    if isinstance(value, datetime):
        return coerce_datetime(value, field=field)
    if isinstance(value, date):
        return from_day(value)
    if isinstance(value, str):
        s = value.strip()
        if len(s) == 10 or (len(s) == 8 and s.isdigit()):
            return from_day(coerce_date(s, field=field))
        return coerce_datetime(s, field=field)
    raise ValidationError(f"{field} must be a date or ISO-8601 datetime")


def optional_range(start: Any, end: Any) -> tuple[datetime | None, datetime | None]:
    """Like require_period, but either bound may be omitted."""
    start_dt = _period_bound(start, "start", start_of_business_day) if start not in (None, "") else None
    end_dt = _period_bound(end, "end", end_of_business_day) if end not in (None, "") else None
    if start_dt is not None and end_dt is not None and start_dt > end_dt:
        raise ValidationError("start must not be after end")
    return start_dt, end_dt
