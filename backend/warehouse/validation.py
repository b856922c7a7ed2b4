from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import DeclarativeMeta

from warehouse.time_utils import parse_iso_datetime


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem. Carries every violated rule, not just the first."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(", ".join(self.errors))


class ConflictError(ValueError):
    """Business rule conflict (duplicate SKU, duplicate category name)."""


class NotFoundError(LookupError):
    """Well-formed identifier with no matching row."""


@dataclass(frozen=True)
class FieldRule:
    """
    One writable payload field.

    kind: "str", "int", "money" (decimal currency -> integer cents), "float",
    "datetime". Column length limits come from the model's String(n) metadata.
    """
    attr: str
    kind: str = "str"
    label: str = ""
    required: bool = False
    required_message: str | None = None
    min_value: int | float | None = None
    min_message: str | None = None
    choices: tuple[str, ...] | None = None
    upper: bool = False
    lower: bool = False


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - fields: what clients are allowed to set, keyed by payload name (security boundary)
    - ignored_fields: accepted in payloads but silently dropped (server-owned values)
    """
    fields: dict[str, FieldRule]
    ignored_fields: frozenset[str] = field(default_factory=frozenset)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_int(value: Any, label: str) -> int:
    """Strict integer parsing: rejects bools, floats with fractions and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{label} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{label} must be an integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{label} must be an integer")
    raise ValidationError(f"{label} must be an integer")


def to_cents(value: Any, label: str) -> int:
    """Convert a currency amount (number or numeric string) into integer cents."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{label} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{label} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{label} must be a number")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _coerce(rule: FieldRule, value: Any, label: str):
    if rule.kind == "int":
        return parse_int(value, label)

    if rule.kind == "money":
        return to_cents(value, label)

    if rule.kind == "float":
        if isinstance(value, bool):
            raise ValidationError(f"{label} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{label} must be a number")

    if rule.kind == "datetime":
        if isinstance(value, datetime):
            return value
        try:
            dt = parse_iso_datetime(str(value))
        except ValueError:
            raise ValidationError(f"{label} must be an ISO-8601 datetime")
        return dt

    text = str(value).strip()
    if rule.upper:
        text = text.upper()
    if rule.lower:
        text = text.lower()
    return text


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against the policy and the model's
    column metadata. Returns {model_attr: value} for the provided fields.

    partial=False: create semantics (every required field must be present)
    partial=True: patch semantics (validate only provided keys)

    All violations are collected and raised together as one ValidationError.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    cols = _columns_by_key(model)
    errors: list[str] = []
    patch: dict = {}

    for key in payload.keys():
        if key not in policy.fields and key not in policy.ignored_fields:
            errors.append(f"Field not allowed: {key}")

    for key, rule in policy.fields.items():
        label = rule.label or key
        present = key in payload
        raw = payload.get(key)
        blank = raw is None or (isinstance(raw, str) and not raw.strip())

        if blank:
            if rule.required and (present or not partial):
                errors.append(rule.required_message or f"{label} is required")
            elif present and not rule.required:
                col = cols.get(rule.attr)
                if col is None or col.nullable:
                    patch[rule.attr] = None
            continue

        try:
            value = _coerce(rule, raw, label)
        except ValidationError as e:
            errors.extend(e.errors)
            continue

        if rule.min_value is not None and value is not None and value < rule.min_value:
            errors.append(rule.min_message or f"{label} must be >= {rule.min_value}")
            continue

        if rule.choices is not None and value not in rule.choices:
            errors.append(f"{label} must be one of: {', '.join(rule.choices)}")
            continue

        col = cols.get(rule.attr)
        if col is not None and isinstance(col.type, String) and col.type.length and isinstance(value, str):
            if len(value) > col.type.length:
                errors.append(f"{label} exceeds max length {col.type.length}")
                continue

        patch[rule.attr] = value

    if errors:
        raise ValidationError(errors)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by column metadata alone.
    Keep these small and centralized.
    """
    price = patch.get("price_cents")
    if price is not None and price > MAX_PRICE_CENTS:
        raise ValidationError(f"Price cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")


def require_positive_quantity(value: Any, message: str) -> int:
    """Shared quantity check for sales and shipments (must be an integer > 0)."""
    if value is None or value == "":
        raise ValidationError(message)
    try:
        qty = parse_int(value, "quantity")
    except ValidationError:
        raise ValidationError(message)
    if qty <= 0:
        raise ValidationError(message)
    return qty


def parse_identifier(raw: str, label: str) -> int:
    """Path identifiers must be positive integers; anything else is a 400."""
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label} ID")
    if value <= 0:
        raise ValidationError(f"Invalid {label} ID")
    return value
