from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer for JSON payloads:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)

    def check(self, payload: Any, *, partial: bool) -> dict:
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        for k in payload.keys():
            if k not in self.writable_fields:
                raise ValidationError(f"Field not allowed: {k}")

        if not partial:
            missing = sorted(f for f in self.required_on_create if payload.get(f) is None)
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        elif not payload:
            raise ValidationError("At least one field must be provided for update")

        return dict(payload)


def parse_int(value: Any, name: str, *, minimum: int | None = None, allow_none: bool = False) -> int | None:
    """Strict integer coercion: rejects floats, bools and scientific notation."""
    if value is None:
        if allow_none:
            return None
        raise ValidationError(f"{name} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{name} must be a plain integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    else:
        raise ValidationError(f"{name} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return result


def parse_money_cents(value: Any, name: str, *, allow_none: bool = False) -> int | None:
    """
    Parse a money amount ("95.00", "95", 95, 95.5) into integer cents.

    Floats go through str() first so 0.1 stays 0.1. More than two decimal
    places, negatives and values above MAX_PRICE_CENTS are rejected.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if allow_none:
            return None
        raise ValidationError(f"{name} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a decimal amount")

    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a decimal amount")

    if not amount.is_finite():
        raise ValidationError(f"{name} must be a decimal amount")
    if amount < 0:
        raise ValidationError(f"{name} cannot be negative")
    # Bound first: quantize() raises InvalidOperation on huge exponents ("1e30")
    if amount * 100 > MAX_PRICE_CENTS:
        raise ValidationError(f"{name} cannot exceed {format_cents(MAX_PRICE_CENTS)}")
    try:
        if amount != amount.quantize(_CENT):
            raise ValidationError(f"{name} cannot have more than two decimal places")
        cents = int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValidationError(f"{name} must be a decimal amount")
    return cents


def format_cents(cents: int | None) -> str | None:
    """Integer cents -> fixed-point decimal string ("95.00")."""
    if cents is None:
        return None
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{whole}.{frac:02d}"


def optional_str(value: Any, name: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{name} must be a string")
    text = str(value).strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return text


def parse_choice(value: Any, name: str, choices, *, default: str | None = None) -> str:
    if value is None:
        if default is None:
            raise ValidationError(f"{name} is required")
        return default
    if value not in choices:
        raise ValidationError(f"{name} must be one of: {', '.join(sorted(choices))}")
    return value


def parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false", "1", "0"}:
        return value.lower() in {"true", "1"}
    raise ValidationError(f"{name} must be a boolean")
