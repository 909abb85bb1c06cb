# Overview: Identifier uniqueness index and scan lookup over stock units.

"""
Identifier Service - uniqueness index over physical identifiers

WHY: Prevents the same device from being registered twice and makes a
barcode/IMEI scan resolve to exactly one unit.

UNIQUENESS RULES (active units only):
- primary_imei / secondary_imei: one global namespace across all shops. A
  candidate IMEI collides with either column of any other active unit.
- barcode: unique within the owning shop.
- serial_number: not constrained (kept for lookup only).

There is no separate index store: the checks are predicates over
stock_units and run inside the caller's transaction, before it writes.
A unit's own current value never counts as a conflict (exclude_unit_id).

The partial unique indexes only cover one column each, so an IMEI claimed
as primary by one writer and as secondary by another is not caught by the
database. Checks therefore lock each candidate IMEI (lock_keys) before
querying; the lock key does not depend on the column.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from typing import Iterable

from sqlalchemy import or_

from ..extensions import db
from ..models import StockUnit
from ..errors import ConflictError, ValidationError
from ..validation import optional_str
from .concurrency import lock_keys


IDENTIFIER_KINDS = ("imei", "serial", "barcode")

IMEI_MAX_LENGTH = 32
CODE_MAX_LENGTH = 100


def normalize_identifier(value) -> str | None:
    """Normalize to uppercase, no spaces; blank -> None."""
    if value is None:
        return None
    normalized = str(value).upper().strip().replace(" ", "")
    return normalized or None


@dataclass(frozen=True)
class UnitIdentifiers:
    primary_imei: str | None = None
    secondary_imei: str | None = None
    serial_number: str | None = None
    barcode: str | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "UnitIdentifiers":
        ids = cls(
            primary_imei=_normalized_field(data, "primary_imei", IMEI_MAX_LENGTH),
            secondary_imei=_normalized_field(data, "secondary_imei", IMEI_MAX_LENGTH),
            serial_number=_normalized_field(data, "serial_number", CODE_MAX_LENGTH),
            barcode=_normalized_field(data, "barcode", CODE_MAX_LENGTH),
        )
        ids.validate()
        return ids

    @classmethod
    def of(cls, unit: StockUnit) -> "UnitIdentifiers":
        return cls(
            primary_imei=unit.primary_imei,
            secondary_imei=unit.secondary_imei,
            serial_number=unit.serial_number,
            barcode=unit.barcode,
        )

    def merged(self, changes: dict) -> "UnitIdentifiers":
        """Apply a partial update (only keys present in `changes`)."""
        patch = {}
        for name, max_length in (
            ("primary_imei", IMEI_MAX_LENGTH),
            ("secondary_imei", IMEI_MAX_LENGTH),
            ("serial_number", CODE_MAX_LENGTH),
            ("barcode", CODE_MAX_LENGTH),
        ):
            if name in changes:
                patch[name] = _normalized_field(changes, name, max_length)
        merged = replace(self, **patch)
        merged.validate()
        return merged

    def validate(self) -> None:
        if self.primary_imei and self.primary_imei == self.secondary_imei:
            raise ValidationError("Primary and secondary IMEI must differ")

    def imeis(self) -> list[str]:
        return [v for v in (self.primary_imei, self.secondary_imei) if v]

    def as_columns(self) -> dict:
        return {
            "primary_imei": self.primary_imei,
            "secondary_imei": self.secondary_imei,
            "serial_number": self.serial_number,
            "barcode": self.barcode,
        }


def _normalized_field(data: dict, name: str, max_length: int) -> str | None:
    raw = optional_str(data.get(name), name)
    value = normalize_identifier(raw)
    if value is not None and len(value) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return value


def find_imei_conflict(value: str, exclude_unit_id: int | None = None) -> StockUnit | None:
    """Active unit (any shop) already using `value` as primary or secondary IMEI."""
    q = db.session.query(StockUnit).filter(
        StockUnit.is_active == True,
        or_(StockUnit.primary_imei == value, StockUnit.secondary_imei == value),
    )
    if exclude_unit_id is not None:
        q = q.filter(StockUnit.id != exclude_unit_id)
    return q.first()


def find_barcode_conflict(shop_id: int, barcode: str, exclude_unit_id: int | None = None) -> StockUnit | None:
    """Active unit in `shop_id` already using `barcode`."""
    q = db.session.query(StockUnit).filter(
        StockUnit.is_active == True,
        StockUnit.shop_id == shop_id,
        StockUnit.barcode == barcode,
    )
    if exclude_unit_id is not None:
        q = q.filter(StockUnit.id != exclude_unit_id)
    return q.first()


def assert_unique(
    identifiers: UnitIdentifiers,
    shop_id: int,
    *,
    exclude_unit_id: int | None = None,
) -> None:
    """Raise ConflictError if any identifier is already held by another active unit."""
    lock_keys("imei", identifiers.imeis())
    for field_name in ("primary_imei", "secondary_imei"):
        value = getattr(identifiers, field_name)
        if not value:
            continue
        conflict = find_imei_conflict(value, exclude_unit_id)
        if conflict is not None:
            raise ConflictError(
                f"IMEI '{value}' is already registered",
                details={"field": field_name, "value": value, "unit_id": conflict.id},
            )

    if identifiers.barcode:
        conflict = find_barcode_conflict(shop_id, identifiers.barcode, exclude_unit_id)
        if conflict is not None:
            raise ConflictError(
                f"Barcode '{identifiers.barcode}' is already used in this shop",
                details={"field": "barcode", "value": identifiers.barcode, "unit_id": conflict.id},
            )


def assert_batch_unique(shop_id: int, batch: Iterable[UnitIdentifiers]) -> None:
    """
    Validate a whole intake batch before any row is written.

    Duplicates inside the batch are a ValidationError (the request is
    malformed); collisions with existing active units are a ConflictError.
    """
    batch = list(batch)

    imeis = [imei for ids in batch for imei in ids.imeis()]
    lock_keys("imei", imeis)
    dup_imeis = sorted(v for v, n in Counter(imeis).items() if n > 1)
    if dup_imeis:
        raise ValidationError("Duplicate IMEI in batch", details={"values": dup_imeis})

    barcodes = [ids.barcode for ids in batch if ids.barcode]
    dup_barcodes = sorted(v for v, n in Counter(barcodes).items() if n > 1)
    if dup_barcodes:
        raise ValidationError("Duplicate barcode in batch", details={"values": dup_barcodes})

    if imeis:
        rows = (
            db.session.query(StockUnit.id, StockUnit.primary_imei, StockUnit.secondary_imei)
            .filter(
                StockUnit.is_active == True,
                or_(StockUnit.primary_imei.in_(imeis), StockUnit.secondary_imei.in_(imeis)),
            )
            .all()
        )
        wanted = set(imeis)
        taken = sorted({v for row in rows for v in (row.primary_imei, row.secondary_imei) if v in wanted})
        if taken:
            raise ConflictError("IMEI already registered", details={"values": taken})

    if barcodes:
        rows = (
            db.session.query(StockUnit.barcode)
            .filter(
                StockUnit.is_active == True,
                StockUnit.shop_id == shop_id,
                StockUnit.barcode.in_(barcodes),
            )
            .all()
        )
        if rows:
            raise ConflictError(
                "Barcode already used in this shop",
                details={"values": sorted({row.barcode for row in rows})},
            )


def lookup_unit(
    kind: str,
    value: str,
    shop_ids: Iterable[int],
    *,
    statuses: Iterable[str] | None = None,
) -> StockUnit | None:
    """
    Scan lookup restricted to the caller's shops.

    kind: "imei" matches primary or secondary, "serial", or "barcode".
    Returns the first active match or None.
    """
    if kind not in IDENTIFIER_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(IDENTIFIER_KINDS)}")

    normalized = normalize_identifier(value)
    shop_ids = list(shop_ids)
    if not normalized or not shop_ids:
        return None

    q = db.session.query(StockUnit).filter(
        StockUnit.is_active == True,
        StockUnit.shop_id.in_(shop_ids),
    )
    if kind == "imei":
        q = q.filter(or_(StockUnit.primary_imei == normalized, StockUnit.secondary_imei == normalized))
    elif kind == "serial":
        q = q.filter(StockUnit.serial_number == normalized)
    else:
        q = q.filter(StockUnit.barcode == normalized)

    if statuses is not None:
        q = q.filter(StockUnit.status.in_(list(statuses)))

    return q.order_by(StockUnit.id.asc()).first()
