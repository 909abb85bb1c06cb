# Overview: Read-only audit of the stock invariants over the whole database.

"""
Audit Service

Each check returns a list of violation dicts; an empty list means the
invariant holds. Used by `flask stock check-invariants`.
"""

from __future__ import annotations

from sqlalchemy import and_, func, or_

from ..extensions import db
from ..models import Sale, SaleItem, StockUnit, GarbageRecord
from ..models.stock import STATUS_SOLD


def duplicate_imeis() -> list[dict]:
    """Non-null IMEIs held by more than one active unit (either column)."""
    primary = db.session.query(StockUnit.id.label("unit_id"), StockUnit.primary_imei.label("imei")).filter(
        StockUnit.is_active == True, StockUnit.primary_imei.isnot(None)
    )
    secondary = db.session.query(StockUnit.id.label("unit_id"), StockUnit.secondary_imei.label("imei")).filter(
        StockUnit.is_active == True, StockUnit.secondary_imei.isnot(None)
    )
    holders: dict[str, set[int]] = {}
    for unit_id, imei in primary.union_all(secondary).all():
        holders.setdefault(imei, set()).add(unit_id)

    violations = []
    for imei, unit_ids in sorted(holders.items()):
        if len(unit_ids) > 1:
            violations.append({"check": "duplicate_imei", "imei": imei, "unit_ids": sorted(unit_ids)})
    # A unit whose primary equals its secondary also counts
    same = db.session.query(StockUnit.id).filter(
        StockUnit.is_active == True,
        StockUnit.primary_imei.isnot(None),
        StockUnit.primary_imei == StockUnit.secondary_imei,
    ).all()
    violations.extend({"check": "duplicate_imei", "unit_ids": [row.id]} for row in same)
    return violations


def duplicate_barcodes() -> list[dict]:
    rows = (
        db.session.query(StockUnit.shop_id, StockUnit.barcode, func.count(StockUnit.id))
        .filter(StockUnit.is_active == True, StockUnit.barcode.isnot(None))
        .group_by(StockUnit.shop_id, StockUnit.barcode)
        .having(func.count(StockUnit.id) > 1)
        .all()
    )
    return [
        {"check": "duplicate_barcode", "shop_id": shop_id, "barcode": barcode, "count": count}
        for shop_id, barcode, count in rows
    ]


def sold_flag_mismatches() -> list[dict]:
    rows = db.session.query(StockUnit.id, StockUnit.status, StockUnit.is_sold).filter(
        or_(
            and_(StockUnit.status == STATUS_SOLD, StockUnit.is_sold == False),
            and_(StockUnit.status != STATUS_SOLD, StockUnit.is_sold == True),
        )
    ).all()
    return [
        {"check": "sold_flag", "unit_id": unit_id, "status": status, "is_sold": is_sold}
        for unit_id, status, is_sold in rows
    ]


def sale_arithmetic_errors() -> list[dict]:
    line_sums = dict(
        db.session.query(SaleItem.sale_id, func.sum(SaleItem.line_total_cents))
        .group_by(SaleItem.sale_id)
        .all()
    )
    violations = []
    for sale in db.session.query(Sale).order_by(Sale.id).all():
        lines = int(line_sums.get(sale.id) or 0)
        if sale.subtotal_cents != lines:
            violations.append({"check": "sale_subtotal", "sale_id": sale.id, "subtotal": sale.subtotal_cents, "lines": lines})
        if sale.total_cents != sale.subtotal_cents - sale.discount_cents + sale.tax_cents:
            violations.append({"check": "sale_total", "sale_id": sale.id, "total": sale.total_cents})
    return violations


def defective_sold_units() -> list[dict]:
    rows = (
        db.session.query(GarbageRecord.id, StockUnit.id)
        .join(StockUnit, StockUnit.id == GarbageRecord.stock_unit_id)
        .filter(GarbageRecord.is_active == True, StockUnit.status == STATUS_SOLD)
        .all()
    )
    return [{"check": "garbage_on_sold", "record_id": rid, "unit_id": uid} for rid, uid in rows]


def check_invariants() -> list[dict]:
    return [
        *duplicate_imeis(),
        *duplicate_barcodes(),
        *sold_flag_mismatches(),
        *sale_arithmetic_errors(),
        *defective_sold_units(),
    ]
