# Overview: Stock registry - unit intake, edits, soft delete, lookups and the status transition primitive.

"""
Stock Service - registry of physical units

WHY: Every unit enters the system here, and every status change anywhere in
the system goes through transition(), which writes status and is_sold in
the same UPDATE.

LIFECYCLE:
    in_stock --sell--------> sold        (terminal)
    in_stock --mark defect-> defective
    defective --clear------> in_stock
    in_stock --transfer----> in_stock    (shop_id changes)

Soft delete (is_active=False) is orthogonal to status and only allowed for
units that were never sold.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import StockUnit, SaleItem, Variant, Product, Shop, Tax
from ..models.stock import STATUS_IN_STOCK, STATUS_SOLD, STATUS_DEFECTIVE, UNIT_STATUSES, CONDITIONS
from ..context import StockContext
from ..errors import ConflictError, NotFoundError, UnavailableError, ValidationError
from ..validation import (
    PayloadPolicy,
    format_cents,
    optional_str,
    parse_choice,
    parse_int,
    parse_money_cents,
    parse_bool,
)
from .concurrency import atomic, conditional_update, lock_for_update, run_with_retry
from .identifier_service import UnitIdentifiers, assert_unique, assert_batch_unique, lookup_unit
from .vendor_service import parse_vendor_ref, resolve_vendor_ref
from .pagination import paginate


ALLOWED_TRANSITIONS = {
    STATUS_IN_STOCK: frozenset({STATUS_IN_STOCK, STATUS_SOLD, STATUS_DEFECTIVE}),
    STATUS_DEFECTIVE: frozenset({STATUS_IN_STOCK}),
    STATUS_SOLD: frozenset(),
}

IDENTIFIER_FIELDS = frozenset({"primary_imei", "secondary_imei", "serial_number", "barcode"})

COMMERCIAL_FIELDS = frozenset({
    "purchase_price",
    "sale_price",
    "condition",
    "notes",
    "low_stock_threshold",
    "quantity",
})

UNIT_CREATE_POLICY = PayloadPolicy(
    writable_fields=frozenset({"variant_id", "shop_id", "vendor_kind", "vendor_id", "tax_id"})
    | IDENTIFIER_FIELDS
    | COMMERCIAL_FIELDS,
    required_on_create=frozenset({"variant_id", "shop_id"}),
)

BULK_CREATE_POLICY = PayloadPolicy(
    writable_fields=frozenset({"variant_id", "shop_id", "vendor_kind", "vendor_id", "tax_id", "items"})
    | COMMERCIAL_FIELDS,
    required_on_create=frozenset({"variant_id", "shop_id", "quantity", "items"}),
)

# status / is_sold / shop_id / sale_item_id are never client-writable
UNIT_UPDATE_POLICY = PayloadPolicy(
    writable_fields=frozenset({"variant_id", "vendor_kind", "vendor_id", "tax_id"})
    | IDENTIFIER_FIELDS
    | COMMERCIAL_FIELDS,
)


@dataclass(frozen=True)
class CommercialFields:
    purchase_price_cents: int | None = None
    sale_price_cents: int | None = None
    condition: str = "new"
    notes: str | None = None
    low_stock_threshold: int | None = None
    quantity: int = 1

    @classmethod
    def from_payload(cls, data: dict) -> "CommercialFields":
        return cls(
            purchase_price_cents=parse_money_cents(data.get("purchase_price"), "purchase_price", allow_none=True),
            sale_price_cents=parse_money_cents(data.get("sale_price"), "sale_price", allow_none=True),
            condition=parse_choice(data.get("condition"), "condition", CONDITIONS, default="new"),
            notes=optional_str(data.get("notes"), "notes"),
            low_stock_threshold=parse_int(
                data.get("low_stock_threshold"), "low_stock_threshold", minimum=0, allow_none=True
            ),
            quantity=parse_int(data.get("quantity"), "quantity", minimum=1, allow_none=True) or 1,
        )

    def as_columns(self) -> dict:
        threshold = self.low_stock_threshold
        if threshold is None:
            threshold = current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 5)
        return {
            "purchase_price_cents": self.purchase_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "condition": self.condition,
            "notes": self.notes,
            "low_stock_threshold": threshold,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class BulkItem:
    identifiers: UnitIdentifiers
    notes: str | None = None


# ---------------------------------------------------------------------------
# Status transition primitive
# ---------------------------------------------------------------------------

def transition(
    unit: StockUnit,
    *,
    from_statuses: Iterable[str],
    to_status: str,
    error=None,
    extra_where: Iterable = (),
    **values,
) -> StockUnit:
    """
    Move `unit` from one of `from_statuses` to `to_status` as a single
    conditional UPDATE, stamping status and is_sold together plus any extra
    column `values` (shop_id, sale_item_id, quantity...).

    If a concurrent writer changed the row first the UPDATE matches nothing
    and `error` is raised; the caller's atomic() block then rolls back.
    """
    from_statuses = tuple(from_statuses)
    for current in from_statuses:
        if to_status not in ALLOWED_TRANSITIONS.get(current, ()):
            raise ValueError(f"Illegal unit transition {current} -> {to_status}")

    if error is None:
        error = UnavailableError(
            "Stock unit is no longer available",
            details={"unit_id": unit.id},
        )

    stamp = {"status": to_status, "is_sold": to_status == STATUS_SOLD}
    stamp.update(values)

    conditional_update(
        StockUnit,
        unit.id,
        where=[
            StockUnit.is_active == True,
            StockUnit.status.in_(from_statuses),
            *extra_where,
        ],
        values=stamp,
        error=error,
    )
    db.session.refresh(unit)
    return unit


def take_quantity(unit: StockUnit, quantity: int, *, sale_item_id: int | None = None) -> StockUnit:
    """
    Remove `quantity` from an in-stock row.

    Serialized units (and a bulk row sold out exactly) transition to sold and
    remember the sale line; a partial bulk sale only decrements the count.
    """
    error = UnavailableError(
        "Insufficient quantity available",
        details={"unit_id": unit.id, "requested": quantity},
    )
    if quantity == unit.quantity:
        return transition(
            unit,
            from_statuses=[STATUS_IN_STOCK],
            to_status=STATUS_SOLD,
            error=error,
            extra_where=[StockUnit.quantity == quantity],
            quantity=0 if not unit.variant.is_serialized else unit.quantity,
            sale_item_id=sale_item_id,
        )

    conditional_update(
        StockUnit,
        unit.id,
        where=[
            StockUnit.is_active == True,
            StockUnit.status == STATUS_IN_STOCK,
            StockUnit.quantity > quantity,
        ],
        values={"quantity": StockUnit.quantity - quantity},
        error=error,
    )
    db.session.refresh(unit)
    return unit


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def _require_variant(variant_id: int) -> Variant:
    variant = db.session.query(Variant).filter_by(id=variant_id, is_active=True).first()
    if not variant:
        raise ValidationError("Variant not found", details={"variant_id": variant_id})
    return variant


def _require_shop(ctx: StockContext, shop_id: int) -> Shop:
    shop = db.session.query(Shop).filter_by(id=shop_id, is_active=True).first()
    if not shop:
        raise ValidationError("Shop not found", details={"shop_id": shop_id})
    ctx.require_shop(shop_id)
    return shop


def _require_tax(tax_id: int | None, shop_id: int) -> None:
    if tax_id is None:
        return
    tax = db.session.query(Tax.id).filter_by(id=tax_id, shop_id=shop_id, is_active=True).first()
    if not tax:
        raise ValidationError("Tax not found for this shop", details={"tax_id": tax_id})


def _check_tracking(variant: Variant, identifiers: UnitIdentifiers, quantity: int) -> None:
    if variant.is_serialized:
        if quantity != 1:
            raise ValidationError("Serialized units always have quantity 1")
    elif identifiers.imeis():
        raise ValidationError("IMEI can only be recorded for serialized variants")


def get_unit(ctx: StockContext, unit_id: int, *, lock: bool = False) -> StockUnit:
    """Active unit inside the caller's shops, else NotFoundError."""
    q = db.session.query(StockUnit).filter(
        StockUnit.id == unit_id,
        StockUnit.is_active == True,
        StockUnit.shop_id.in_(list(ctx.shop_ids)),
    )
    if lock:
        q = lock_for_update(q)
    unit = q.first()
    if not unit:
        raise NotFoundError("Stock unit not found", details={"unit_id": unit_id})
    return unit


def find_by_identifier(ctx: StockContext, kind: str, value, shop_id: int | None = None) -> StockUnit:
    """Scan lookup (imei / serial / barcode) within the caller's shops."""
    if not optional_str(value, "value"):
        raise ValidationError("value is required")
    unit = lookup_unit(kind, value, ctx.scope(shop_id))
    if unit is None:
        raise NotFoundError("Stock unit not found", details={"kind": kind, "value": value})
    return unit


def list_units(
    ctx: StockContext,
    *,
    shop_id: int | None = None,
    variant_id: int | None = None,
    status: str | None = None,
    condition: str | None = None,
    vendor_kind: str | None = None,
    vendor_id: int | None = None,
    is_sold: bool | None = None,
    search: str | None = None,
    page=None,
    limit=None,
) -> dict:
    q = (
        db.session.query(StockUnit)
        .join(Variant, Variant.id == StockUnit.variant_id)
        .join(Product, Product.id == Variant.product_id)
        .filter(
            StockUnit.is_active == True,
            StockUnit.shop_id.in_(list(ctx.scope(shop_id))),
        )
    )

    if variant_id is not None:
        q = q.filter(StockUnit.variant_id == variant_id)
    if status is not None:
        q = q.filter(StockUnit.status == parse_choice(status, "status", UNIT_STATUSES))
    if condition is not None:
        q = q.filter(StockUnit.condition == parse_choice(condition, "condition", CONDITIONS))
    if vendor_kind is not None:
        q = q.filter(StockUnit.vendor_kind == vendor_kind)
    if vendor_id is not None:
        q = q.filter(StockUnit.vendor_id == parse_int(vendor_id, "vendor_id", minimum=1))
    if is_sold is not None:
        q = q.filter(StockUnit.is_sold == parse_bool(is_sold, "is_sold"))

    term = optional_str(search, "search")
    if term:
        like = f"%{term}%"
        q = q.filter(or_(
            StockUnit.primary_imei.ilike(like),
            StockUnit.secondary_imei.ilike(like),
            StockUnit.serial_number.ilike(like),
            StockUnit.barcode.ilike(like),
            Variant.variant_name.ilike(like),
            Product.name.ilike(like),
        ))

    rows, pagination = paginate(q.order_by(StockUnit.created_at.desc(), StockUnit.id.desc()), page, limit)
    return {"stock": [u.to_snapshot() for u in rows], "pagination": pagination}


def stock_summary(ctx: StockContext, shop_id: int | None = None) -> dict:
    """Counts per status plus the sale value of what is still in stock."""
    shop_ids = list(ctx.scope(shop_id))
    rows = (
        db.session.query(StockUnit.status, func.coalesce(func.sum(StockUnit.quantity), 0))
        .filter(StockUnit.is_active == True, StockUnit.shop_id.in_(shop_ids))
        .group_by(StockUnit.status)
        .all()
    )
    counts = {status: 0 for status in UNIT_STATUSES}
    counts.update({status: int(total) for status, total in rows})

    value = (
        db.session.query(func.coalesce(func.sum(StockUnit.sale_price_cents * StockUnit.quantity), 0))
        .filter(
            StockUnit.is_active == True,
            StockUnit.shop_id.in_(shop_ids),
            StockUnit.status == STATUS_IN_STOCK,
        )
        .scalar()
    )
    return {"counts": counts, "in_stock_value": format_cents(int(value or 0))}


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_unit(ctx: StockContext, payload: dict) -> StockUnit:
    """
    Register one unit.

    Variant, shop, tax and vendor are validated first (ValidationError),
    then access (ForbiddenError), then identifier uniqueness (ConflictError).
    """
    data = UNIT_CREATE_POLICY.check(payload, partial=False)
    variant_id = parse_int(data.get("variant_id"), "variant_id", minimum=1)
    shop_id = parse_int(data.get("shop_id"), "shop_id", minimum=1)
    tax_id = parse_int(data.get("tax_id"), "tax_id", minimum=1, allow_none=True)
    identifiers = UnitIdentifiers.from_payload(data)
    fields = CommercialFields.from_payload(data)
    vendor_ref = parse_vendor_ref(data.get("vendor_kind"), data.get("vendor_id"))

    def _op():
        with atomic():
            variant = _require_variant(variant_id)
            _require_shop(ctx, shop_id)
            _require_tax(tax_id, shop_id)
            resolve_vendor_ref(vendor_ref, shop_id)
            _check_tracking(variant, identifiers, fields.quantity)
            assert_unique(identifiers, shop_id)

            unit = StockUnit(
                variant_id=variant_id,
                shop_id=shop_id,
                tax_id=tax_id,
                status=STATUS_IN_STOCK,
                is_sold=False,
                is_active=True,
                **identifiers.as_columns(),
                **fields.as_columns(),
                **(vendor_ref.as_columns() if vendor_ref else {}),
            )
            db.session.add(unit)
            db.session.flush()
        return unit

    unit = run_with_retry(_op)
    current_app.logger.info("Stock unit %s created in shop %s by user %s", unit.id, shop_id, ctx.user_id)
    return unit


def create_units_bulk(ctx: StockContext, payload: dict) -> list[StockUnit]:
    """
    All-or-nothing intake of several units of one variant.

    The declared quantity must equal the number of items. The whole batch is
    checked (in-batch duplicates, then collisions with existing units) before
    any row is written.
    """
    data = BULK_CREATE_POLICY.check(payload, partial=False)
    variant_id = parse_int(data.get("variant_id"), "variant_id", minimum=1)
    shop_id = parse_int(data.get("shop_id"), "shop_id", minimum=1)
    tax_id = parse_int(data.get("tax_id"), "tax_id", minimum=1, allow_none=True)
    vendor_ref = parse_vendor_ref(data.get("vendor_kind"), data.get("vendor_id"))
    declared = parse_int(data.get("quantity"), "quantity", minimum=1)

    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")
    if declared != len(raw_items):
        raise ValidationError(
            "quantity does not match the number of items",
            details={"quantity": declared, "items": len(raw_items)},
        )
    max_items = current_app.config.get("BULK_CREATE_MAX_ITEMS", 100)
    if len(raw_items) > max_items:
        raise ValidationError(f"A batch can hold at most {max_items} items")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object", details={"index": index})
        unknown = set(raw) - (IDENTIFIER_FIELDS | {"notes"})
        if unknown:
            raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}", details={"index": index})
        items.append(BulkItem(
            identifiers=UnitIdentifiers.from_payload(raw),
            notes=optional_str(raw.get("notes"), "notes"),
        ))

    # Per-unit quantity is always 1 in a batch: one item, one row
    shared = CommercialFields.from_payload({**data, "quantity": 1})

    def _op():
        with atomic():
            variant = _require_variant(variant_id)
            _require_shop(ctx, shop_id)
            _require_tax(tax_id, shop_id)
            resolve_vendor_ref(vendor_ref, shop_id)
            for item in items:
                _check_tracking(variant, item.identifiers, 1)
            assert_batch_unique(shop_id, [item.identifiers for item in items])

            columns = shared.as_columns()
            units = []
            for item in items:
                unit = StockUnit(
                    variant_id=variant_id,
                    shop_id=shop_id,
                    tax_id=tax_id,
                    status=STATUS_IN_STOCK,
                    is_sold=False,
                    is_active=True,
                    **item.identifiers.as_columns(),
                    **{**columns, "notes": item.notes or shared.notes},
                    **(vendor_ref.as_columns() if vendor_ref else {}),
                )
                db.session.add(unit)
                units.append(unit)
            db.session.flush()
        return units

    units = run_with_retry(_op)
    current_app.logger.info("Bulk intake of %d units into shop %s by user %s", len(units), shop_id, ctx.user_id)
    return units


def update_unit(ctx: StockContext, unit_id: int, payload: dict) -> StockUnit:
    """
    Edit descriptive and commercial fields.

    Changed identifiers are re-checked for uniqueness, ignoring the unit's own
    current values. Status is not editable here.
    """
    data = UNIT_UPDATE_POLICY.check(payload, partial=True)

    def _op():
        with atomic():
            unit = get_unit(ctx, unit_id, lock=True)
            if unit.status == STATUS_SOLD:
                raise ConflictError("Sold units cannot be edited", details={"unit_id": unit.id})

            changes = {}

            variant = unit.variant
            if "variant_id" in data:
                variant = _require_variant(parse_int(data["variant_id"], "variant_id", minimum=1))
                changes["variant_id"] = variant.id

            current = UnitIdentifiers.of(unit)
            identifiers = current.merged(data)
            changed = UnitIdentifiers(**{
                name: value
                for name, value in identifiers.as_columns().items()
                if value != getattr(current, name)
            })
            assert_unique(changed, unit.shop_id, exclude_unit_id=unit.id)
            changes.update(identifiers.as_columns())

            if "purchase_price" in data:
                changes["purchase_price_cents"] = parse_money_cents(
                    data["purchase_price"], "purchase_price", allow_none=True
                )
            if "sale_price" in data:
                changes["sale_price_cents"] = parse_money_cents(data["sale_price"], "sale_price", allow_none=True)
            if "condition" in data:
                changes["condition"] = parse_choice(data["condition"], "condition", CONDITIONS)
            if "notes" in data:
                changes["notes"] = optional_str(data["notes"], "notes")
            if "low_stock_threshold" in data:
                changes["low_stock_threshold"] = parse_int(
                    data["low_stock_threshold"], "low_stock_threshold", minimum=0
                )
            if "tax_id" in data:
                tax_id = parse_int(data["tax_id"], "tax_id", minimum=1, allow_none=True)
                _require_tax(tax_id, unit.shop_id)
                changes["tax_id"] = tax_id
            if "vendor_kind" in data or "vendor_id" in data:
                ref = parse_vendor_ref(data.get("vendor_kind"), data.get("vendor_id"))
                resolve_vendor_ref(ref, unit.shop_id)
                changes.update(ref.as_columns() if ref else {"vendor_kind": None, "vendor_id": None})

            quantity = unit.quantity
            if "quantity" in data:
                quantity = parse_int(data["quantity"], "quantity", minimum=1)
                changes["quantity"] = quantity
            _check_tracking(variant, identifiers, quantity)

            for name, value in changes.items():
                setattr(unit, name, value)
            db.session.flush()
        return unit

    unit = run_with_retry(_op)
    current_app.logger.info("Stock unit %s updated by user %s", unit.id, ctx.user_id)
    return unit


def soft_delete(ctx: StockContext, unit_id: int) -> StockUnit:
    """Deactivate a never-sold unit; its identifiers become free again."""
    def _op():
        with atomic():
            unit = get_unit(ctx, unit_id, lock=True)
            if unit.is_sold or unit.sale_item_id is not None:
                raise ConflictError("Sold units cannot be deleted", details={"unit_id": unit.id})
            referenced = db.session.query(SaleItem.id).filter_by(stock_unit_id=unit.id).first()
            if referenced:
                raise ConflictError("Unit is referenced by a sale", details={"unit_id": unit.id})

            conditional_update(
                StockUnit,
                unit.id,
                where=[StockUnit.is_active == True, StockUnit.is_sold == False],
                values={"is_active": False},
                error=ConflictError("Stock unit changed concurrently", details={"unit_id": unit.id}),
            )
            db.session.refresh(unit)
        return unit

    unit = run_with_retry(_op)
    current_app.logger.info("Stock unit %s deactivated by user %s", unit.id, ctx.user_id)
    return unit
