# Overview: Atomic sale creation from a cart of stock units, plus sale lookups.

"""
Sales Service - cart -> immutable sale

WHY: A sale is the only way a unit becomes sold. The sale row, its lines,
every unit transition and the customer's running total are written in one
transaction, so a sale either happens completely or not at all.

ALGORITHM (create_sale):
1. Resolve every cart unit inside the sale's shop (locked). Missing ->
   NotFoundError; not in_stock -> UnavailableError. Nothing written yet.
2. Price each line (override price, else the unit's sale price) and total
   it: subtotal = sum(lines), total = subtotal - discount + tax.
3. Insert Sale + SaleItems, move each unit through the transition primitive
   (conditional UPDATE, so a concurrent sale of the same unit aborts this
   one), then bump the customer's total_purchases.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleItem, StockUnit, Customer
from ..models.sales import PAYMENT_METHODS
from ..models.stock import STATUS_IN_STOCK
from ..context import StockContext
from ..errors import NotFoundError, UnavailableError, ValidationError
from ..time_utils import utcnow, parse_iso_datetime
from ..validation import PayloadPolicy, format_cents, parse_choice, parse_int, parse_money_cents
from .concurrency import atomic, conditional_update, lock_for_update, run_with_retry
from .pagination import paginate
from . import stock_service


SALE_POLICY = PayloadPolicy(
    writable_fields=frozenset({"customer_id", "payment_method", "discount", "tax", "items"}),
    required_on_create=frozenset({"items"}),
)

CART_ITEM_FIELDS = frozenset({"stock_unit_id", "price", "quantity"})


@dataclass(frozen=True)
class CartItem:
    unit_id: int
    quantity: int = 1
    price_cents: int | None = None


@dataclass(frozen=True)
class SaleLine:
    unit: StockUnit
    quantity: int
    unit_price_cents: int

    @property
    def total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


def parse_cart(raw_items) -> list[CartItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("A sale needs at least one item")

    cart = []
    seen = set()
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object", details={"index": index})
        unknown = set(raw) - CART_ITEM_FIELDS
        if unknown:
            raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}", details={"index": index})

        unit_id = parse_int(raw.get("stock_unit_id"), "stock_unit_id", minimum=1)
        if unit_id in seen:
            raise ValidationError("The same unit appears twice in the cart", details={"unit_id": unit_id})
        seen.add(unit_id)

        cart.append(CartItem(
            unit_id=unit_id,
            quantity=parse_int(raw.get("quantity"), "quantity", minimum=1, allow_none=True) or 1,
            price_cents=parse_money_cents(raw.get("price"), "price", allow_none=True),
        ))
    return cart


def _resolve_units(shop_id: int, cart: list[CartItem]) -> dict[int, StockUnit]:
    ids = [item.unit_id for item in cart]
    units = (
        lock_for_update(
            db.session.query(StockUnit).filter(
                StockUnit.id.in_(ids),
                StockUnit.shop_id == shop_id,
                StockUnit.is_active == True,
            )
        )
        .all()
    )
    by_id = {u.id: u for u in units}

    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFoundError("Stock unit not found in this shop", details={"unit_ids": missing})

    unavailable = [
        {"unit_id": u.id, "status": u.status}
        for u in units
        if u.status != STATUS_IN_STOCK or u.is_sold
    ]
    if unavailable:
        raise UnavailableError("Stock unit is not available for sale", details={"units": unavailable})

    return by_id


def _compute_lines(units: dict[int, StockUnit], cart: list[CartItem]) -> list[SaleLine]:
    lines = []
    for item in cart:
        unit = units[item.unit_id]
        if unit.variant.is_serialized:
            if item.quantity != 1:
                raise ValidationError("Serialized units are sold one at a time", details={"unit_id": unit.id})
        elif item.quantity > unit.quantity:
            raise UnavailableError(
                "Insufficient quantity available",
                details={"unit_id": unit.id, "requested": item.quantity, "available": unit.quantity},
            )

        price = item.price_cents if item.price_cents is not None else unit.sale_price_cents
        if price is None:
            raise ValidationError("Unit has no sale price", details={"unit_id": unit.id})
        lines.append(SaleLine(unit=unit, quantity=item.quantity, unit_price_cents=price))
    return lines


def _require_customer(customer_id: int, shop_id: int) -> Customer:
    customer = (
        db.session.query(Customer)
        .filter_by(id=customer_id, shop_id=shop_id, is_active=True)
        .first()
    )
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def create_sale(ctx: StockContext, payload: dict) -> Sale:
    """Sell every unit in the cart at the caller's active shop, or nothing."""
    data = SALE_POLICY.check(payload, partial=False)
    shop_id = ctx.require_active_shop()
    cart = parse_cart(data.get("items"))
    payment_method = parse_choice(data.get("payment_method"), "payment_method", PAYMENT_METHODS, default="cash")
    discount_cents = parse_money_cents(data.get("discount"), "discount", allow_none=True) or 0
    tax_cents = parse_money_cents(data.get("tax"), "tax", allow_none=True) or 0
    customer_id = parse_int(data.get("customer_id"), "customer_id", minimum=1, allow_none=True)

    def _op():
        with atomic():
            units = _resolve_units(shop_id, cart)
            lines = _compute_lines(units, cart)
            customer = _require_customer(customer_id, shop_id) if customer_id is not None else None

            subtotal_cents = sum(line.total_cents for line in lines)
            if discount_cents > subtotal_cents + tax_cents:
                raise ValidationError(
                    "Discount exceeds sale amount",
                    details={"discount": format_cents(discount_cents), "subtotal": format_cents(subtotal_cents)},
                )
            total_cents = subtotal_cents - discount_cents + tax_cents

            sale = Sale(
                shop_id=shop_id,
                sales_person_id=ctx.user_id,
                customer_id=customer.id if customer else None,
                payment_method=payment_method,
                subtotal_cents=subtotal_cents,
                discount_cents=discount_cents,
                tax_cents=tax_cents,
                total_cents=total_cents,
            )
            db.session.add(sale)
            db.session.flush()

            for position, line in enumerate(lines, start=1):
                item = SaleItem(
                    sale_id=sale.id,
                    stock_unit_id=line.unit.id,
                    position=position,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    line_total_cents=line.total_cents,
                )
                db.session.add(item)
                db.session.flush()
                stock_service.take_quantity(line.unit, line.quantity, sale_item_id=item.id)

            if customer is not None:
                conditional_update(
                    Customer,
                    customer.id,
                    where=[Customer.is_active == True, Customer.shop_id == shop_id],
                    values={
                        "total_purchases_cents": Customer.total_purchases_cents + total_cents,
                        "last_purchase_at": utcnow(),
                    },
                    error=NotFoundError("Customer not found", details={"customer_id": customer.id}),
                )
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s created in shop %s by user %s (%d items, total %s)",
        sale.id, shop_id, ctx.user_id, len(cart), format_cents(sale.total_cents),
    )
    return sale


def serialize_sale(sale: Sale) -> dict:
    data = sale.to_dict(include_items=True)
    data["customer"] = sale.customer.to_dict() if sale.customer else None
    return data


def get_sale(ctx: StockContext, sale_id: int) -> Sale:
    sale = (
        db.session.query(Sale)
        .filter(Sale.id == sale_id, Sale.shop_id.in_(list(ctx.shop_ids)))
        .first()
    )
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def _parse_date(value, name: str, *, end_of_day: bool = False):
    try:
        return parse_iso_datetime(value, end_of_day=end_of_day)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError(f"{name} must be an ISO-8601 date")


def list_sales(
    ctx: StockContext,
    *,
    shop_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    payment_method: str | None = None,
    page=None,
    limit=None,
) -> dict:
    q = db.session.query(Sale).filter(Sale.shop_id.in_(list(ctx.scope(shop_id))))

    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date", end_of_day=True)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    if payment_method is not None:
        q = q.filter(Sale.payment_method == parse_choice(payment_method, "payment_method", PAYMENT_METHODS))

    total_cents = q.with_entities(db.func.coalesce(db.func.sum(Sale.total_cents), 0)).scalar()
    rows, pagination = paginate(q.order_by(Sale.created_at.desc(), Sale.id.desc()), page, limit)
    return {
        "sales": [s.to_dict() for s in rows],
        "pagination": pagination,
        "total_amount": format_cents(int(total_cents or 0)),
    }
