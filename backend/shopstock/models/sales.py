from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z
from shopstock.validation import format_cents


PAYMENT_METHODS = ("cash", "card", "mobile", "bank_transfer")


class Sale(db.Model):
    """
    One completed transaction at one shop.

    INVARIANTS (computed once by sales_service.create_sale, never recomputed):
    - subtotal_cents == sum(item.line_total_cents)
    - total_cents == subtotal_cents - discount_cents + tax_cents

    Sales are never deleted; the row and its items are written in the same
    transaction that marks every referenced unit sold.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_shop_created", "shop_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    sales_person_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    payment_method = db.Column(db.String(32), nullable=False, default="cash")

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer")
    items = db.relationship("SaleItem", back_populates="sale", order_by="SaleItem.position", lazy=True)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "sales_person_id": self.sales_person_id,
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "subtotal": format_cents(self.subtotal_cents),
            "discount": format_cents(self.discount_cents),
            "tax": format_cents(self.tax_cents),
            "total": format_cents(self.total_cents),
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Sale line: one unit and the price it sold for."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_items_sale_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    stock_unit_id = db.Column(db.Integer, db.ForeignKey("stock_units.id"), nullable=False, index=True)

    # Cart order, 1-based
    position = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    stock_unit = db.relationship("StockUnit")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "stock_unit_id": self.stock_unit_id,
            "position": self.position,
            "quantity": self.quantity,
            "price": format_cents(self.unit_price_cents),
            "total": format_cents(self.line_total_cents),
            "created_at": to_utc_z(self.created_at),
        }
