from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z
from shopstock.validation import format_cents


class Customer(db.Model):
    """
    Shop customer.

    total_purchases_cents is a denormalized running aggregate. Only the sale
    processor writes it, inside the same transaction as the sale.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_shop_active", "shop_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    total_purchases_cents = db.Column(db.Integer, nullable=False, default=0)
    last_purchase_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "total_purchases": format_cents(self.total_purchases_cents),
            "last_purchase_at": to_utc_z(self.last_purchase_at),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
