from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z


TRACKING_SERIALIZED = "serialized"
TRACKING_BULK = "bulk"


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)


class Brand(db.Model):
    __tablename__ = "brands"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)


class Product(db.Model):
    """Global product master (e.g. "iPhone 15 Pro"); shops stock its variants."""
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    category = db.relationship("Category")
    brand = db.relationship("Brand")


class Variant(db.Model):
    """
    Sellable configuration of a product (color / storage combination).

    tracking_mode decides how its stock is counted:
    - serialized: one StockUnit per physical device, quantity always 1
    - bulk: a StockUnit row carries a quantity that sales decrement
    """
    __tablename__ = "variants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_name = db.Column(db.String(300), nullable=False)
    color = db.Column(db.String(50), nullable=True)
    storage_size = db.Column(db.String(20), nullable=True)
    sku = db.Column(db.String(100), nullable=True)
    tracking_mode = db.Column(db.String(16), nullable=False, default=TRACKING_SERIALIZED)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))

    @property
    def is_serialized(self) -> bool:
        return self.tracking_mode == TRACKING_SERIALIZED

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_name": self.variant_name,
            "color": self.color,
            "storage_size": self.storage_size,
            "sku": self.sku,
            "tracking_mode": self.tracking_mode,
            "product_name": product.name if product else None,
            "brand_name": product.brand.name if product and product.brand else None,
            "category_name": product.category.name if product and product.category else None,
        }


class Vendor(db.Model):
    """Supplier record units can be bought from."""
    __tablename__ = "vendors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class Tax(db.Model):
    """Flat, shop-scoped tax (no percentage taxes)."""
    __tablename__ = "taxes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    value_cents = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class Reason(db.Model):
    """Defect / write-off reason text, owned by the user that created it."""
    __tablename__ = "reasons"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.String(500), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "user_id": self.user_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
