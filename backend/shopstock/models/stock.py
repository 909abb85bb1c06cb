from __future__ import annotations

from sqlalchemy import true

from ..extensions import db
from shopstock.time_utils import to_utc_z
from shopstock.validation import format_cents


# Unit lifecycle. Transfers complete synchronously, so there is no persisted
# in-transfer state: a moved unit is written straight back as in_stock.
STATUS_IN_STOCK = "in_stock"
STATUS_SOLD = "sold"
STATUS_DEFECTIVE = "defective"
UNIT_STATUSES = (STATUS_IN_STOCK, STATUS_SOLD, STATUS_DEFECTIVE)

CONDITIONS = ("new", "used", "refurbished")


class StockUnit(db.Model):
    """
    One physical, independently trackable item (a phone by IMEI/serial) or
    one bulk stock row for a non-serialized variant.

    IDENTIFIER RULES (enforced by identifier_service before every write, with
    partial unique indexes below as a database backstop):
    - primary_imei / secondary_imei share one global namespace across all
      active units of all shops
    - barcode is unique within the owning shop only
    - primary and secondary must differ when both are set

    STATUS: only stock_service.transition() writes status/is_sold, and it
    always writes them together (is_sold == (status == "sold")).

    SOFT DELETE: units are never physically deleted because sale lines
    reference them; is_active=False removes them from lookups and frees
    their identifiers.
    """
    __tablename__ = "stock_units"
    __table_args__ = (
        db.Index("ix_stock_units_shop_status", "shop_id", "status", "is_active"),
        db.Index("ix_stock_units_shop_variant", "shop_id", "variant_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    # Back-reference to the sale line that sold it (sale_items also points here,
    # so this side stays a plain column to avoid a circular FK)
    sale_item_id = db.Column(db.Integer, nullable=True, index=True)

    primary_imei = db.Column(db.String(32), nullable=True)
    secondary_imei = db.Column(db.String(32), nullable=True)
    serial_number = db.Column(db.String(100), nullable=True, index=True)
    barcode = db.Column(db.String(100), nullable=True)

    purchase_price_cents = db.Column(db.Integer, nullable=True)
    sale_price_cents = db.Column(db.Integer, nullable=True)

    condition = db.Column(db.String(16), nullable=False, default="new")
    notes = db.Column(db.Text, nullable=True)

    # Tagged vendor reference: vendor_kind picks the table vendor_id points into
    vendor_kind = db.Column(db.String(16), nullable=True)
    vendor_id = db.Column(db.Integer, nullable=True)

    tax_id = db.Column(db.Integer, db.ForeignKey("taxes.id"), nullable=True)

    # Only meaningful when aggregated per variant (see low_stock_service)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    # 1 for serialized units; remaining count for a bulk row
    quantity = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(db.String(16), nullable=False, default=STATUS_IN_STOCK, index=True)
    is_sold = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variant = db.relationship("Variant")
    shop = db.relationship("Shop", backref=db.backref("stock_units", lazy=True))
    tax = db.relationship("Tax")

    def __repr__(self) -> str:
        return f"<StockUnit id={self.id} shop_id={self.shop_id} status={self.status} imei={self.primary_imei!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "shop_id": self.shop_id,
            "sale_item_id": self.sale_item_id,
            "primary_imei": self.primary_imei,
            "secondary_imei": self.secondary_imei,
            "serial_number": self.serial_number,
            "barcode": self.barcode,
            "purchase_price": format_cents(self.purchase_price_cents),
            "sale_price": format_cents(self.sale_price_cents),
            "condition": self.condition,
            "notes": self.notes,
            "vendor_kind": self.vendor_kind,
            "vendor_id": self.vendor_id,
            "tax_id": self.tax_id,
            "low_stock_threshold": self.low_stock_threshold,
            "quantity": self.quantity,
            "status": self.status,
            "is_sold": self.is_sold,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_snapshot(self) -> dict:
        """Unit joined with its variant / product / brand / category names."""
        data = self.to_dict()
        data["variant"] = self.variant.to_dict() if self.variant else None
        data["shop_name"] = self.shop.name if self.shop else None
        return data


class GarbageRecord(db.Model):
    """
    Defect / write-off marker attached to a unit.

    At most one active record per unit (partial unique index below). Clearing
    a defect deletes the record; deactivating keeps it for history without
    touching the unit's status.
    """
    __tablename__ = "garbage_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    stock_unit_id = db.Column(db.Integer, db.ForeignKey("stock_units.id"), nullable=False, index=True)
    reason_id = db.Column(db.Integer, db.ForeignKey("reasons.id"), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    stock_unit = db.relationship("StockUnit")
    reason = db.relationship("Reason")

    def to_dict(self) -> dict:
        unit = self.stock_unit
        return {
            "id": self.id,
            "stock_unit_id": self.stock_unit_id,
            "reason_id": self.reason_id,
            "reason_text": self.reason.text if self.reason else None,
            "is_active": self.is_active,
            "shop_id": unit.shop_id if unit else None,
            "primary_imei": unit.primary_imei if unit else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


# Partial unique indexes: only active rows take part in identifier uniqueness.
db.Index(
    "uq_stock_units_primary_imei_active",
    StockUnit.primary_imei,
    unique=True,
    sqlite_where=StockUnit.is_active == true(),
    postgresql_where=StockUnit.is_active == true(),
)
db.Index(
    "uq_stock_units_secondary_imei_active",
    StockUnit.secondary_imei,
    unique=True,
    sqlite_where=StockUnit.is_active == true(),
    postgresql_where=StockUnit.is_active == true(),
)
db.Index(
    "uq_stock_units_shop_barcode_active",
    StockUnit.shop_id,
    StockUnit.barcode,
    unique=True,
    sqlite_where=StockUnit.is_active == true(),
    postgresql_where=StockUnit.is_active == true(),
)
db.Index(
    "uq_garbage_records_unit_active",
    GarbageRecord.stock_unit_id,
    unique=True,
    sqlite_where=GarbageRecord.is_active == true(),
    postgresql_where=GarbageRecord.is_active == true(),
)
