from __future__ import annotations

from ..extensions import db
from shopstock.time_utils import to_utc_z


# Transfers complete synchronously; pending/cancelled are reserved values
# that nothing writes yet.
TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_COMPLETED = "completed"
TRANSFER_STATUS_CANCELLED = "cancelled"


class StockTransfer(db.Model):
    """Audit record of units moving from one shop to another."""
    __tablename__ = "stock_transfers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    from_shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    to_shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_COMPLETED)
    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    from_shop = db.relationship("Shop", foreign_keys=[from_shop_id])
    to_shop = db.relationship("Shop", foreign_keys=[to_shop_id])
    items = db.relationship("StockTransferItem", back_populates="transfer", order_by="StockTransferItem.id", lazy=True)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "from_shop_id": self.from_shop_id,
            "to_shop_id": self.to_shop_id,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StockTransferItem(db.Model):
    __tablename__ = "stock_transfer_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transfer_id = db.Column(db.Integer, db.ForeignKey("stock_transfers.id"), nullable=False, index=True)
    stock_unit_id = db.Column(db.Integer, db.ForeignKey("stock_units.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transfer = db.relationship("StockTransfer", back_populates="items")
    stock_unit = db.relationship("StockUnit")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transfer_id": self.transfer_id,
            "stock_unit_id": self.stock_unit_id,
            "created_at": to_utc_z(self.created_at),
        }
