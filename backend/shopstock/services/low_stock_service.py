from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import StockUnit, Variant, Product
from ..models.stock import STATUS_IN_STOCK
from ..context import StockContext


def get_low_stock(ctx: StockContext, shop_id: int) -> list[dict]:
    """
    Variants of `shop_id` whose available count is at or below threshold.

    Thresholds live on each unit, so the variant's threshold is the minimum
    across its matching rows. Count is the summed quantity (1 per
    serialized unit).
    """
    ctx.require_shop(shop_id)

    count = func.sum(StockUnit.quantity)
    threshold = func.min(StockUnit.low_stock_threshold)
    rows = (
        db.session.query(
            Variant.id,
            Variant.variant_name,
            Product.name,
            count.label("count"),
            threshold.label("threshold"),
        )
        .select_from(StockUnit)
        .join(Variant, Variant.id == StockUnit.variant_id)
        .join(Product, Product.id == Variant.product_id)
        .filter(
            StockUnit.shop_id == shop_id,
            StockUnit.is_active == True,
            StockUnit.is_sold == False,
            StockUnit.status == STATUS_IN_STOCK,
        )
        .group_by(Variant.id, Variant.variant_name, Product.name)
        .having(count <= threshold)
        .order_by(count.asc(), Variant.id.asc())
        .all()
    )

    return [
        {
            "variant_id": variant_id,
            "variant_name": variant_name,
            "product_name": product_name,
            "count": int(total),
            "threshold": int(minimum),
        }
        for variant_id, variant_name, product_name, total, minimum in rows
    ]
