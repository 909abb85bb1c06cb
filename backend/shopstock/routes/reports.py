# backend/shopstock/routes/reports.py
from flask import Blueprint, request, jsonify, current_app, g

from ..services import low_stock_service
from ..errors import StockError, error_response
from ..decorators import require_context


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/low-stock")
@require_context
def low_stock_report():
    """
    Low-stock variants for one shop.

    Query: shop_id (defaults to the caller's active shop)
    """
    try:
        ctx = g.stock_context
        shop_id = request.args.get("shop_id", type=int)
        if shop_id is None:
            shop_id = ctx.require_active_shop()
        rows = low_stock_service.get_low_stock(ctx, shop_id)
        return jsonify({"shop_id": shop_id, "variants": rows}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build low-stock report")
        return jsonify({"error": "Internal server error"}), 500
