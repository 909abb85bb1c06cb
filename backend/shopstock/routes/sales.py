# backend/shopstock/routes/sales.py
"""
Sales API routes.

A sale is always made at the caller's active shop (X-Shop-Id, or the only
shop the user works at).
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import sales_service
from ..errors import StockError, error_response
from ..decorators import require_context


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_context
def create_sale_route():
    """
    Create a sale from a cart.

    Request body:
    {
        "items": [{"stock_unit_id": int, "price": "decimal" (optional), "quantity": int (optional)}],
        "customer_id": int (optional),
        "payment_method": "cash" | "card" | "mobile" | "bank_transfer",
        "discount": "decimal" (optional),
        "tax": "decimal" (optional)
    }

    Returns:
        201: Sale with line items
        400: Invalid cart, or a unit is not available
        404: Unit or customer not found in this shop
    """
    try:
        sale = sales_service.create_sale(g.stock_context, request.get_json(silent=True))
        return jsonify({"sale": sales_service.serialize_sale(sale)}), 201
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_context
def list_sales_route():
    try:
        result = sales_service.list_sales(
            g.stock_context,
            shop_id=request.args.get("shop_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            payment_method=request.args.get("payment_method"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_context
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.stock_context, sale_id)
        return jsonify({"sale": sales_service.serialize_sale(sale)}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500
