# Overview: Flask API routes for stock units; parses input and returns JSON responses.

# backend/shopstock/routes/stock.py
"""
Stock unit API routes

All routes require a stock context (X-User-Id, optional X-Shop-Id) and only
ever see units in the caller's shops.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import stock_service
from ..errors import StockError, error_response
from ..decorators import require_context


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_context
def list_units_route():
    """List units with filters: shop_id, variant_id, status, condition, vendor_kind, vendor_id, is_sold, search."""
    try:
        result = stock_service.list_units(
            g.stock_context,
            shop_id=request.args.get("shop_id", type=int),
            variant_id=request.args.get("variant_id", type=int),
            status=request.args.get("status"),
            condition=request.args.get("condition"),
            vendor_kind=request.args.get("vendor_kind"),
            vendor_id=request.args.get("vendor_id", type=int),
            is_sold=request.args.get("is_sold"),
            search=request.args.get("search"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/summary")
@require_context
def stock_summary_route():
    try:
        summary = stock_service.stock_summary(g.stock_context, request.args.get("shop_id", type=int))
        return jsonify(summary), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build stock summary")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/lookup")
@require_context
def lookup_unit_route():
    """
    Scan lookup.

    Query: kind=imei|serial|barcode (default barcode), value, shop_id (optional).
    """
    try:
        unit = stock_service.find_by_identifier(
            g.stock_context,
            request.args.get("kind", "barcode"),
            request.args.get("value"),
            request.args.get("shop_id", type=int),
        )
        return jsonify({"stock": unit.to_snapshot()}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to lookup stock unit")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/<int:unit_id>")
@require_context
def get_unit_route(unit_id: int):
    try:
        unit = stock_service.get_unit(g.stock_context, unit_id)
        return jsonify({"stock": unit.to_snapshot()}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get stock unit")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("")
@require_context
def create_unit_route():
    """
    Register one unit.

    Request body:
    {
        "variant_id": int, "shop_id": int,
        "primary_imei", "secondary_imei", "serial_number", "barcode": str (optional),
        "purchase_price", "sale_price": "decimal" (optional),
        "condition": "new" | "used" | "refurbished",
        "vendor_kind": "vendor" | "customer" | "wholesaler", "vendor_id": int,
        "tax_id": int, "low_stock_threshold": int, "quantity": int, "notes": str
    }
    """
    try:
        unit = stock_service.create_unit(g.stock_context, request.get_json(silent=True))
        return jsonify({"stock": unit.to_dict()}), 201
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create stock unit")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/bulk")
@require_context
def create_units_bulk_route():
    """
    All-or-nothing intake.

    Request body: shared unit fields plus
    {"quantity": int, "items": [{"primary_imei", "secondary_imei", "serial_number", "barcode", "notes"}]}
    """
    try:
        units = stock_service.create_units_bulk(g.stock_context, request.get_json(silent=True))
        return jsonify({"stock": [u.to_dict() for u in units], "count": len(units)}), 201
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create stock in bulk")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.patch("/<int:unit_id>")
@require_context
def update_unit_route(unit_id: int):
    try:
        unit = stock_service.update_unit(g.stock_context, unit_id, request.get_json(silent=True))
        return jsonify({"stock": unit.to_dict()}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update stock unit")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.delete("/<int:unit_id>")
@require_context
def delete_unit_route(unit_id: int):
    """Soft delete; sold units are refused with 409."""
    try:
        unit = stock_service.soft_delete(g.stock_context, unit_id)
        return jsonify({"stock": unit.to_dict()}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete stock unit")
        return jsonify({"error": "Internal server error"}), 500
