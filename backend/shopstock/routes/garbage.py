# backend/shopstock/routes/garbage.py
"""
Defect (garbage) API routes.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import garbage_service
from ..errors import StockError, error_response
from ..decorators import require_context


garbage_bp = Blueprint("garbage", __name__, url_prefix="/api/garbage")


@garbage_bp.post("")
@require_context
def mark_defective_route():
    """
    Mark a unit defective: {"stock_unit_id": int, "reason_id": int}

    Returns:
        201: Garbage record
        400: Unit already sold
        404: Unit or reason not found
        409: Unit already defective
    """
    try:
        record = garbage_service.mark_defective(g.stock_context, request.get_json(silent=True))
        return jsonify({"record": record.to_dict()}), 201
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark unit defective")
        return jsonify({"error": "Internal server error"}), 500


@garbage_bp.get("")
@require_context
def list_records_route():
    try:
        result = garbage_service.list_records(
            g.stock_context,
            shop_id=request.args.get("shop_id", type=int),
            reason_id=request.args.get("reason_id", type=int),
            include_inactive=request.args.get("include_inactive", False),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list garbage records")
        return jsonify({"error": "Internal server error"}), 500


@garbage_bp.get("/<int:record_id>")
@require_context
def get_record_route(record_id: int):
    try:
        record = garbage_service.get_record(g.stock_context, record_id)
        return jsonify({"record": record.to_dict()}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get garbage record")
        return jsonify({"error": "Internal server error"}), 500


@garbage_bp.patch("/<int:record_id>")
@require_context
def update_record_route(record_id: int):
    """Change reason_id and/or is_active without touching the unit's status."""
    try:
        record = garbage_service.update_record(g.stock_context, record_id, request.get_json(silent=True))
        return jsonify({"record": record.to_dict()}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update garbage record")
        return jsonify({"error": "Internal server error"}), 500


@garbage_bp.delete("/<int:record_id>")
@require_context
def clear_defective_route(record_id: int):
    """Clear the defect: the record is deleted and the unit returns to in_stock."""
    try:
        unit = garbage_service.clear_defective(g.stock_context, record_id)
        return jsonify({"stock": unit.to_dict()}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to clear defect")
        return jsonify({"error": "Internal server error"}), 500
