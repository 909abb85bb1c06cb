# backend/shopstock/routes/transfers.py
"""
Shop-to-shop transfer API routes.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import transfer_service
from ..errors import StockError, UnavailableError, error_response
from ..decorators import require_context


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


def _transfer_error(e: StockError):
    # A unit that cannot be moved is reported as "not found for transfer"
    if isinstance(e, UnavailableError):
        return error_response(e, 404)
    return error_response(e)


@transfers_bp.route("", methods=["POST"])
@require_context
def create_transfer():
    """
    Move one unit to another shop.

    Request body:
    {
        "stock_unit_id": int  or  "imei": str,
        "from_shop_id": int,
        "to_shop_id": int,
        "notes": str (optional)
    }

    Returns:
        201: Transfer record and the moved unit
        400: Same shop / invalid request
        403: No access to one of the shops
        404: Unit not available for transfer
        409: Barcode already used in the destination shop
    """
    try:
        transfer, unit = transfer_service.create_transfer(g.stock_context, request.get_json(silent=True))
        return jsonify({
            "transfer": transfer.to_dict(include_items=True),
            "stock": unit.to_snapshot(),
        }), 201
    except StockError as e:
        return _transfer_error(e)
    except Exception:
        current_app.logger.exception("Failed to create transfer")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.route("/batch", methods=["POST"])
@require_context
def create_batch_transfer():
    """Move several units at once: {"stock_unit_ids": [int], "from_shop_id", "to_shop_id", "notes"}."""
    try:
        transfer, units = transfer_service.create_batch_transfer(g.stock_context, request.get_json(silent=True))
        return jsonify({
            "transfer": transfer.to_dict(include_items=True),
            "stock": [u.to_dict() for u in units],
        }), 201
    except StockError as e:
        return _transfer_error(e)
    except Exception:
        current_app.logger.exception("Failed to create batch transfer")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.route("", methods=["GET"])
@require_context
def list_transfers():
    try:
        result = transfer_service.list_transfers(
            g.stock_context,
            shop_id=request.args.get("shop_id", type=int),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transfers")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.route("/lookup", methods=["GET"])
@require_context
def find_transferable_unit():
    """In-stock unit by IMEI: ?imei=...&shop_id=..."""
    try:
        unit = transfer_service.find_transferable_unit(
            g.stock_context,
            request.args.get("imei"),
            request.args.get("shop_id", type=int),
        )
        return jsonify({"stock": unit.to_snapshot()}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to lookup transferable unit")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.route("/<int:transfer_id>", methods=["GET"])
@require_context
def get_transfer(transfer_id: int):
    try:
        transfer = transfer_service.get_transfer(g.stock_context, transfer_id)
        return jsonify({"transfer": transfer.to_dict(include_items=True)}), 200
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get transfer")
        return jsonify({"error": "Internal server error"}), 500
