# Overview: Request decorator that builds the caller's StockContext.

from functools import wraps
from flask import request, jsonify, g

from .errors import StockError
from .services import shop_access_service


def require_context(f):
    """
    Establish the caller's stock context.

    Authentication happens upstream; the gateway forwards the authenticated
    user id in X-User-Id and, optionally, the shop being operated at in
    X-Shop-Id. Sets:
    - g.stock_context: StockContext(user_id, shop_ids, active_shop_id)

    Returns 401 if the header is missing/malformed or the user is unknown or
    deactivated, 403 if X-Shop-Id is not one of the user's shops.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_user = request.headers.get("X-User-Id", "").strip()
        if not raw_user.isdigit():
            return jsonify({"error": "Authentication required"}), 401

        raw_shop = request.headers.get("X-Shop-Id", "").strip()
        if raw_shop and not raw_shop.isdigit():
            return jsonify({"error": "X-Shop-Id must be an integer"}), 400
        active_shop_id = int(raw_shop) if raw_shop else None

        try:
            context = shop_access_service.build_context(int(raw_user), active_shop_id)
        except StockError as e:
            if e.status_code == 404:
                return jsonify({"error": "Invalid or inactive user"}), 401
            return jsonify({"error": e.message}), e.status_code

        g.stock_context = context
        return f(*args, **kwargs)

    return decorated_function
