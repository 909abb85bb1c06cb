# backend/shopstock/routes/system.py
"""
System health endpoint.

Reports database reachability and a few stock invariant counters so a
deploy can be checked at a glance.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import or_, and_

from ..extensions import db
from ..models import Shop, StockUnit
from ..models.stock import STATUS_SOLD
from shopstock.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Check database connectivity with a couple of cheap counts."""
    start_time = time.time()
    try:
        shop_count = db.session.query(Shop).count()
        unit_count = db.session.query(StockUnit).filter_by(is_active=True).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "shops": shop_count,
                "active_units": unit_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_stock_consistency() -> dict:
    """Units whose sold flag disagrees with their status make the check degraded."""
    start_time = time.time()
    try:
        inconsistent = db.session.query(StockUnit).filter(
            or_(
                and_(StockUnit.status == STATUS_SOLD, StockUnit.is_sold == False),
                and_(StockUnit.status != STATUS_SOLD, StockUnit.is_sold == True),
            )
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000
        if inconsistent:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"{inconsistent} units with inconsistent sold flag",
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Stock consistency check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Stock check error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    stock_health = check_stock_consistency()

    all_checks = [database_health, stock_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "stock": stock_health,
        }
    }
    return response, http_status
