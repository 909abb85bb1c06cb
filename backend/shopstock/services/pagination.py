from __future__ import annotations

import math

from flask import current_app

from ..validation import parse_int


def page_params(page, limit) -> tuple[int, int]:
    default = current_app.config.get("DEFAULT_PAGE_SIZE", 20)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 100)
    page = parse_int(page, "page", minimum=1, allow_none=True) or 1
    limit = parse_int(limit, "limit", minimum=1, allow_none=True) or default
    return page, min(limit, maximum)


def paginate(query, page, limit) -> tuple[list, dict]:
    """Apply offset/limit to an ORM query; returns (rows, pagination dict)."""
    page, limit = page_params(page, limit)
    total = query.order_by(None).count()
    rows = query.limit(limit).offset((page - 1) * limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if total else 0,
    }
