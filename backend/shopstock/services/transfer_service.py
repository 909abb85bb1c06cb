# Overview: Shop-to-shop movement of in-stock units with an audit record.
"""
Transfer service.

WHY: Move units between shops the caller works at, leaving a StockTransfer
audit row behind. Transfers complete synchronously: the unit is rewritten
with its new shop_id and stays in_stock, so it is never visible in two
shops and never in a half-moved state.

STATUS: every transfer is written as "completed". The pending/cancelled
values exist on the column but no workflow produces them.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from shopstock.extensions import db
from shopstock.models import StockTransfer, StockTransferItem, StockUnit
from shopstock.models.stock import STATUS_IN_STOCK
from shopstock.models.transfers import TRANSFER_STATUS_COMPLETED
from shopstock.context import StockContext
from shopstock.errors import ConflictError, NotFoundError, UnavailableError, ValidationError
from shopstock.validation import PayloadPolicy, optional_str, parse_int
from shopstock.services.concurrency import atomic, lock_for_update, run_with_retry
from shopstock.services.identifier_service import find_barcode_conflict, lookup_unit
from shopstock.services.pagination import paginate
from shopstock.services import stock_service


TRANSFER_POLICY = PayloadPolicy(
    writable_fields=frozenset({"stock_unit_id", "imei", "from_shop_id", "to_shop_id", "notes"}),
    required_on_create=frozenset({"from_shop_id", "to_shop_id"}),
)

BATCH_TRANSFER_POLICY = PayloadPolicy(
    writable_fields=frozenset({"stock_unit_ids", "from_shop_id", "to_shop_id", "notes"}),
    required_on_create=frozenset({"stock_unit_ids", "from_shop_id", "to_shop_id"}),
)


def _parse_route(ctx: StockContext, data: dict) -> tuple[int, int]:
    from_shop_id = parse_int(data.get("from_shop_id"), "from_shop_id", minimum=1)
    to_shop_id = parse_int(data.get("to_shop_id"), "to_shop_id", minimum=1)
    if from_shop_id == to_shop_id:
        raise ValidationError("Cannot transfer to the same shop")
    ctx.require_shop(from_shop_id)
    ctx.require_shop(to_shop_id)
    return from_shop_id, to_shop_id


def _load_unit(unit_id: int, from_shop_id: int) -> StockUnit:
    unit = lock_for_update(
        db.session.query(StockUnit).filter(
            StockUnit.id == unit_id,
            StockUnit.shop_id == from_shop_id,
            StockUnit.is_active == True,
        )
    ).first()
    if not unit:
        raise NotFoundError("Stock unit not found in source shop", details={"unit_id": unit_id})
    return unit


def _move_unit(unit: StockUnit, transfer: StockTransfer, from_shop_id: int, to_shop_id: int) -> None:
    if unit.status != STATUS_IN_STOCK or unit.is_sold:
        raise UnavailableError(
            "Stock unit is not available for transfer",
            details={"unit_id": unit.id, "status": unit.status},
        )
    if unit.barcode and find_barcode_conflict(to_shop_id, unit.barcode, exclude_unit_id=unit.id):
        raise ConflictError(
            f"Barcode '{unit.barcode}' is already used in the destination shop",
            details={"field": "barcode", "value": unit.barcode, "unit_id": unit.id},
        )

    db.session.add(StockTransferItem(transfer_id=transfer.id, stock_unit_id=unit.id))
    stock_service.transition(
        unit,
        from_statuses=[STATUS_IN_STOCK],
        to_status=STATUS_IN_STOCK,
        extra_where=[StockUnit.shop_id == from_shop_id, StockUnit.is_sold == False],
        shop_id=to_shop_id,
    )


def _new_transfer(ctx: StockContext, from_shop_id: int, to_shop_id: int, notes: str | None) -> StockTransfer:
    transfer = StockTransfer(
        from_shop_id=from_shop_id,
        to_shop_id=to_shop_id,
        status=TRANSFER_STATUS_COMPLETED,
        notes=notes,
        created_by_user_id=ctx.user_id,
    )
    db.session.add(transfer)
    db.session.flush()
    return transfer


def create_transfer(ctx: StockContext, payload: dict) -> tuple[StockTransfer, StockUnit]:
    """
    Move one unit from from_shop_id to to_shop_id.

    Args:
        ctx: Caller context; must include both shops
        payload: from_shop_id, to_shop_id, notes and either stock_unit_id or
            imei (resolved within the source shop)

    Returns:
        (transfer, unit) with the unit already in the destination shop

    Raises:
        ValidationError: same shop, or neither/both unit references given
        ForbiddenError: caller lacks access to either shop
        NotFoundError: unit not in the source shop
        UnavailableError: unit is not in_stock
        ConflictError: destination shop already uses the unit's barcode
    """
    data = TRANSFER_POLICY.check(payload, partial=False)
    from_shop_id, to_shop_id = _parse_route(ctx, data)
    notes = optional_str(data.get("notes"), "notes")

    unit_id = parse_int(data.get("stock_unit_id"), "stock_unit_id", minimum=1, allow_none=True)
    imei = optional_str(data.get("imei"), "imei")
    if (unit_id is None) == (imei is None):
        raise ValidationError("Provide exactly one of stock_unit_id or imei")

    def _op():
        with atomic():
            target_id = unit_id
            if target_id is None:
                found = lookup_unit("imei", imei, [from_shop_id])
                if found is None:
                    raise NotFoundError("Stock unit not found in source shop", details={"imei": imei})
                target_id = found.id

            unit = _load_unit(target_id, from_shop_id)
            transfer = _new_transfer(ctx, from_shop_id, to_shop_id, notes)
            _move_unit(unit, transfer, from_shop_id, to_shop_id)
        return transfer, unit

    transfer, unit = run_with_retry(_op)
    current_app.logger.info(
        "Transfer %s: unit %s moved from shop %s to shop %s by user %s",
        transfer.id, unit.id, from_shop_id, to_shop_id, ctx.user_id,
    )
    return transfer, unit


def create_batch_transfer(ctx: StockContext, payload: dict) -> tuple[StockTransfer, list[StockUnit]]:
    """Move several units under one transfer record; all of them or none."""
    data = BATCH_TRANSFER_POLICY.check(payload, partial=False)
    from_shop_id, to_shop_id = _parse_route(ctx, data)
    notes = optional_str(data.get("notes"), "notes")

    raw_ids = data.get("stock_unit_ids")
    if not isinstance(raw_ids, list) or not raw_ids:
        raise ValidationError("stock_unit_ids must be a non-empty list")
    unit_ids = [parse_int(v, "stock_unit_ids", minimum=1) for v in raw_ids]
    if len(set(unit_ids)) != len(unit_ids):
        raise ValidationError("Duplicate unit in transfer")
    max_items = current_app.config.get("BULK_CREATE_MAX_ITEMS", 100)
    if len(unit_ids) > max_items:
        raise ValidationError(f"A transfer can hold at most {max_items} units")

    def _op():
        with atomic():
            units = [_load_unit(uid, from_shop_id) for uid in unit_ids]
            transfer = _new_transfer(ctx, from_shop_id, to_shop_id, notes)
            for unit in units:
                _move_unit(unit, transfer, from_shop_id, to_shop_id)
        return transfer, units

    transfer, units = run_with_retry(_op)
    current_app.logger.info(
        "Transfer %s: %d units moved from shop %s to shop %s by user %s",
        transfer.id, len(units), from_shop_id, to_shop_id, ctx.user_id,
    )
    return transfer, units


def find_transferable_unit(ctx: StockContext, imei: str, shop_id: int | None = None) -> StockUnit:
    """In-stock unit with this IMEI in the caller's shops."""
    if not optional_str(imei, "imei"):
        raise ValidationError("imei is required")
    unit = lookup_unit("imei", imei, ctx.scope(shop_id), statuses=[STATUS_IN_STOCK])
    if unit is None or unit.is_sold:
        raise NotFoundError("No transferable unit with this IMEI", details={"imei": imei})
    return unit


def get_transfer(ctx: StockContext, transfer_id: int) -> StockTransfer:
    shop_ids = list(ctx.shop_ids)
    transfer = (
        db.session.query(StockTransfer)
        .filter(
            StockTransfer.id == transfer_id,
            or_(StockTransfer.from_shop_id.in_(shop_ids), StockTransfer.to_shop_id.in_(shop_ids)),
        )
        .first()
    )
    if not transfer:
        raise NotFoundError("Transfer not found", details={"transfer_id": transfer_id})
    return transfer


def list_transfers(ctx: StockContext, *, shop_id: int | None = None, page=None, limit=None) -> dict:
    shop_ids = list(ctx.scope(shop_id))
    q = db.session.query(StockTransfer).filter(
        or_(StockTransfer.from_shop_id.in_(shop_ids), StockTransfer.to_shop_id.in_(shop_ids))
    )
    rows, pagination = paginate(q.order_by(StockTransfer.created_at.desc(), StockTransfer.id.desc()), page, limit)
    return {"transfers": [t.to_dict() for t in rows], "pagination": pagination}
