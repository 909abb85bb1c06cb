# Overview: Defect (garbage) marking and its reversal.

"""
Garbage Service - defect / write-off workflow

mark_defective:  in_stock  -> defective, plus one active GarbageRecord
clear_defective: defective -> in_stock, the record is deleted
update_record:   change reason or deactivate; unit status untouched

At most one active record per unit (partial unique index backs this up).
Sold units can never be marked.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import GarbageRecord, Reason, StockUnit
from ..models.stock import STATUS_DEFECTIVE, STATUS_IN_STOCK, STATUS_SOLD
from ..context import StockContext
from ..errors import ConflictError, NotFoundError, UnavailableError
from ..validation import PayloadPolicy, parse_bool, parse_int
from .concurrency import atomic, lock_for_update, run_with_retry
from .pagination import paginate
from . import stock_service


GARBAGE_CREATE_POLICY = PayloadPolicy(
    writable_fields=frozenset({"stock_unit_id", "reason_id"}),
    required_on_create=frozenset({"stock_unit_id", "reason_id"}),
)

GARBAGE_UPDATE_POLICY = PayloadPolicy(writable_fields=frozenset({"reason_id", "is_active"}))


def _require_reason(reason_id: int) -> Reason:
    reason = db.session.query(Reason).filter_by(id=reason_id, is_active=True).first()
    if not reason:
        raise NotFoundError("Reason not found", details={"reason_id": reason_id})
    return reason


def _active_record_for(unit_id: int) -> GarbageRecord | None:
    return (
        db.session.query(GarbageRecord)
        .filter_by(stock_unit_id=unit_id, is_active=True)
        .first()
    )


def get_record(ctx: StockContext, record_id: int, *, lock: bool = False) -> GarbageRecord:
    q = (
        db.session.query(GarbageRecord)
        .join(StockUnit, StockUnit.id == GarbageRecord.stock_unit_id)
        .filter(GarbageRecord.id == record_id, StockUnit.shop_id.in_(list(ctx.shop_ids)))
    )
    if lock:
        q = lock_for_update(q)
    record = q.first()
    if not record:
        raise NotFoundError("Garbage record not found", details={"record_id": record_id})
    return record


def mark_defective(ctx: StockContext, payload: dict) -> GarbageRecord:
    data = GARBAGE_CREATE_POLICY.check(payload, partial=False)
    unit_id = parse_int(data.get("stock_unit_id"), "stock_unit_id", minimum=1)
    reason_id = parse_int(data.get("reason_id"), "reason_id", minimum=1)

    def _op():
        with atomic():
            unit = stock_service.get_unit(ctx, unit_id, lock=True)
            _require_reason(reason_id)

            if unit.status == STATUS_SOLD or unit.is_sold:
                raise UnavailableError("Sold units cannot be marked defective", details={"unit_id": unit.id})
            if _active_record_for(unit.id) is not None or unit.status == STATUS_DEFECTIVE:
                raise ConflictError("Unit is already marked defective", details={"unit_id": unit.id})

            record = GarbageRecord(stock_unit_id=unit.id, reason_id=reason_id, is_active=True)
            db.session.add(record)
            db.session.flush()
            stock_service.transition(
                unit,
                from_statuses=[STATUS_IN_STOCK],
                to_status=STATUS_DEFECTIVE,
                error=ConflictError("Unit changed concurrently", details={"unit_id": unit.id}),
            )
        return record

    record = run_with_retry(_op)
    current_app.logger.info("Unit %s marked defective (record %s) by user %s", unit_id, record.id, ctx.user_id)
    return record


def clear_defective(ctx: StockContext, record_id: int) -> StockUnit:
    """Delete the record and put the unit back in stock."""
    def _op():
        with atomic():
            record = get_record(ctx, record_id, lock=True)
            unit = record.stock_unit
            db.session.delete(record)
            db.session.flush()
            stock_service.transition(
                unit,
                from_statuses=[STATUS_DEFECTIVE],
                to_status=STATUS_IN_STOCK,
                error=ConflictError("Unit is not marked defective", details={"unit_id": unit.id}),
            )
        return unit

    unit = run_with_retry(_op)
    current_app.logger.info("Defect record %s cleared; unit %s back in stock", record_id, unit.id)
    return unit


def update_record(ctx: StockContext, record_id: int, payload: dict) -> GarbageRecord:
    """Change the reason and/or deactivate the record. Unit status stays as is."""
    data = GARBAGE_UPDATE_POLICY.check(payload, partial=True)

    def _op():
        with atomic():
            record = get_record(ctx, record_id, lock=True)
            if "reason_id" in data:
                record.reason_id = _require_reason(parse_int(data["reason_id"], "reason_id", minimum=1)).id
            if "is_active" in data:
                is_active = parse_bool(data["is_active"], "is_active")
                if is_active and not record.is_active and _active_record_for(record.stock_unit_id):
                    raise ConflictError(
                        "Unit already has an active garbage record",
                        details={"unit_id": record.stock_unit_id},
                    )
                record.is_active = is_active
            db.session.flush()
        return record

    return run_with_retry(_op)


def list_records(
    ctx: StockContext,
    *,
    shop_id: int | None = None,
    reason_id: int | None = None,
    include_inactive=False,
    page=None,
    limit=None,
) -> dict:
    """Active records in the caller's shops; deactivated ones only on request."""
    q = (
        db.session.query(GarbageRecord)
        .join(StockUnit, StockUnit.id == GarbageRecord.stock_unit_id)
        .filter(StockUnit.shop_id.in_(list(ctx.scope(shop_id))))
    )
    if not parse_bool(include_inactive, "include_inactive"):
        q = q.filter(GarbageRecord.is_active == True)
    if reason_id is not None:
        q = q.filter(GarbageRecord.reason_id == parse_int(reason_id, "reason_id", minimum=1))

    rows, pagination = paginate(q.order_by(GarbageRecord.created_at.desc(), GarbageRecord.id.desc()), page, limit)
    return {"records": [r.to_dict() for r in rows], "pagination": pagination}
