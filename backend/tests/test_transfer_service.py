import pytest

from shopstock.extensions import db
from shopstock.models import StockTransfer, StockTransferItem, StockUnit
from shopstock.errors import ConflictError, ForbiddenError, NotFoundError, UnavailableError, ValidationError
from shopstock.services import transfer_service, sales_service, garbage_service


def test_transfer_moves_unit_and_writes_audit(db_session, ctx, make_unit, shop_a, shop_b):
    unit = make_unit(primary_imei="MOVE-1")

    transfer, moved = transfer_service.create_transfer(ctx, {
        "stock_unit_id": unit.id,
        "from_shop_id": shop_a.id,
        "to_shop_id": shop_b.id,
        "notes": "rebalance",
    })

    assert moved.shop_id == shop_b.id
    assert moved.status == "in_stock"
    assert transfer.status == "completed"
    assert transfer.created_by_user_id == ctx.user_id
    items = db.session.query(StockTransferItem).filter_by(transfer_id=transfer.id).all()
    assert [i.stock_unit_id for i in items] == [unit.id]
    # Exactly one row for the unit, now in the destination shop
    assert db.session.query(StockUnit).filter_by(primary_imei="MOVE-1").count() == 1


def test_transfer_by_imei(db_session, ctx, make_unit, shop_a, shop_b):
    unit = make_unit(secondary_imei="BY-IMEI")
    transfer, moved = transfer_service.create_transfer(ctx, {
        "imei": "by-imei",
        "from_shop_id": shop_a.id,
        "to_shop_id": shop_b.id,
    })
    assert moved.id == unit.id
    assert moved.shop_id == shop_b.id


def test_same_shop_rejected(db_session, ctx, make_unit, shop_a):
    unit = make_unit()
    with pytest.raises(ValidationError):
        transfer_service.create_transfer(ctx, {
            "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_a.id,
        })


def test_destination_outside_scope_forbidden(db_session, ctx, make_unit, shop_a, shop_c):
    unit = make_unit()
    with pytest.raises(ForbiddenError):
        transfer_service.create_transfer(ctx, {
            "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_c.id,
        })


def test_sold_unit_cannot_be_transferred(db_session, ctx, make_unit, shop_a, shop_b):
    unit = make_unit(primary_imei="IMEI-1")
    sales_service.create_sale(ctx, {"items": [{"stock_unit_id": unit.id}]})

    with pytest.raises(UnavailableError):
        transfer_service.create_transfer(ctx, {
            "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_b.id,
        })
    assert db.session.query(StockTransfer).count() == 0


def test_defective_unit_cannot_be_transferred(db_session, ctx, make_unit, reason, shop_a, shop_b):
    unit = make_unit()
    garbage_service.mark_defective(ctx, {"stock_unit_id": unit.id, "reason_id": reason.id})
    with pytest.raises(UnavailableError):
        transfer_service.create_transfer(ctx, {
            "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_b.id,
        })


def test_unit_not_in_source_shop(db_session, ctx, make_unit, shop_a, shop_b):
    unit = make_unit(shop_id=shop_b.id)
    with pytest.raises(NotFoundError):
        transfer_service.create_transfer(ctx, {
            "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_b.id,
        })


def test_barcode_taken_in_destination(db_session, ctx, make_unit, shop_a, shop_b):
    unit = make_unit(barcode="SHARED")
    make_unit(barcode="SHARED", shop_id=shop_b.id)
    with pytest.raises(ConflictError):
        transfer_service.create_transfer(ctx, {
            "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_b.id,
        })
    db.session.refresh(unit)
    assert unit.shop_id == shop_a.id


def test_exactly_one_unit_reference(db_session, ctx, shop_a, shop_b):
    with pytest.raises(ValidationError):
        transfer_service.create_transfer(ctx, {"from_shop_id": shop_a.id, "to_shop_id": shop_b.id})


def test_batch_transfer_is_all_or_nothing(db_session, ctx, make_unit, shop_a, shop_b):
    a = make_unit()
    b = make_unit()
    sold = make_unit()
    sales_service.create_sale(ctx, {"items": [{"stock_unit_id": sold.id}]})

    with pytest.raises(UnavailableError):
        transfer_service.create_batch_transfer(ctx, {
            "stock_unit_ids": [a.id, b.id, sold.id],
            "from_shop_id": shop_a.id,
            "to_shop_id": shop_b.id,
        })
    for unit in (a, b):
        db.session.refresh(unit)
        assert unit.shop_id == shop_a.id
    assert db.session.query(StockTransfer).count() == 0

    transfer, moved = transfer_service.create_batch_transfer(ctx, {
        "stock_unit_ids": [a.id, b.id],
        "from_shop_id": shop_a.id,
        "to_shop_id": shop_b.id,
    })
    assert {u.shop_id for u in moved} == {shop_b.id}
    assert len(transfer.items) == 2


def test_find_transferable_unit(db_session, ctx, make_unit, reason):
    unit = make_unit(primary_imei="FIND-ME")
    assert transfer_service.find_transferable_unit(ctx, "FIND-ME").id == unit.id

    garbage_service.mark_defective(ctx, {"stock_unit_id": unit.id, "reason_id": reason.id})
    with pytest.raises(NotFoundError):
        transfer_service.find_transferable_unit(ctx, "FIND-ME")


def test_list_and_get_transfers(db_session, ctx, make_unit, shop_a, shop_b):
    unit = make_unit()
    transfer, _ = transfer_service.create_transfer(ctx, {
        "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_b.id,
    })

    listed = transfer_service.list_transfers(ctx, shop_id=shop_b.id)
    assert [t["id"] for t in listed["transfers"]] == [transfer.id]

    detail = transfer_service.get_transfer(ctx, transfer.id).to_dict(include_items=True)
    assert detail["items"][0]["stock_unit_id"] == unit.id
