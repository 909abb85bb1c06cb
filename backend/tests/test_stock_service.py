import pytest

from shopstock.extensions import db
from shopstock.models import StockUnit
from shopstock.errors import ConflictError, ForbiddenError, NotFoundError, UnavailableError, ValidationError
from shopstock.services import stock_service


def _units():
    return db.session.query(StockUnit).count()


class TestCreateUnit:
    def test_creates_in_stock_unit(self, db_session, make_unit, variant, shop_a):
        unit = make_unit(primary_imei=" imei 1 ", purchase_price="80", condition="used")

        assert unit.status == "in_stock"
        assert unit.is_sold is False
        assert unit.is_active is True
        assert unit.primary_imei == "IMEI1"
        assert unit.purchase_price_cents == 8000
        assert unit.sale_price_cents == 10000
        assert unit.condition == "used"
        assert unit.low_stock_threshold == 5
        assert unit.to_dict()["sale_price"] == "100.00"

    def test_duplicate_imei_in_other_shop_conflicts(self, db_session, make_unit, shop_b):
        make_unit(primary_imei="IMEI-1")
        with pytest.raises(ConflictError):
            make_unit(primary_imei="IMEI-1", shop_id=shop_b.id)
        assert _units() == 1

    def test_unknown_variant_is_validation_error(self, db_session, make_unit):
        with pytest.raises(ValidationError):
            make_unit(variant_id=9999)

    def test_shop_outside_scope_is_forbidden(self, db_session, make_unit, shop_c):
        with pytest.raises(ForbiddenError):
            make_unit(shop_id=shop_c.id)

    def test_unknown_field_rejected(self, db_session, make_unit):
        with pytest.raises(ValidationError):
            make_unit(status="sold")

    def test_vendor_ref_resolves_by_kind(self, db_session, make_unit, vendor, customer, wholesaler, shop_a):
        assert make_unit(vendor_kind="vendor", vendor_id=vendor.id).vendor_kind == "vendor"
        assert make_unit(vendor_kind="customer", vendor_id=customer.id).vendor_id == customer.id
        assert make_unit(vendor_kind="wholesaler", vendor_id=wholesaler.id).vendor_kind == "wholesaler"

    def test_vendor_ref_of_wrong_kind_is_rejected(self, db_session, make_unit, vendor, shop_b):
        # shop_b is a retail shop, not a wholesaler
        with pytest.raises(ValidationError):
            make_unit(vendor_kind="wholesaler", vendor_id=shop_b.id)
        with pytest.raises(ValidationError):
            make_unit(vendor_kind="vendor")

    def test_tax_must_belong_to_shop(self, db_session, make_unit, tax, shop_b):
        assert make_unit(tax_id=tax.id).tax_id == tax.id
        with pytest.raises(ValidationError):
            make_unit(tax_id=tax.id, shop_id=shop_b.id)

    def test_serialized_unit_quantity_must_be_one(self, db_session, make_unit):
        with pytest.raises(ValidationError):
            make_unit(quantity=3)

    def test_bulk_row_keeps_quantity(self, db_session, make_unit, bulk_variant):
        unit = make_unit(variant_id=bulk_variant.id, quantity=12, barcode="CABLE")
        assert unit.quantity == 12

    def test_bulk_row_refuses_imei(self, db_session, make_unit, bulk_variant):
        with pytest.raises(ValidationError):
            make_unit(variant_id=bulk_variant.id, primary_imei="NOPE")

    def test_price_with_three_decimals_rejected(self, db_session, make_unit):
        with pytest.raises(ValidationError):
            make_unit(sale_price="10.005")


class TestCreateUnitsBulk:
    def _payload(self, variant, shop, items, **extra):
        payload = {
            "variant_id": variant.id,
            "shop_id": shop.id,
            "sale_price": "50.00",
            "quantity": len(items),
            "items": items,
        }
        payload.update(extra)
        return payload

    def test_creates_all_units(self, db_session, ctx, variant, shop_a):
        items = [{"primary_imei": f"B-{i}"} for i in range(3)]
        units = stock_service.create_units_bulk(ctx, self._payload(variant, shop_a, items))
        assert len(units) == 3
        assert {u.primary_imei for u in units} == {"B-0", "B-1", "B-2"}
        assert all(u.sale_price_cents == 5000 for u in units)

    def test_quantity_mismatch_rejected(self, db_session, ctx, variant, shop_a):
        items = [{"primary_imei": "Q-1"}, {"primary_imei": "Q-2"}]
        with pytest.raises(ValidationError):
            stock_service.create_units_bulk(ctx, self._payload(variant, shop_a, items, quantity=3))
        assert _units() == 0

    def test_duplicate_in_batch_rejected(self, db_session, ctx, variant, shop_a):
        items = [{"primary_imei": "D-1"}, {"secondary_imei": "D-1"}]
        with pytest.raises(ValidationError):
            stock_service.create_units_bulk(ctx, self._payload(variant, shop_a, items))
        assert _units() == 0

    def test_external_collision_rejects_whole_batch(self, db_session, ctx, make_unit, variant, shop_a):
        make_unit(primary_imei="EXISTS")
        items = [{"primary_imei": "NEW-1"}, {"primary_imei": "EXISTS"}, {"primary_imei": "NEW-2"}]
        with pytest.raises(ConflictError):
            stock_service.create_units_bulk(ctx, self._payload(variant, shop_a, items))
        assert _units() == 1

    def test_batch_size_limit(self, app, db_session, ctx, variant, shop_a):
        limit = app.config["BULK_CREATE_MAX_ITEMS"]
        items = [{"serial_number": f"S{i}"} for i in range(limit + 1)]
        with pytest.raises(ValidationError):
            stock_service.create_units_bulk(ctx, self._payload(variant, shop_a, items))


class TestUpdateUnit:
    def test_changes_prices_and_condition(self, db_session, ctx, make_unit):
        unit = make_unit(primary_imei="U-1")
        updated = stock_service.update_unit(ctx, unit.id, {"sale_price": "120.50", "condition": "refurbished"})
        assert updated.sale_price_cents == 12050
        assert updated.condition == "refurbished"

    def test_keeping_own_imei_is_allowed(self, db_session, ctx, make_unit):
        unit = make_unit(primary_imei="OWN")
        updated = stock_service.update_unit(ctx, unit.id, {"primary_imei": "own", "notes": "box opened"})
        assert updated.primary_imei == "OWN"
        assert updated.notes == "box opened"

    def test_changing_to_taken_imei_conflicts(self, db_session, ctx, make_unit):
        make_unit(primary_imei="TAKEN")
        unit = make_unit(primary_imei="MINE")
        with pytest.raises(ConflictError):
            stock_service.update_unit(ctx, unit.id, {"secondary_imei": "TAKEN"})
        db.session.refresh(unit)
        assert unit.secondary_imei is None

    def test_status_is_not_writable(self, db_session, ctx, make_unit):
        unit = make_unit()
        with pytest.raises(ValidationError):
            stock_service.update_unit(ctx, unit.id, {"status": "sold"})

    def test_empty_update_rejected(self, db_session, ctx, make_unit):
        unit = make_unit()
        with pytest.raises(ValidationError):
            stock_service.update_unit(ctx, unit.id, {})


class TestSoftDelete:
    def test_deactivates_and_frees_identifiers(self, db_session, ctx, make_unit):
        unit = make_unit(primary_imei="FREE-ME")
        deleted = stock_service.soft_delete(ctx, unit.id)
        assert deleted.is_active is False

        again = make_unit(primary_imei="FREE-ME")
        assert again.id != unit.id

    def test_sold_unit_cannot_be_deleted(self, db_session, ctx, make_unit):
        from shopstock.services import sales_service

        unit = make_unit()
        sales_service.create_sale(ctx, {"items": [{"stock_unit_id": unit.id}]})
        with pytest.raises(ConflictError):
            stock_service.soft_delete(ctx, unit.id)

    def test_deleted_unit_is_not_found(self, db_session, ctx, make_unit):
        unit = make_unit()
        stock_service.soft_delete(ctx, unit.id)
        with pytest.raises(NotFoundError):
            stock_service.get_unit(ctx, unit.id)


class TestTransition:
    def test_sets_status_and_sold_flag_together(self, db_session, make_unit):
        unit = make_unit()
        stock_service.transition(unit, from_statuses=["in_stock"], to_status="sold")
        db.session.commit()
        assert unit.status == "sold"
        assert unit.is_sold is True

    def test_stale_from_status_raises(self, db_session, make_unit):
        unit = make_unit()
        with pytest.raises(UnavailableError):
            stock_service.transition(unit, from_statuses=["defective"], to_status="in_stock")
        db.session.rollback()

    def test_illegal_transition_is_programming_error(self, db_session, make_unit):
        unit = make_unit()
        with pytest.raises(ValueError):
            stock_service.transition(unit, from_statuses=["sold"], to_status="in_stock")


class TestLookups:
    def test_find_by_identifier(self, db_session, ctx, make_unit, variant):
        unit = make_unit(barcode="SCAN-ME", primary_imei="IMEI-SCAN")
        found = stock_service.find_by_identifier(ctx, "barcode", "scan-me")
        assert found.id == unit.id
        snapshot = found.to_snapshot()
        assert snapshot["variant"]["product_name"] == "Acme Phone 15"
        assert snapshot["variant"]["brand_name"] == "Acme"

        assert stock_service.find_by_identifier(ctx, "imei", "IMEI-SCAN").id == unit.id

    def test_find_by_identifier_outside_scope(self, db_session, ctx, make_unit, shop_c):
        make_unit(barcode="HERE")
        with pytest.raises(ForbiddenError):
            stock_service.find_by_identifier(ctx, "barcode", "HERE", shop_id=shop_c.id)
        with pytest.raises(NotFoundError):
            stock_service.find_by_identifier(ctx, "barcode", "NOWHERE")

    def test_list_units_filters_and_paginates(self, db_session, ctx, make_unit, shop_a):
        for i in range(5):
            make_unit(primary_imei=f"L-{i}")
        make_unit(primary_imei="OTHER", condition="used")

        result = stock_service.list_units(ctx, shop_id=shop_a.id, condition="new", page=1, limit=2)
        assert result["pagination"]["total"] == 5
        assert result["pagination"]["total_pages"] == 3
        assert len(result["stock"]) == 2

        result = stock_service.list_units(ctx, search="other")
        assert [u["primary_imei"] for u in result["stock"]] == ["OTHER"]

    def test_stock_summary(self, db_session, ctx, make_unit, bulk_variant):
        make_unit(primary_imei="S-1")
        make_unit(variant_id=bulk_variant.id, quantity=3, sale_price="2.50")
        summary = stock_service.stock_summary(ctx)
        assert summary["counts"]["in_stock"] == 4
        assert summary["counts"]["sold"] == 0
        assert summary["in_stock_value"] == "107.50"
