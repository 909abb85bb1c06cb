import pytest

from shopstock.errors import ConflictError, ValidationError
from shopstock.services import identifier_service
from shopstock.services.identifier_service import UnitIdentifiers, normalize_identifier


def test_normalize_identifier_strips_spaces_and_uppercases():
    assert normalize_identifier("  35 2099 abc ") == "352099ABC"
    assert normalize_identifier("   ") is None
    assert normalize_identifier(None) is None


def test_primary_and_secondary_must_differ():
    with pytest.raises(ValidationError):
        UnitIdentifiers.from_payload({"primary_imei": "111", "secondary_imei": " 111 "})


def test_merged_only_touches_given_fields():
    current = UnitIdentifiers(primary_imei="AAA", barcode="B1")
    merged = current.merged({"barcode": "b2"})
    assert merged.primary_imei == "AAA"
    assert merged.barcode == "B2"


def test_imei_collides_across_shops(db_session, make_unit, ctx, shop_b):
    make_unit(primary_imei="IMEI-1")
    with pytest.raises(ConflictError) as exc:
        identifier_service.assert_unique(UnitIdentifiers(primary_imei="IMEI-1"), shop_b.id)
    assert exc.value.details["field"] == "primary_imei"


def test_imei_collides_with_other_column(db_session, make_unit, shop_b):
    make_unit(primary_imei="P-1", secondary_imei="S-1")
    with pytest.raises(ConflictError):
        identifier_service.assert_unique(UnitIdentifiers(primary_imei="S-1"), shop_b.id)


def test_barcode_is_scoped_to_shop(db_session, make_unit, shop_a, shop_b):
    make_unit(barcode="BC-1")
    # Same barcode in another shop is fine
    identifier_service.assert_unique(UnitIdentifiers(barcode="BC-1"), shop_b.id)
    with pytest.raises(ConflictError):
        identifier_service.assert_unique(UnitIdentifiers(barcode="BC-1"), shop_a.id)


def test_own_value_is_not_a_conflict(db_session, make_unit, shop_a):
    unit = make_unit(primary_imei="IMEI-SELF", barcode="BC-SELF")
    identifier_service.assert_unique(
        UnitIdentifiers(primary_imei="IMEI-SELF", barcode="BC-SELF"),
        shop_a.id,
        exclude_unit_id=unit.id,
    )


def test_batch_rejects_internal_duplicates(db_session, shop_a):
    batch = [UnitIdentifiers(primary_imei="X1"), UnitIdentifiers(secondary_imei="X1")]
    with pytest.raises(ValidationError):
        identifier_service.assert_batch_unique(shop_a.id, batch)


def test_batch_rejects_external_collision(db_session, make_unit, shop_a):
    make_unit(primary_imei="TAKEN")
    batch = [UnitIdentifiers(primary_imei="FREE"), UnitIdentifiers(primary_imei="TAKEN")]
    with pytest.raises(ConflictError) as exc:
        identifier_service.assert_batch_unique(shop_a.id, batch)
    assert exc.value.details["values"] == ["TAKEN"]


def test_lookup_unit_respects_scope(db_session, make_unit, shop_a, shop_c):
    unit = make_unit(secondary_imei="LOOK-2")
    found = identifier_service.lookup_unit("imei", "look-2", [shop_a.id])
    assert found.id == unit.id
    assert identifier_service.lookup_unit("imei", "LOOK-2", [shop_c.id]) is None


def test_lookup_unit_rejects_unknown_kind(db_session, shop_a):
    with pytest.raises(ValidationError):
        identifier_service.lookup_unit("sku", "x", [shop_a.id])


class TestImeiLocks:
    """IMEI checks lock one key per value, whichever column it lands in."""

    def _record_locks(self, monkeypatch):
        calls = []
        monkeypatch.setattr(identifier_service, "lock_keys", lambda ns, values: calls.append((ns, sorted(values))))
        return calls

    def test_primary_and_secondary_claims_share_a_key(self, db_session, shop_a, monkeypatch):
        calls = self._record_locks(monkeypatch)
        identifier_service.assert_unique(UnitIdentifiers(primary_imei="X-1"), shop_a.id)
        identifier_service.assert_unique(UnitIdentifiers(secondary_imei="X-1"), shop_a.id)
        assert calls == [("imei", ["X-1"]), ("imei", ["X-1"])]

    def test_batch_locks_every_imei(self, db_session, shop_a, monkeypatch):
        calls = self._record_locks(monkeypatch)
        identifier_service.assert_batch_unique(shop_a.id, [
            UnitIdentifiers(primary_imei="B-2", secondary_imei="B-1"),
            UnitIdentifiers(primary_imei="B-3"),
        ])
        assert calls == [("imei", ["B-1", "B-2", "B-3"])]
