"""
HTTP boundary tests: context headers, status code mapping and JSON shapes.
"""

from shopstock.extensions import db
from shopstock.models import User, UserShop


def test_health(client, db_session):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json['checks']['database']['status'] == 'healthy'


def test_missing_user_header_is_401(client, db_session):
    response = client.get('/api/stock')
    assert response.status_code == 401


def test_inactive_user_is_401(client, context_headers, db_session, user):
    user.is_active = False
    db.session.commit()
    response = client.get('/api/stock', headers=context_headers(user.id))
    assert response.status_code == 401


def test_foreign_shop_header_is_403(client, context_headers, db_session, user, shop_c):
    response = client.get('/api/stock', headers=context_headers(user.id, shop_c.id))
    assert response.status_code == 403


def test_create_lookup_and_conflict(client, context_headers, db_session, user, variant, shop_a, shop_b):
    headers = context_headers(user.id, shop_a.id)
    body = {"variant_id": variant.id, "shop_id": shop_a.id, "primary_imei": "IMEI-1", "sale_price": "100.00"}

    response = client.post('/api/stock', json=body, headers=headers)
    assert response.status_code == 201
    assert response.json['stock']['status'] == 'in_stock'

    response = client.get('/api/stock/lookup?kind=imei&value=imei-1', headers=headers)
    assert response.status_code == 200
    assert response.json['stock']['variant']['category_name'] == 'Phones'

    response = client.post('/api/stock', json={**body, "shop_id": shop_b.id}, headers=headers)
    assert response.status_code == 409
    assert response.json['details']['field'] == 'primary_imei'


def test_create_with_bad_variant_is_400(client, context_headers, db_session, user, shop_a):
    response = client.post(
        '/api/stock',
        json={"variant_id": 12345, "shop_id": shop_a.id},
        headers=context_headers(user.id, shop_a.id),
    )
    assert response.status_code == 400


def test_bulk_quantity_mismatch_is_400(client, context_headers, db_session, user, variant, shop_a):
    response = client.post('/api/stock/bulk', json={
        "variant_id": variant.id,
        "shop_id": shop_a.id,
        "quantity": 3,
        "items": [{"primary_imei": "A"}, {"primary_imei": "B"}],
    }, headers=context_headers(user.id, shop_a.id))
    assert response.status_code == 400


def test_sale_flow_example(client, context_headers, db_session, user, make_unit, shop_a, shop_b):
    """IMEI-1 sold at 100.00 - 10.00 + 5.00, then a transfer of it fails."""
    unit = make_unit(primary_imei="IMEI-1")
    headers = context_headers(user.id, shop_a.id)

    response = client.post('/api/sales', json={
        "items": [{"stock_unit_id": unit.id, "price": "100.00"}],
        "discount": "10.00",
        "tax": "5.00",
    }, headers=headers)
    assert response.status_code == 201
    assert response.json['sale']['total'] == '95.00'
    assert response.json['sale']['items'][0]['total'] == '100.00'

    response = client.get(f'/api/stock/{unit.id}', headers=headers)
    assert response.json['stock']['status'] == 'sold'
    assert response.json['stock']['is_sold'] is True

    # Sold again: 400
    response = client.post('/api/sales', json={"items": [{"stock_unit_id": unit.id}]}, headers=headers)
    assert response.status_code == 400

    # Transfer of a sold unit: 404 (not available for transfer)
    response = client.post('/api/transfers', json={
        "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_b.id,
    }, headers=headers)
    assert response.status_code == 404


def test_sale_unit_not_in_shop_is_404(client, context_headers, db_session, user, make_unit, shop_a, shop_b):
    unit = make_unit(shop_id=shop_b.id)
    response = client.post('/api/sales', json={"items": [{"stock_unit_id": unit.id}]},
                           headers=context_headers(user.id, shop_a.id))
    assert response.status_code == 404


def test_transfer_same_shop_is_400_and_foreign_shop_403(client, context_headers, db_session, user, make_unit, shop_a, shop_c):
    unit = make_unit()
    headers = context_headers(user.id, shop_a.id)

    response = client.post('/api/transfers', json={
        "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_a.id,
    }, headers=headers)
    assert response.status_code == 400

    response = client.post('/api/transfers', json={
        "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_c.id,
    }, headers=headers)
    assert response.status_code == 403


def test_transfer_returns_record_and_snapshot(client, context_headers, db_session, user, make_unit, shop_a, shop_b):
    unit = make_unit()
    response = client.post('/api/transfers', json={
        "stock_unit_id": unit.id, "from_shop_id": shop_a.id, "to_shop_id": shop_b.id,
    }, headers=context_headers(user.id, shop_a.id))

    assert response.status_code == 201
    assert response.json['transfer']['status'] == 'completed'
    assert response.json['stock']['shop_id'] == shop_b.id
    assert response.json['stock']['shop_name'] == 'Shop B'


def test_garbage_status_codes(client, context_headers, db_session, user, make_unit, reason, shop_a):
    headers = context_headers(user.id, shop_a.id)
    unit = make_unit()

    response = client.post('/api/garbage', json={"stock_unit_id": unit.id, "reason_id": reason.id}, headers=headers)
    assert response.status_code == 201
    record_id = response.json['record']['id']

    response = client.post('/api/garbage', json={"stock_unit_id": unit.id, "reason_id": reason.id}, headers=headers)
    assert response.status_code == 409

    response = client.delete(f'/api/garbage/{record_id}', headers=headers)
    assert response.status_code == 200
    assert response.json['stock']['status'] == 'in_stock'

    response = client.delete(f'/api/garbage/{record_id}', headers=headers)
    assert response.status_code == 404


def test_low_stock_report_defaults_to_active_shop(client, context_headers, db_session, user, make_unit, shop_a):
    make_unit(low_stock_threshold=3)
    response = client.get('/api/reports/low-stock', headers=context_headers(user.id, shop_a.id))
    assert response.status_code == 200
    assert response.json['shop_id'] == shop_a.id
    assert response.json['variants'][0]['count'] == 1


def test_single_shop_user_gets_active_shop(client, context_headers, db_session, shop_a, make_unit):
    solo = User(username="solo", is_active=True)
    db.session.add(solo)
    db.session.commit()
    db.session.add(UserShop(user_id=solo.id, shop_id=shop_a.id))
    db.session.commit()

    unit = make_unit()
    response = client.post('/api/sales', json={"items": [{"stock_unit_id": unit.id}]},
                           headers=context_headers(solo.id))
    assert response.status_code == 201
    assert response.json['sale']['sales_person_id'] == solo.id


def test_exponent_price_is_400(client, context_headers, db_session, user, variant, shop_a):
    response = client.post('/api/stock', json={
        "variant_id": variant.id, "shop_id": shop_a.id, "sale_price": "1e30",
    }, headers=context_headers(user.id, shop_a.id))
    assert response.status_code == 400


def test_garbage_list_skips_deactivated(client, context_headers, db_session, user, make_unit, reason, shop_a):
    headers = context_headers(user.id, shop_a.id)
    response = client.post('/api/garbage', json={"stock_unit_id": make_unit().id, "reason_id": reason.id}, headers=headers)
    record_id = response.json['record']['id']
    client.patch(f'/api/garbage/{record_id}', json={"is_active": False}, headers=headers)

    assert client.get('/api/garbage', headers=headers).json['records'] == []
    response = client.get('/api/garbage?include_inactive=true', headers=headers)
    assert [r['id'] for r in response.json['records']] == [record_id]


def test_low_stock_unexpected_failure_is_500(client, context_headers, db_session, user, shop_a, monkeypatch):
    from shopstock.services import low_stock_service

    def _boom(ctx, shop_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(low_stock_service, "get_low_stock", _boom)
    response = client.get('/api/reports/low-stock', headers=context_headers(user.id, shop_a.id))
    assert response.status_code == 500
    assert response.json == {"error": "Internal server error"}
