"""
Pytest fixtures for shopstock backend tests.

Provides an in-memory database, a two-shop world with one staff user, and
factories for stock units.
"""

import pytest
from shopstock import create_app
from shopstock.extensions import db
from shopstock.models import Shop, User, UserShop, Category, Brand, Product, Variant, Vendor, Customer, Reason, Tax
from shopstock.context import StockContext
from shopstock.services import stock_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCK_RETRY_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.expunge_all()


@pytest.fixture(scope='function')
def shop_a(db_session):
    shop = Shop(name="Shop A", shop_type="retail_shop", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_b(db_session):
    shop = Shop(name="Shop B", shop_type="retail_shop", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_c(db_session):
    """A shop the test user is NOT assigned to."""
    shop = Shop(name="Shop C", shop_type="retail_shop", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def wholesaler(db_session):
    shop = Shop(name="Wholesale Co", shop_type="wholesaler", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def user(db_session, shop_a, shop_b):
    """Staff user assigned to shop A and shop B."""
    user = User(username="sales_a", role="sales_person", is_active=True)
    db_session.add(user)
    db_session.commit()
    db_session.add(UserShop(user_id=user.id, shop_id=shop_a.id))
    db_session.add(UserShop(user_id=user.id, shop_id=shop_b.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def ctx(user, shop_a, shop_b):
    """Caller context operating at shop A."""
    return StockContext(
        user_id=user.id,
        shop_ids=frozenset({shop_a.id, shop_b.id}),
        active_shop_id=shop_a.id,
    )


@pytest.fixture(scope='function')
def ctx_b(user, shop_a, shop_b):
    """Same user operating at shop B."""
    return StockContext(
        user_id=user.id,
        shop_ids=frozenset({shop_a.id, shop_b.id}),
        active_shop_id=shop_b.id,
    )


@pytest.fixture(scope='function')
def product(db_session):
    category = Category(name="Phones")
    brand = Brand(name="Acme")
    db_session.add_all([category, brand])
    db_session.commit()
    product = Product(name="Acme Phone 15", category_id=category.id, brand_id=brand.id, is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant(db_session, product):
    """Serialized (IMEI-tracked) variant."""
    variant = Variant(
        product_id=product.id,
        variant_name="Acme Phone 15 128GB Black",
        color="Black",
        storage_size="128GB",
        tracking_mode="serialized",
        is_active=True,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def bulk_variant(db_session, product):
    """Non-serialized variant (accessories counted by quantity)."""
    variant = Variant(
        product_id=product.id,
        variant_name="USB-C Cable 1m",
        tracking_mode="bulk",
        is_active=True,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def vendor(db_session):
    vendor = Vendor(name="Parts Supplier", phone="555-0100")
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def customer(db_session, shop_a):
    customer = Customer(shop_id=shop_a.id, name="Jane Buyer", is_active=True)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def reason(db_session, user):
    reason = Reason(text="Cracked screen", user_id=user.id, is_active=True)
    db_session.add(reason)
    db_session.commit()
    return reason


@pytest.fixture(scope='function')
def tax(db_session, shop_a):
    tax = Tax(shop_id=shop_a.id, name="Flat", value_cents=500, is_active=True)
    db_session.add(tax)
    db_session.commit()
    return tax


@pytest.fixture(scope='function')
def make_unit(ctx, variant, shop_a):
    """Create a unit through the registry; defaults to a serialized unit in shop A."""
    def _make(**fields):
        payload = {"variant_id": variant.id, "shop_id": shop_a.id, "sale_price": "100.00"}
        payload.update(fields)
        return stock_service.create_unit(ctx, payload)
    return _make


def _context_headers(user_id: int, shop_id: int | None = None) -> dict:
    headers = {'X-User-Id': str(user_id)}
    if shop_id is not None:
        headers['X-Shop-Id'] = str(shop_id)
    return headers


@pytest.fixture(scope='function')
def context_headers():
    """Build the gateway headers require_context reads."""
    return _context_headers
