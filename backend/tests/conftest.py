"""
Pytest fixtures for Gemalery backend tests.

Provides an in-memory database, seeded channels, a small catalog and
authenticated clients for each role.
"""

from decimal import Decimal

import pytest

from gemalery import create_app
from gemalery.cli import seed_channels
from gemalery.config import Settings
from gemalery.extensions import db
from gemalery.models import (
    CategoryOperationalCostComponent,
    Customer,
    Product,
    ProductCategory,
    ProductVariant,
    Supplier,
)
from gemalery.models.auth import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_STAFF
from gemalery.models.catalog import normalize_sku
from gemalery.services import auth_service, session_service

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def settings():
    return Settings(
        database_url="sqlite:///:memory:",
        secret_key="test-secret",
        bcrypt_rounds=4,
        testing=True,
    )


@pytest.fixture(scope='session')
def app(settings):
    """Create application for testing."""
    app = create_app(settings)

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


@pytest.fixture(scope='function')
def channels(db_session):
    seed_channels()


def make_variant(db_session, product, sku, *, price, weight_gram=500, stock=0, cogs="0"):
    variant = ProductVariant(
        product_id=product.id,
        sku=sku,
        sku_normalized=normalize_sku(sku),
        price=Decimal(price),
        weight_gram=weight_gram,
        stock_on_hand=stock,
        cogs_current=Decimal(cogs),
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def category(db_session):
    category = ProductCategory(name="Kain Batik")
    db_session.add(category)
    db_session.commit()
    db_session.add_all([
        CategoryOperationalCostComponent(category_id=category.id, name="Packaging", amount=Decimal("1500")),
        CategoryOperationalCostComponent(category_id=category.id, name="Labeling", amount=Decimal("500")),
    ])
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def product(db_session, category):
    product = Product(category_id=category.id, name="Batik Tulis Parang")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_a(db_session, product):
    """500 g, 10 on hand, cost 30000."""
    return make_variant(db_session, product, "BTK-PRG-M", price="50000", weight_gram=500, stock=10, cogs="30000")


@pytest.fixture(scope='function')
def variant_b(db_session, product):
    """1000 g, 5 on hand, cost 10000."""
    return make_variant(db_session, product, "BTK-PRG-L", price="25000", weight_gram=1000, stock=5, cogs="10000")


@pytest.fixture(scope='function')
def empty_variant(db_session, product):
    """Nothing on hand, no cost history."""
    return make_variant(db_session, product, "BTK-PRG-S", price="45000", weight_gram=400)


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="CV Sumber Kain", phone="0812345678")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Siti Rahayu", email="siti@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


def _make_user(email, role, settings):
    return auth_service.create_user(email, TEST_PASSWORD, name=email.split("@")[0], role=role,
                                    rounds=settings.bcrypt_rounds)


@pytest.fixture(scope='function')
def admin_user(db_session, settings):
    return _make_user("admin@gemalery.test", ROLE_ADMIN, settings)


@pytest.fixture(scope='function')
def staff_user(db_session, settings):
    return _make_user("staff@gemalery.test", ROLE_STAFF, settings)


@pytest.fixture(scope='function')
def customer_user(db_session, settings):
    return auth_service.register_customer("buyer@gemalery.test", TEST_PASSWORD, name="Buyer",
                                          rounds=settings.bcrypt_rounds)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(user) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    return _headers_for(staff_user)


@pytest.fixture(scope='function')
def customer_headers(customer_user):
    return _headers_for(customer_user)
