"""
Pytest fixtures for posledger backend tests.

Provides an in-memory database, per-test table wipe, a test client and
small factories for users and products.
"""

from decimal import Decimal

import pytest

from posledger import create_app
from posledger.extensions import db
from posledger.models import Product, User


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CHECKOUT_RETRY_BACKOFF': 0,
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


@pytest.fixture(scope='function')
def cashier(db_session):
    """Active till operator."""
    user = User(username="cashier", password_hash="x", role="staff", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def inactive_user(db_session):
    user = User(username="former", password_hash="x", role="staff", is_active=False)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product("A", price_cents=1000, quantity=10, tax_rate_bps=0)."""
    def _make(sku, *, price_cents=1000, quantity=10, tax_rate_bps=0, name=None, reorder_level=0):
        product = Product(
            sku=sku,
            name=name or f"Product {sku}",
            price_cents=price_cents,
            tax_rate_bps=tax_rate_bps,
            quantity_on_hand=Decimal(str(quantity)),
            reorder_level=Decimal(str(reorder_level)),
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def on_hand(db_session):
    """on_hand(product_id) -> stock as stored, bypassing the session cache."""
    def _on_hand(product_id) -> Decimal:
        db_session.expire_all()
        return db_session.get(Product, product_id).quantity_on_hand

    return _on_hand
