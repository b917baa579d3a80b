"""
Pytest fixtures for storeadmin backend tests.

Provides test database setup, catalog/party factories, identity headers and
the test client.
"""

from decimal import Decimal

import pytest
from storeadmin import create_app
from storeadmin.extensions import db
from storeadmin.models import Category, Customer, Product, Supplier
from storeadmin.services import fulfillment_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOCK_RETRY_BACKOFF': 0.0,
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
def manager_headers():
    return {"X-User-Id": "1", "X-User-Role": "manager"}


@pytest.fixture(scope='function')
def staff_headers():
    return {"X-User-Id": "2", "X-User-Role": "staff"}


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Alpha Wholesale")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Jane Doe", phone="555-0100")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for catalog products. Stock starts at 0."""
    counter = {"n": 0}

    def _make(price="15.00", cost_price="10.00", **kwargs):
        counter["n"] += 1
        product = Product(
            sku=kwargs.pop("sku", f"SKU-{counter['n']:03d}"),
            name=kwargs.pop("name", f"Product {counter['n']}"),
            price=Decimal(price),
            cost_price=Decimal(cost_price),
            **kwargs,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def receive(supplier):
    """Create and confirm a stock-in order: receive(product, qty, unit_cost="1.00")."""
    def _receive(product, quantity, unit_cost="1.00", actor_id=1):
        doc = fulfillment_service.create_stock_in_order(
            created_by=actor_id,
            supplier_id=supplier.id,
            items=[{"product_id": product.id, "quantity": quantity, "unit_cost": unit_cost}],
        )
        return fulfillment_service.confirm_stock_in_order(doc.id, actor_id=actor_id)

    return _receive


def live_stock(product_id: int) -> int:
    """Read a product's committed counter, bypassing the identity map."""
    db.session.expire_all()
    return db.session.get(Product, product_id).stock_quantity
