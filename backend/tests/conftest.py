"""
Pytest fixtures for foodops backend tests.

Provides test database setup, master-data fixtures, and test client.
"""

from datetime import date

import pytest
from foodops import create_app
from foodops.extensions import db
from foodops.models import Product
from foodops.services import inventory_service, party_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TX_RETRY_BACKOFF': 0.0,
        'BUSINESS_TIMEZONE': 'Asia/Seoul',
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
        # The live aggregation view is per app; start every test without one
        view = app.extensions.pop("foodops.live_aggregation", None)
        if view is not None:
            view.close()

        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def supplier(db_session):
    """Supplier with its account."""
    return party_service.create_supplier({
        "name": "Green Farm",
        "business_number": "111-11-11111",
        "phone": "010-0000-0001",
    })


@pytest.fixture(scope='function')
def other_supplier(db_session):
    return party_service.create_supplier({"name": "Blue Sea Fisheries", "business_number": "222-22-22222"})


@pytest.fixture(scope='function')
def customer(db_session):
    """Customer with its account."""
    return party_service.create_customer({
        "name": "Corner Bistro",
        "business_number": "333-33-33333",
    })


@pytest.fixture(scope='function')
def product(db_session, supplier):
    """Vegetable product supplied by `supplier`, no stock yet."""
    return inventory_service.create_product({
        "name": "Cabbage",
        "specification": "10kg box",
        "unit": "box",
        "main_category": "vegetables",
        "supplier_id": supplier.id,
        "purchase_price": 100,
        "sale_price": 150,
    })


@pytest.fixture(scope='function')
def stocked_product(product):
    """`product` with one lot: 2025-01-01, 10 units at 100."""
    inventory_service.receive_lot(product.id, 10, 100, lot_date=date(2025, 1, 1))
    return db.session.get(Product, product.id)
