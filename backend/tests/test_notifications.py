import pytest

from foodops.extensions import db
from foodops.models import Customer, Product
from foodops.services import inventory_service, notification_service, party_service


@pytest.fixture
def received(app, db_session):
    """Collects Product changes for the duration of a test."""
    changes = []
    sub_id = notification_service.subscribe(Product, changes.append, app=app)
    yield changes
    notification_service.unsubscribe(sub_id, app=app)


def test_changes_are_delivered_after_commit(received, product):
    assert [(c["model"], c["op"], c["id"]) for c in received] == [("Product", "insert", product.id)]

    inventory_service.update_product(product.id, {"minimum_stock": 5})

    assert received[-1]["op"] == "update"
    assert received[-1]["values"]["minimum_stock"] == 5


def test_rolled_back_changes_are_dropped(received, product):
    received.clear()
    row = db.session.get(Product, product.id)
    row.name = "Renamed"
    db.session.flush()
    assert received == []

    db.session.rollback()
    db.session.commit()

    assert received == []


def test_other_models_are_not_delivered(received, customer):
    party_service.update_party("customer", customer.id, {"phone": "010-1111-2222"})
    assert received == []


def test_where_filter(app, db_session, customer):
    changes = []
    sub_id = notification_service.subscribe(
        Customer, changes.append, where=lambda c: c["op"] == "update", app=app
    )
    try:
        other = party_service.create_customer({"name": "Harbor Deli"})
        party_service.update_party("customer", other.id, {"address": "12 Harbor Rd"})
    finally:
        notification_service.unsubscribe(sub_id, app=app)

    assert [(c["op"], c["id"]) for c in changes] == [("update", other.id)]


def test_failing_subscriber_is_isolated(app, db_session, supplier):
    changes = []

    def explode(change):
        raise RuntimeError("subscriber bug")

    bad = notification_service.subscribe(Product, explode, app=app)
    good = notification_service.subscribe(Product, changes.append, app=app)
    try:
        product = inventory_service.create_product({"name": "Onion", "supplier_id": supplier.id})
    finally:
        notification_service.unsubscribe(bad, app=app)
        notification_service.unsubscribe(good, app=app)

    assert db.session.get(Product, product.id) is not None
    assert [c["id"] for c in changes] == [product.id]


def test_unsubscribe_stops_delivery(app, db_session):
    changes = []
    sub_id = notification_service.subscribe(Product, changes.append, app=app)
    notification_service.unsubscribe(sub_id, app=app)

    inventory_service.create_product({"name": "Leek"})

    assert changes == []
