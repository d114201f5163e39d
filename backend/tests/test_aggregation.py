from datetime import datetime, timedelta

import pytest

from foodops.extensions import db
from foodops.models import CutoffCycle, Product, SaleOrder
from foodops.models.cutoff import CYCLE_OPEN, PHASE_REGULAR
from foodops.models.inventory import UNCLASSIFIED_CATEGORY
from foodops.services import aggregation_service, inventory_service, order_service


T0 = datetime(2025, 1, 1, 0, 0, 0)


@pytest.fixture
def cycle(db_session):
    cycle = CutoffCycle(sequence=1, status=CYCLE_OPEN, phase=PHASE_REGULAR, opened_at=T0)
    db_session.add(cycle)
    db_session.commit()
    return cycle


@pytest.fixture
def catalog(supplier, other_supplier):
    cabbage = inventory_service.create_product({
        "name": "Cabbage", "main_category": "vegetables", "supplier_id": supplier.id,
        "purchase_price": 100, "sale_price": 150,
    })
    carrot = inventory_service.create_product({
        "name": "Carrot", "main_category": "vegetables", "supplier_id": supplier.id,
        "purchase_price": 40, "sale_price": 60,
    })
    mackerel = inventory_service.create_product({
        "name": "Mackerel", "main_category": "seafood", "supplier_id": other_supplier.id,
        "purchase_price": 300, "sale_price": 450,
    })
    loose = inventory_service.create_product({"name": "Mystery box", "sale_price": 10})
    inventory_service.receive_lot(cabbage.id, 4, 100)
    return {"cabbage": cabbage.id, "carrot": carrot.id, "mackerel": mackerel.id, "loose": loose.id}


def _order(customer_id, lines, hours=1):
    return order_service.create_sale_order(
        customer_id,
        [{"product_id": pid, "quantity": qty} for pid, qty in lines],
        placed_at=T0 + timedelta(hours=hours),
    )


def test_tree_totals_match_confirmed_line_totals(cycle, customer, catalog):
    _order(customer.id, [(catalog["cabbage"], 3), (catalog["mackerel"], 1)])
    _order(customer.id, [(catalog["cabbage"], 2), (catalog["carrot"], 5)], hours=2)
    rejected = _order(customer.id, [(catalog["cabbage"], 100)], hours=3)
    order_service.reject_order(rejected.id)

    tree = aggregation_service.aggregate_cycle(cycle.id)

    confirmed_total = sum(
        item.line_total
        for order in db.session.query(SaleOrder).filter_by(status="confirmed")
        for item in order.items
    )
    assert tree.total_amount == confirmed_total == 5 * 150 + 450 + 5 * 60
    assert tree.order_count == 2

    veg = tree.categories["vegetables"]
    assert veg.total_quantity == 10
    cabbage = veg.suppliers[db.session.get(Product, catalog["cabbage"]).supplier_id].products[catalog["cabbage"]]
    assert cabbage.total_quantity == 5
    assert cabbage.order_count == 2
    assert cabbage.stock_quantity == 4
    assert cabbage.shortage == 1
    assert cabbage.unit_price == 100
    assert tree.categories["seafood"].total_amount == 450


def test_product_without_category_is_unclassified(cycle, customer, catalog):
    _order(customer.id, [(catalog["loose"], 2)])

    tree = aggregation_service.aggregate_cycle(cycle.id)

    assert list(tree.categories) == [UNCLASSIFIED_CATEGORY]
    supplier_node = tree.categories[UNCLASSIFIED_CATEGORY].suppliers[None]
    assert supplier_node.supplier_name == aggregation_service.UNKNOWN_SUPPLIER_NAME


def test_deleted_product_keeps_order_snapshot(cycle, customer, catalog, supplier):
    order = _order(customer.id, [(catalog["carrot"], 5)])
    db.session.delete(db.session.get(Product, catalog["carrot"]))
    db.session.commit()

    tree = aggregation_service.aggregate(db.session.query(SaleOrder).filter_by(id=order.id).all())

    node = tree.categories[UNCLASSIFIED_CATEGORY].suppliers[supplier.id]
    leaf = node.products[catalog["carrot"]]
    assert leaf.product_name == "Carrot"
    assert leaf.total_amount == 300
    assert leaf.stock_quantity == 0


def test_totals_are_independent_of_input_order(cycle, customer, catalog):
    _order(customer.id, [(catalog["cabbage"], 1), (catalog["carrot"], 2)])
    _order(customer.id, [(catalog["mackerel"], 3)], hours=2)
    _order(customer.id, [(catalog["carrot"], 4), (catalog["cabbage"], 5)], hours=3)
    orders = db.session.query(SaleOrder).all()

    forward = aggregation_service.aggregate(orders).to_dict()
    backward = aggregation_service.aggregate(list(reversed(orders))).to_dict()

    assert forward == backward


def test_only_confirmed_orders_count(cycle, customer, catalog):
    order = _order(customer.id, [(catalog["cabbage"], 1)])
    order_service.pend_order(order.id)

    tree = aggregation_service.aggregate_cycle(cycle.id)

    assert tree.total_amount == 0
    assert tree.categories == {}


def test_to_dict_orders_unclassified_last(cycle, customer, catalog):
    _order(customer.id, [(catalog["loose"], 1), (catalog["mackerel"], 1), (catalog["cabbage"], 1)])

    names = [c["category"] for c in aggregation_service.aggregate_cycle(cycle.id).to_dict()["categories"]]

    assert names == ["seafood", "vegetables", UNCLASSIFIED_CATEGORY]


def test_product_order_details_newest_first(cycle, customer, catalog):
    first = _order(customer.id, [(catalog["cabbage"], 1)], hours=1)
    second = _order(customer.id, [(catalog["cabbage"], 2), (catalog["carrot"], 1)], hours=2)

    details = aggregation_service.product_order_details(catalog["cabbage"], cycle.id)

    assert [line["order_id"] for line in details["lines"]] == [second.id, first.id]
    assert details["total_quantity"] == 3
    assert details["total_amount"] == 450
    assert details["order_count"] == 2
    assert details["lines"][0]["customer_name"] == "Corner Bistro"


def test_live_view_recomputes_only_after_changes(app, cycle, customer, catalog):
    view = aggregation_service.LiveAggregation(cycle_id=cycle.id, app=app)
    seen = []
    view.add_listener(seen.append)
    try:
        assert view.snapshot().total_amount == 0
        assert view.snapshot().total_amount == 0
        assert view.recompute_count == 1

        _order(customer.id, [(catalog["cabbage"], 2)])
        assert view.is_stale
        assert any(change["model"] == "SaleOrder" and change["op"] == "insert" for change in seen)

        assert view.snapshot().total_amount == 300
        assert view.recompute_count == 2

        inventory_service.receive_lot(catalog["cabbage"], 10, 100)
        assert view.is_stale
        leaf = next(p for _c, _s, p in view.snapshot().iter_products())
        assert leaf.stock_quantity == 14
    finally:
        view.close()


def test_live_view_ignores_rolled_back_writes(app, cycle, customer, catalog):
    view = aggregation_service.LiveAggregation(cycle_id=cycle.id, app=app)
    try:
        view.snapshot()
        product = db.session.get(Product, catalog["cabbage"])
        product.minimum_stock = 99
        db.session.flush()
        db.session.rollback()

        assert not view.is_stale
    finally:
        view.close()
