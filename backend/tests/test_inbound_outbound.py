from datetime import date, datetime, timedelta

import pytest

from foodops.errors import BusinessRuleViolation, InsufficientStockError, ValidationError
from foodops.extensions import db
from foodops.models import CutoffCycle, Product, ProductLot, PurchaseOrder, SaleLedger, SaleOrder
from foodops.models.cutoff import CYCLE_OPEN, PHASE_REGULAR
from foodops.models.orders import STATUS_COMPLETED, STATUS_CONFIRMED, STATUS_PLACED
from foodops.models.parties import PARTY_CUSTOMER, PARTY_SUPPLIER
from foodops.services import (
    cutoff_service,
    inbound_service,
    inventory_service,
    order_service,
    outbound_service,
    party_service,
    purchasing_service,
    statement_service,
)


T0 = datetime(2025, 1, 1, 0, 0, 0)


@pytest.fixture
def cycle(db_session):
    cycle = CutoffCycle(sequence=1, status=CYCLE_OPEN, phase=PHASE_REGULAR, opened_at=T0)
    db_session.add(cycle)
    db_session.commit()
    return cycle


@pytest.fixture
def mackerel(other_supplier):
    return inventory_service.create_product({
        "name": "Mackerel",
        "main_category": "seafood",
        "supplier_id": other_supplier.id,
        "purchase_price": 300,
        "sale_price": 450,
    })


def _balance(party_type, party_id) -> int:
    db.session.expire_all()
    return party_service.get_account(party_type, party_id).current_balance


def _order(customer, product, quantity, hours=1):
    return order_service.create_sale_order(
        customer.id,
        [{"product_id": product.id, "quantity": quantity}],
        placed_at=T0 + timedelta(hours=hours),
    )


# =============================================================================
# Purchase order generation
# =============================================================================

def test_generate_refuses_while_cycle_is_open(cycle, customer, product):
    _order(customer, product, 2)
    with pytest.raises(BusinessRuleViolation):
        purchasing_service.generate_purchase_orders(cycle.id)
    assert db.session.query(PurchaseOrder).count() == 0


def test_generate_one_order_per_supplier(cycle, customer, product, mackerel, supplier, other_supplier):
    _order(customer, product, 2)
    _order(customer, product, 3, hours=2)
    _order(customer, mackerel, 4, hours=3)
    cutoff_service.close(T0 + timedelta(hours=8))

    orders = purchasing_service.generate_purchase_orders(cycle.id, created_by="buyer")

    by_supplier = {o.supplier_id: o for o in orders}
    assert set(by_supplier) == {supplier.id, other_supplier.id}
    cabbage_po = by_supplier[supplier.id]
    assert cabbage_po.status == STATUS_PLACED
    assert cabbage_po.order_number.startswith("PO-")
    assert [(i.product_id, i.quantity, i.unit_price) for i in cabbage_po.items] == [(product.id, 5, 100)]
    assert cabbage_po.total_amount == 500
    assert by_supplier[other_supplier.id].total_amount == 4 * 300


def test_generate_twice_for_a_cycle_is_rejected(cycle, customer, product):
    _order(customer, product, 2)
    cutoff_service.close(T0 + timedelta(hours=8))
    purchasing_service.generate_purchase_orders(cycle.id)

    with pytest.raises(BusinessRuleViolation):
        purchasing_service.generate_purchase_orders(cycle.id)
    assert db.session.query(PurchaseOrder).count() == 1


# =============================================================================
# Inbound
# =============================================================================

def test_complete_inbound_receives_lots_and_debits_supplier(db_session, supplier, product):
    po = purchasing_service.create_purchase_order(supplier.id, [{"product_id": product.id, "quantity": 6, "unit_price": 95}])

    ledger = inbound_service.complete_inbound(po.id, lot_date="2025-01-02", created_by="dock")

    assert ledger.ledger_number.startswith("PL-")
    assert ledger.total_amount == 570
    assert ledger.purchase_order_id == po.id
    assert ledger.lot_date == date(2025, 1, 2)

    lot = db.session.query(ProductLot).filter_by(product_id=product.id).one()
    assert (lot.lot_date, lot.quantity, lot.stock, lot.price) == (date(2025, 1, 2), 6, 6, 95)
    assert db.session.get(Product, product.id).stock_quantity == 6
    assert db.session.get(PurchaseOrder, po.id).status == STATUS_COMPLETED
    assert _balance(PARTY_SUPPLIER, supplier.id) == 570
    assert statement_service.verify_account(PARTY_SUPPLIER, supplier.id)["in_sync"]


def test_partial_receipt_uses_received_quantities(db_session, supplier, product):
    po = purchasing_service.create_purchase_order(supplier.id, [{"product_id": product.id, "quantity": 6}])

    ledger = inbound_service.complete_inbound(po.id, [{"product_id": product.id, "quantity": 4, "unit_price": 90}])

    assert ledger.total_amount == 360
    assert db.session.get(Product, product.id).stock_quantity == 4


def test_completed_purchase_order_cannot_be_received_again(db_session, supplier, product):
    po = purchasing_service.create_purchase_order(supplier.id, [{"product_id": product.id, "quantity": 1}])
    inbound_service.complete_inbound(po.id)

    with pytest.raises(BusinessRuleViolation):
        inbound_service.complete_inbound(po.id)
    assert db.session.get(Product, product.id).stock_quantity == 1


# =============================================================================
# Outbound
# =============================================================================

def test_complete_outbound_consumes_fifo_and_debits_customer(cycle, customer, stocked_product):
    inventory_service.receive_lot(stocked_product.id, 5, 110, lot_date=date(2025, 1, 3))
    order = _order(customer, stocked_product, 12)

    ledger = outbound_service.complete_outbound(order.id)

    assert ledger.ledger_number.startswith("SL-")
    assert ledger.total_amount == 12 * 150
    assert ledger.total_cost == 10 * 100 + 2 * 110
    item = ledger.items[0]
    assert item.cost_amount == 1220
    assert item.lot_allocations == [
        {"lot_id": item.lot_allocations[0]["lot_id"], "lot_date": "2025-01-01", "quantity": 10, "price": 100},
        {"lot_id": item.lot_allocations[1]["lot_id"], "lot_date": "2025-01-03", "quantity": 2, "price": 110},
    ]
    assert db.session.get(Product, stocked_product.id).stock_quantity == 3
    assert db.session.get(SaleOrder, order.id).status == STATUS_COMPLETED
    assert _balance(PARTY_CUSTOMER, customer.id) == 1800


def test_shortage_fails_the_whole_shipment(cycle, customer, stocked_product):
    order = _order(customer, stocked_product, 20)

    with pytest.raises(InsufficientStockError):
        outbound_service.complete_outbound(order.id)

    db.session.expire_all()
    assert db.session.get(Product, stocked_product.id).stock_quantity == 10
    assert db.session.query(ProductLot).filter_by(product_id=stocked_product.id).one().stock == 10
    assert db.session.query(SaleLedger).count() == 0
    assert db.session.get(SaleOrder, order.id).status == STATUS_CONFIRMED
    assert _balance(PARTY_CUSTOMER, customer.id) == 0


def test_only_confirmed_orders_ship(cycle, customer, stocked_product):
    order = _order(customer, stocked_product, 1)
    order_service.pend_order(order.id)

    with pytest.raises(BusinessRuleViolation):
        outbound_service.complete_outbound(order.id)


def test_shipping_more_than_ordered_is_rejected(cycle, customer, stocked_product):
    order = _order(customer, stocked_product, 2)

    with pytest.raises(ValidationError):
        outbound_service.complete_outbound(order.id, [{"product_id": stocked_product.id, "quantity": 9}])

    db.session.expire_all()
    assert db.session.get(Product, stocked_product.id).stock_quantity == 10
    assert db.session.query(SaleLedger).count() == 0
    assert db.session.get(SaleOrder, order.id).status == STATUS_CONFIRMED
    assert _balance(PARTY_CUSTOMER, customer.id) == 0


def test_split_shipment_lines_cannot_exceed_the_order(cycle, customer, stocked_product):
    order = _order(customer, stocked_product, 3)
    split = [{"product_id": stocked_product.id, "quantity": 2}, {"product_id": stocked_product.id, "quantity": 2}]

    with pytest.raises(ValidationError):
        outbound_service.complete_outbound(order.id, split)

    ledger = outbound_service.complete_outbound(order.id, [{"product_id": stocked_product.id, "quantity": 2}])
    assert ledger.total_amount == 2 * 150
    assert db.session.get(Product, stocked_product.id).stock_quantity == 8
