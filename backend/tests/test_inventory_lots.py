import random
from datetime import date

import pytest

from foodops.errors import InsufficientStockError, NotFoundError, ValidationError
from foodops.extensions import db
from foodops.models import Product, ProductLot
from foodops.services import inventory_service


def _lots(product_id):
    return [
        (lot.lot_date, lot.quantity, lot.stock, lot.price)
        for lot in db.session.query(ProductLot)
        .filter_by(product_id=product_id)
        .order_by(ProductLot.lot_date.asc())
        .all()
    ]


def _product(product_id) -> Product:
    db.session.expire_all()
    return db.session.get(Product, product_id)


def test_receive_appends_new_lot_and_updates_derived_fields(stocked_product):
    inventory_service.receive_lot(stocked_product.id, 5, 110, lot_date=date(2025, 1, 3))

    assert _lots(stocked_product.id) == [
        (date(2025, 1, 1), 10, 10, 100),
        (date(2025, 1, 3), 5, 5, 110),
    ]
    product = _product(stocked_product.id)
    assert product.stock_quantity == 15
    assert product.latest_purchase_price == 110


def test_consume_is_fifo_and_keeps_exhausted_lots(stocked_product):
    inventory_service.receive_lot(stocked_product.id, 5, 110, lot_date=date(2025, 1, 3))

    allocations = inventory_service.consume_lots(stocked_product.id, 12)

    assert _lots(stocked_product.id) == [
        (date(2025, 1, 1), 10, 0, 100),
        (date(2025, 1, 3), 5, 3, 110),
    ]
    assert _product(stocked_product.id).stock_quantity == 3
    assert [(a.lot_date, a.quantity, a.price) for a in allocations] == [
        (date(2025, 1, 1), 10, 100),
        (date(2025, 1, 3), 2, 110),
    ]
    assert sum(a.cost for a in allocations) == 10 * 100 + 2 * 110


def test_consume_more_than_stock_fails_without_change(stocked_product):
    inventory_service.receive_lot(stocked_product.id, 5, 110, lot_date=date(2025, 1, 3))
    inventory_service.consume_lots(stocked_product.id, 12)
    before = _lots(stocked_product.id)

    with pytest.raises(InsufficientStockError) as excinfo:
        inventory_service.consume_lots(stocked_product.id, 4)

    assert excinfo.value.available == 3
    assert excinfo.value.requested == 4
    assert _lots(stocked_product.id) == before
    assert _product(stocked_product.id).stock_quantity == 3


def test_same_day_receipt_merges_and_last_price_wins(stocked_product):
    inventory_service.receive_lot(stocked_product.id, 4, 120, lot_date=date(2025, 1, 1))

    assert _lots(stocked_product.id) == [(date(2025, 1, 1), 14, 14, 120)]
    product = _product(stocked_product.id)
    assert product.stock_quantity == 14
    assert product.latest_purchase_price == 120


def test_latest_price_ignores_exhausted_lots(stocked_product):
    inventory_service.receive_lot(stocked_product.id, 5, 130, lot_date=date(2025, 1, 5))
    # An older-dated late receipt does not become the latest price
    inventory_service.receive_lot(stocked_product.id, 2, 90, lot_date=date(2024, 12, 30))
    assert _product(stocked_product.id).latest_purchase_price == 130

    inventory_service.consume_lots(stocked_product.id, 17)
    product = _product(stocked_product.id)
    assert product.stock_quantity == 0
    # Nothing in stock: last known price is kept
    assert product.latest_purchase_price == 130


@pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5, True])
def test_receive_rejects_non_positive_or_non_integer_quantity(product, quantity):
    with pytest.raises(ValidationError):
        inventory_service.receive_lot(product.id, quantity, 100)
    assert _lots(product.id) == []


def test_receive_rejects_negative_price(product):
    with pytest.raises(ValidationError):
        inventory_service.receive_lot(product.id, 1, -5)


def test_consume_rejects_zero_quantity(stocked_product):
    with pytest.raises(ValidationError):
        inventory_service.consume_lots(stocked_product.id, 0)


def test_missing_product_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        inventory_service.receive_lot(9999, 1, 100)
    with pytest.raises(NotFoundError):
        inventory_service.consume_lots(9999, 1)


def test_lot_history_is_newest_first_with_exhausted_lots(stocked_product):
    inventory_service.receive_lot(stocked_product.id, 5, 110, lot_date=date(2025, 1, 3))
    inventory_service.consume_lots(stocked_product.id, 10)

    history = inventory_service.get_lot_history(stocked_product.id)

    assert [lot.lot_date for lot in history] == [date(2025, 1, 3), date(2025, 1, 1)]
    assert history[1].to_dict()["is_exhausted"] is True


def test_stock_summary(stocked_product):
    inventory_service.receive_lot(stocked_product.id, 5, 110, lot_date=date(2025, 1, 3))
    inventory_service.consume_lots(stocked_product.id, 10)

    summary = inventory_service.get_stock_summary(stocked_product.id)

    assert summary["lot_count"] == 2
    assert summary["active_lot_count"] == 1
    assert summary["stock_value"] == 5 * 110


def test_random_operations_keep_stock_equal_to_lot_sum_and_fifo(product):
    rng = random.Random(7)
    for _ in range(40):
        if rng.random() < 0.5:
            day = date(2025, 1, rng.randint(1, 20))
            inventory_service.receive_lot(product.id, rng.randint(1, 9), rng.randint(50, 150), lot_date=day)
            continue

        lots_before = {lot_id: stock for lot_id, stock in db.session.query(ProductLot.id, ProductLot.stock)}
        try:
            allocations = inventory_service.consume_lots(product.id, rng.randint(1, 12))
        except InsufficientStockError:
            continue

        # Every lot touched except the last was drained, and no earlier lot was left with stock
        touched = {a.lot_id for a in allocations}
        last_date = max(a.lot_date for a in allocations)
        for lot in db.session.query(ProductLot).filter_by(product_id=product.id):
            if lot.lot_date < last_date:
                assert lot.stock == 0
            if lot.id in touched and lot.lot_date < last_date:
                assert lots_before[lot.id] > 0

        lot_sum = sum(stock for (stock,) in db.session.query(ProductLot.stock).filter_by(product_id=product.id))
        assert _product(product.id).stock_quantity == lot_sum


def test_received_lots_are_persisted_rows(product):
    inventory_service.receive_lot(product.id, 4, 90, lot_date=date(2025, 1, 2))
    inventory_service.receive_lot(product.id, 6, 95, lot_date=date(2025, 1, 5))
    db.session.expire_all()

    rows = db.session.query(ProductLot).filter_by(product_id=product.id).order_by(ProductLot.lot_date).all()
    assert [(lot.lot_date, lot.stock) for lot in rows] == [(date(2025, 1, 2), 4), (date(2025, 1, 5), 6)]
    assert all(lot.id is not None for lot in rows)
    assert _product(product.id).stock_quantity == 10


def test_deleting_a_product_leaves_its_lot_history(stocked_product):
    lot_ids = [lot_id for (lot_id,) in db.session.query(ProductLot.id).filter_by(product_id=stocked_product.id)]

    db.session.delete(db.session.get(Product, stocked_product.id))
    db.session.commit()
    db.session.expire_all()

    remaining = db.session.query(ProductLot).filter(ProductLot.id.in_(lot_ids)).all()
    assert len(remaining) == len(lot_ids) == 1
    assert remaining[0].product_id == stocked_product.id
    assert remaining[0].stock == 10
