# Overview: FIFO lot ledger per product; receipts merge by lot date, shipments consume oldest lots first.

"""
Lot inventory invariants (authoritative)

- product.stock_quantity == sum(lot.stock for lot in product.lots), always.
- 0 <= lot.stock <= lot.quantity; lots are never deleted, exhausted lots stay.
- A receipt on an existing lot_date merges into that lot: quantity and stock
  grow by the received amount and the receipt price overwrites the lot price.
- product.latest_purchase_price is the price of the newest-dated lot with
  stock > 0; when every lot is exhausted the last known price is kept.
- consume() takes from lots in ascending lot_date order. It either takes the
  full quantity or raises InsufficientStockError without touching any lot.

Every mutation is a read-modify-write of the product row under run_with_retry.
Product.version_id turns a concurrent writer into StaleDataError and a retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, ProductLot, Supplier
from ..time_utils import business_today, to_iso_date
from ..validation import (
    ModelValidationPolicy,
    coerce_date,
    require_non_negative_amount,
    require_positive_quantity,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "specification",
        "unit",
        "main_category",
        "supplier_id",
        "purchase_price",
        "sale_price",
        "minimum_stock",
        "is_active",
    },
    required_on_create={"name"},
)


@dataclass(frozen=True)
class LotAllocation:
    """Stock taken from one lot by a FIFO consume."""
    lot_id: int
    lot_date: date
    quantity: int
    price: int

    @property
    def cost(self) -> int:
        return self.quantity * self.price

    def to_dict(self) -> dict:
        return {
            "lot_id": self.lot_id,
            "lot_date": to_iso_date(self.lot_date),
            "quantity": self.quantity,
            "price": self.price,
        }


# =============================================================================
# Product master
# =============================================================================

def _validate_product_patch(patch: dict) -> None:
    for key in ("purchase_price", "sale_price", "minimum_stock"):
        if patch.get(key) is not None:
            require_non_negative_amount(patch[key], field=key)
    supplier_id = patch.get("supplier_id")
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _validate_product_patch(patch)

    def _op():
        product = Product(**patch)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    _validate_product_patch(patch)

    def _op():
        product = _get_product(product_id, lock=True)
        for key, value in patch.items():
            setattr(product, key, value)
        db.session.commit()
        return product

    return run_with_retry(_op)


def get_product(product_id: int) -> Product:
    return _get_product(product_id)


def list_products(*, category: str | None = None, supplier_id: int | None = None, active_only: bool = False):
    q = db.session.query(Product)
    if category:
        q = q.filter(Product.main_category == category)
    if supplier_id:
        q = q.filter(Product.supplier_id == supplier_id)
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


# =============================================================================
# Lots
# =============================================================================

def _recompute_derived(product: Product) -> None:
    product.stock_quantity = sum(lot.stock for lot in product.lots)
    in_stock = [lot for lot in product.lots if lot.stock > 0]
    if in_stock:
        newest = max(in_stock, key=lambda lot: lot.lot_date)
        product.latest_purchase_price = newest.price


def _receive_lot_inner(product: Product, *, lot_date: date, quantity: int, price: int) -> ProductLot:
    """Core receive logic without locking, retry, or commit.

    Called by receive_lot() and by inbound_service inside its own transaction.
    """
    lot = next((existing for existing in product.lots if existing.lot_date == lot_date), None)
    if lot is None:
        lot = ProductLot(lot_date=lot_date, quantity=quantity, stock=quantity, price=price)
        product.lots.append(lot)
    else:
        lot.quantity += quantity
        lot.stock += quantity
        lot.price = price
    _recompute_derived(product)
    return lot


def _consume_lots_inner(product: Product, quantity: int) -> list[LotAllocation]:
    """Core FIFO consume without locking, retry, or commit.

    The whole plan is built before any lot is touched so a shortage leaves
    every lot as it was.
    """
    available = sum(lot.stock for lot in product.lots)
    if quantity > available:
        raise InsufficientStockError(product.id, quantity, available)

    plan: list[tuple[ProductLot, int]] = []
    remaining = quantity
    for lot in sorted(product.lots, key=lambda l: (l.lot_date, l.id or 0)):
        if remaining == 0:
            break
        take = min(lot.stock, remaining)
        if take:
            plan.append((lot, take))
            remaining -= take

    allocations = []
    for lot, take in plan:
        lot.stock -= take
        allocations.append(LotAllocation(lot_id=lot.id, lot_date=lot.lot_date, quantity=take, price=lot.price))

    _recompute_derived(product)
    return allocations


def receive_lot(product_id: int, quantity, price, lot_date=None) -> Product:
    """Record a receipt of `quantity` at `price` into the product's lot for `lot_date`."""
    quantity = require_positive_quantity(quantity)
    price = require_non_negative_amount(price, field="price")
    lot_day = coerce_date(lot_date, field="lot_date") if lot_date is not None else business_today()

    def _op():
        product = _get_product(product_id, lock=True)
        _receive_lot_inner(product, lot_date=lot_day, quantity=quantity, price=price)
        db.session.commit()
        return product

    return run_with_retry(_op)


def consume_lots(product_id: int, quantity) -> list[LotAllocation]:
    """Take `quantity` from the product's lots, oldest lot_date first."""
    quantity = require_positive_quantity(quantity)

    def _op():
        product = _get_product(product_id, lock=True)
        allocations = _consume_lots_inner(product, quantity)
        db.session.commit()
        return allocations

    return run_with_retry(_op)


def get_lot_history(product_id: int) -> list[ProductLot]:
    """All lots of a product, newest lot_date first, exhausted lots included."""
    _get_product(product_id)
    return (
        db.session.query(ProductLot)
        .filter(ProductLot.product_id == product_id)
        .order_by(ProductLot.lot_date.desc(), ProductLot.id.desc())
        .all()
    )


def get_stock_summary(product_id: int) -> dict:
    product = _get_product(product_id)
    lots = product.lots
    return {
        "product": product.to_dict(),
        "lot_count": len(lots),
        "active_lot_count": sum(1 for lot in lots if lot.stock > 0),
        "stock_value": sum(lot.stock * lot.price for lot in lots),
        "below_minimum": product.stock_quantity < (product.minimum_stock or 0),
        "lots": [lot.to_dict() for lot in lots],
    }
