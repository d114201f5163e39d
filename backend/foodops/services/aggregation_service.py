# Overview: Category -> supplier -> product rollup of confirmed orders, joined with live stock.

"""
Aggregation rules

- Only confirmed orders contribute. Every item adds its quantity and
  line_total to the (category, supplier, product) bucket; buckets are created
  on first sight, so totals are exact and independent of input order.
- Category and supplier come from the product as it is now. An item whose
  product was deleted keeps its snapshot (name, specification, supplier) and
  lands in the "unclassified" category.
- Each product leaf carries the product's current stock_quantity (a point in
  time read, not part of the orders) so demand can be compared with supply.

Sorting in to_dict() is presentation only.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..extensions import db
from ..models import CutoffCycle, Product, SaleOrder, SaleOrderItem, Supplier
from ..models.inventory import UNCLASSIFIED_CATEGORY
from ..models.orders import STATUS_CONFIRMED
from . import notification_service
from .cutoff_service import get_current_cycle, get_cycle


UNKNOWN_SUPPLIER_NAME = "unknown supplier"


@dataclass
class ProductNode:
    product_id: int
    product_name: str
    specification: str | None
    unit_price: int | None
    stock_quantity: int
    minimum_stock: int = 0
    total_quantity: int = 0
    total_amount: int = 0
    order_ids: set = field(default_factory=set)

    @property
    def order_count(self) -> int:
        return len(self.order_ids)

    @property
    def shortage(self) -> int:
        return max(0, self.total_quantity - self.stock_quantity)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "specification": self.specification,
            "unit_price": self.unit_price,
            "total_quantity": self.total_quantity,
            "total_amount": self.total_amount,
            "order_count": self.order_count,
            "stock_quantity": self.stock_quantity,
            "minimum_stock": self.minimum_stock,
            "shortage": self.shortage,
            "is_sufficient": self.shortage == 0,
        }


@dataclass
class SupplierNode:
    supplier_id: int | None
    supplier_name: str
    total_quantity: int = 0
    total_amount: int = 0
    products: dict[int, ProductNode] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "total_quantity": self.total_quantity,
            "total_amount": self.total_amount,
            "products": [
                p.to_dict() for p in sorted(self.products.values(), key=lambda p: (p.product_name, p.product_id))
            ],
        }


@dataclass
class CategoryNode:
    name: str
    total_quantity: int = 0
    total_amount: int = 0
    suppliers: dict[int | None, SupplierNode] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "category": self.name,
            "total_quantity": self.total_quantity,
            "total_amount": self.total_amount,
            # Biggest suppliers first, the way purchasing reads the sheet
            "suppliers": [
                s.to_dict()
                for s in sorted(self.suppliers.values(), key=lambda s: (-s.total_amount, s.supplier_name))
            ],
        }


@dataclass
class CategoryTree:
    categories: dict[str, CategoryNode] = field(default_factory=dict)
    total_quantity: int = 0
    total_amount: int = 0
    order_count: int = 0

    def iter_products(self):
        for category in self.categories.values():
            for supplier in category.suppliers.values():
                for product in supplier.products.values():
                    yield category, supplier, product

    def by_supplier(self) -> dict[int | None, list[ProductNode]]:
        """Product leaves regrouped per supplier, across categories."""
        grouped: dict[int | None, list[ProductNode]] = {}
        for _category, supplier, product in self.iter_products():
            grouped.setdefault(supplier.supplier_id, []).append(product)
        return grouped

    def to_dict(self) -> dict:
        return {
            "total_quantity": self.total_quantity,
            "total_amount": self.total_amount,
            "order_count": self.order_count,
            "categories": [
                c.to_dict()
                for c in sorted(
                    self.categories.values(),
                    key=lambda c: (c.name == UNCLASSIFIED_CATEGORY, c.name),
                )
            ],
        }


def _load_products(product_ids) -> dict[int, Product]:
    if not product_ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    return {p.id: p for p in rows}


def _load_suppliers(supplier_ids) -> dict[int, Supplier]:
    supplier_ids = {s for s in supplier_ids if s is not None}
    if not supplier_ids:
        return {}
    rows = db.session.query(Supplier).filter(Supplier.id.in_(supplier_ids)).all()
    return {s.id: s for s in rows}


def aggregate(orders) -> CategoryTree:
    """Roll confirmed orders up into a category/supplier/product tree."""
    included = [o for o in orders if o.status == STATUS_CONFIRMED]
    items = [(order, item) for order in included for item in order.items]

    products = _load_products({item.product_id for _order, item in items})
    supplier_ids = set()
    for _order, item in items:
        product = products.get(item.product_id)
        supplier_ids.add(product.supplier_id if product is not None else item.supplier_id)
    suppliers = _load_suppliers(supplier_ids)

    tree = CategoryTree(order_count=len(included))
    for order, item in items:
        product = products.get(item.product_id)
        if product is not None:
            category_name = product.category
            supplier_id = product.supplier_id
        else:
            category_name = UNCLASSIFIED_CATEGORY
            supplier_id = item.supplier_id

        category = tree.categories.get(category_name)
        if category is None:
            category = tree.categories[category_name] = CategoryNode(name=category_name)

        supplier_node = category.suppliers.get(supplier_id)
        if supplier_node is None:
            supplier = suppliers.get(supplier_id)
            supplier_node = category.suppliers[supplier_id] = SupplierNode(
                supplier_id=supplier_id,
                supplier_name=supplier.name if supplier is not None else UNKNOWN_SUPPLIER_NAME,
            )

        leaf = supplier_node.products.get(item.product_id)
        if leaf is None:
            leaf = supplier_node.products[item.product_id] = ProductNode(
                product_id=item.product_id,
                product_name=product.name if product is not None else item.product_name,
                specification=product.specification if product is not None else item.specification,
                unit_price=(product.purchase_price or product.latest_purchase_price) if product is not None else None,
                stock_quantity=product.stock_quantity if product is not None else 0,
                minimum_stock=product.minimum_stock if product is not None else 0,
            )

        leaf.total_quantity += item.quantity
        leaf.total_amount += item.line_total
        leaf.order_ids.add(order.id)
        supplier_node.total_quantity += item.quantity
        supplier_node.total_amount += item.line_total
        category.total_quantity += item.quantity
        category.total_amount += item.line_total
        tree.total_quantity += item.quantity
        tree.total_amount += item.line_total

    return tree


def cycle_orders(cycle_id: int, *, statuses=None) -> list[SaleOrder]:
    q = db.session.query(SaleOrder).filter(SaleOrder.cycle_id == cycle_id)
    if statuses:
        q = q.filter(SaleOrder.status.in_(list(statuses)))
    return q.order_by(SaleOrder.placed_at.asc(), SaleOrder.id.asc()).all()


def aggregate_cycle(cycle_id: int | None = None) -> CategoryTree:
    """Aggregation of one cycle's confirmed orders (current cycle by default)."""
    cycle = get_cycle(cycle_id) if cycle_id is not None else get_current_cycle()
    return aggregate(cycle_orders(cycle.id, statuses={STATUS_CONFIRMED}))


def product_order_details(product_id: int, cycle_id: int | None = None) -> dict:
    """Every confirmed order line for one product in a cycle, newest order first."""
    cycle = get_cycle(cycle_id) if cycle_id is not None else get_current_cycle()
    rows = (
        db.session.query(SaleOrder, SaleOrderItem)
        .join(SaleOrderItem, SaleOrderItem.sale_order_id == SaleOrder.id)
        .filter(
            SaleOrder.cycle_id == cycle.id,
            SaleOrder.status == STATUS_CONFIRMED,
            SaleOrderItem.product_id == product_id,
        )
        .order_by(SaleOrder.placed_at.desc(), SaleOrder.id.desc(), SaleOrderItem.id.asc())
        .all()
    )
    lines = [
        {
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_id": order.customer_id,
            "customer_name": order.customer.name if order.customer else None,
            "phase": order.phase,
            "placed_at": order.to_dict(include_items=False)["placed_at"],
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "line_total": item.line_total,
        }
        for order, item in rows
    ]
    return {
        "product_id": product_id,
        "cycle_id": cycle.id,
        "lines": lines,
        "total_quantity": sum(line["quantity"] for line in lines),
        "total_amount": sum(line["line_total"] for line in lines),
        "order_count": len({line["order_id"] for line in lines}),
    }


class LiveAggregation:
    """
    Aggregation view kept fresh by change notifications.

    Committed writes to SaleOrder, Product or CutoffCycle mark the view stale and are
    forwarded to listeners; snapshot() recomputes when stale. Recomputing is
    idempotent, so extra notifications only cost a re-run.
    """

    WATCHED_MODELS = (SaleOrder, Product, CutoffCycle)

    def __init__(self, *, cycle_id: int | None = None, app=None):
        self.cycle_id = cycle_id
        self._app = app
        self._lock = threading.Lock()
        self._stale = True
        self._tree: CategoryTree | None = None
        self._listeners = []
        self._subscriptions = [
            notification_service.subscribe(model, self._on_change, app=app)
            for model in self.WATCHED_MODELS
        ]
        self.recompute_count = 0

    @property
    def is_stale(self) -> bool:
        return self._stale

    def add_listener(self, callback) -> None:
        self._listeners.append(callback)

    def _on_change(self, change: dict) -> None:
        with self._lock:
            self._stale = True
        for callback in list(self._listeners):
            callback(change)

    def snapshot(self) -> CategoryTree:
        with self._lock:
            if not self._stale and self._tree is not None:
                return self._tree
            self._stale = False
        tree = aggregate_cycle(self.cycle_id)
        with self._lock:
            self._tree = tree
            self.recompute_count += 1
        return tree

    def close(self) -> None:
        for sub_id in self._subscriptions:
            notification_service.unsubscribe(sub_id, app=self._app)
        self._subscriptions = []
