# Overview: Purchase orders, generated per supplier from a closed cycle's aggregation or entered by hand.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseOrderItem
from ..models.cutoff import PHASE_REGULAR
from ..models.orders import STATUS_PLACED, STATUS_REJECTED
from ..time_utils import utcnow
from ..validation import require_non_negative_amount, require_positive_quantity
from .aggregation_service import aggregate_cycle
from .concurrency import lock_for_update, run_with_retry
from .cutoff_service import get_cycle
from .document_service import next_document_number
from .party_service import get_supplier


def _build_order(*, order_number, supplier_id, cycle_id, phase, lines, memo, created_by) -> PurchaseOrder:
    order = PurchaseOrder(
        order_number=order_number,
        supplier_id=supplier_id,
        status=STATUS_PLACED,
        phase=phase,
        cycle_id=cycle_id,
        placed_at=utcnow(),
        memo=memo,
        created_by=created_by,
    )
    for line in lines:
        order.items.append(
            PurchaseOrderItem(
                product_id=line["product_id"],
                product_name=line["product_name"],
                specification=line.get("specification"),
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                line_total=line["quantity"] * line["unit_price"],
            )
        )
    order.total_amount = sum(item.line_total for item in order.items)
    order.total_quantity = sum(item.quantity for item in order.items)
    order.item_count = len(order.items)
    return order


def generate_purchase_orders(cycle_id: int, *, created_by: str | None = None) -> list[PurchaseOrder]:
    """
    One purchase order per supplier from a closed cycle's confirmed demand.

    Raises BusinessRuleViolation while the cycle is still open, and when an
    order for the same (cycle, supplier) was already generated; in that case
    nothing is created. Lines without a known supplier are skipped.
    """
    cycle = get_cycle(cycle_id)
    if cycle.is_open:
        raise BusinessRuleViolation(
            "Cannot generate purchase orders while the cutoff cycle is open",
            details={"cycle_id": cycle_id},
        )

    tree = aggregate_cycle(cycle_id)
    grouped = {sid: leaves for sid, leaves in tree.by_supplier().items() if sid is not None}
    if not grouped:
        return []

    existing = (
        db.session.query(PurchaseOrder.supplier_id)
        .filter(PurchaseOrder.cycle_id == cycle_id, PurchaseOrder.supplier_id.in_(list(grouped)))
        .all()
    )
    if existing:
        raise BusinessRuleViolation(
            "Purchase orders were already generated for this cycle",
            details={"cycle_id": cycle_id, "supplier_ids": sorted(row[0] for row in existing)},
        )

    plan = []
    for supplier_id in sorted(grouped):
        lines = [
            {
                "product_id": leaf.product_id,
                "product_name": leaf.product_name,
                "specification": leaf.specification,
                "quantity": leaf.total_quantity,
                "unit_price": leaf.unit_price or 0,
            }
            for leaf in sorted(grouped[supplier_id], key=lambda p: p.product_id)
        ]
        plan.append((supplier_id, next_document_number("purchase_order"), lines))

    def _op():
        orders = [
            _build_order(
                order_number=number,
                supplier_id=supplier_id,
                cycle_id=cycle_id,
                phase=cycle.phase,
                lines=lines,
                memo=None,
                created_by=created_by,
            )
            for supplier_id, number, lines in plan
        ]
        db.session.add_all(orders)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise BusinessRuleViolation(
                "Purchase orders were already generated for this cycle",
                details={"cycle_id": cycle_id},
            )
        return orders

    orders = run_with_retry(_op)
    current_app.logger.info(
        "Generated %s purchase order(s) for cycle %s: %s",
        len(orders),
        cycle_id,
        ", ".join(o.order_number for o in orders),
    )
    return orders


def create_purchase_order(
    supplier_id: int,
    items,
    *,
    memo: str | None = None,
    created_by: str | None = None,
) -> PurchaseOrder:
    """Manual purchase order outside any cycle."""
    get_supplier(supplier_id)
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise ValidationError(f"items[{idx}].product_id is required")
        product = db.session.get(Product, raw["product_id"])
        if product is None:
            raise NotFoundError(f"Product {raw['product_id']} not found", details={"product_id": raw["product_id"]})
        unit_price = raw.get("unit_price")
        if unit_price is None:
            unit_price = product.purchase_price or product.latest_purchase_price or 0
        lines.append(
            {
                "product_id": product.id,
                "product_name": product.name,
                "specification": product.specification,
                "quantity": require_positive_quantity(raw.get("quantity"), field=f"items[{idx}].quantity"),
                "unit_price": require_non_negative_amount(unit_price, field=f"items[{idx}].unit_price"),
            }
        )

    order_number = next_document_number("purchase_order")

    def _op():
        order = _build_order(
            order_number=order_number,
            supplier_id=supplier_id,
            cycle_id=None,
            phase=PHASE_REGULAR,
            lines=lines,
            memo=memo,
            created_by=created_by,
        )
        db.session.add(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def get_purchase_order(order_id: int, *, lock: bool = False) -> PurchaseOrder:
    query = db.session.query(PurchaseOrder).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found", details={"order_id": order_id})
    return order


def list_purchase_orders(*, cycle_id: int | None = None, supplier_id: int | None = None, status: str | None = None):
    q = db.session.query(PurchaseOrder)
    if cycle_id:
        q = q.filter(PurchaseOrder.cycle_id == cycle_id)
    if supplier_id:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)
    if status:
        q = q.filter(PurchaseOrder.status == status)
    return q.order_by(PurchaseOrder.placed_at.desc(), PurchaseOrder.id.desc()).all()


def reject_purchase_order(order_id: int) -> PurchaseOrder:
    def _op():
        order = get_purchase_order(order_id, lock=True)
        if order.status != STATUS_PLACED:
            raise BusinessRuleViolation(
                f"Cannot reject purchase order {order.order_number} in status {order.status}",
                details={"status": order.status},
            )
        order.status = STATUS_REJECTED
        order.rejected_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)
