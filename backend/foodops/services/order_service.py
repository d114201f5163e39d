# Overview: Sale order entry, status transitions and per-phase order statistics.

"""
Sale order lifecycle

    placed -> confirmed -> completed        (completed only via outbound shipment)
    placed | pended -> confirmed
    placed | confirmed -> pended            (held with a reason)
    placed | pended | confirmed -> rejected

create_sale_order() validates every line against the product master:
- missing or inactive product: blocking, the order is stored as "pended"
  with the reasons, otherwise it is stored "confirmed";
- stock shortage, stock falling below minimum, unusually large quantity:
  non-blocking warnings kept on the order.
"""

from __future__ import annotations

from flask import current_app

from ..errors import BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, SaleOrder, SaleOrderItem
from ..models.cutoff import PHASE_ADDITIONAL, PHASE_REGULAR
from ..models.orders import (
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_PENDED,
    STATUS_PLACED,
    STATUS_REJECTED,
)
from ..time_utils import utcnow
from ..validation import coerce_datetime, require_non_negative_amount, require_positive_quantity
from .concurrency import lock_for_update, run_with_retry
from .cutoff_service import cycle_for, get_current_cycle
from .document_service import next_document_number
from .party_service import get_customer


DEFAULT_UNUSUAL_QUANTITY = 1000

ALLOWED_TRANSITIONS = {
    STATUS_CONFIRMED: {STATUS_PLACED, STATUS_PENDED},
    STATUS_PENDED: {STATUS_PLACED, STATUS_CONFIRMED},
    STATUS_REJECTED: {STATUS_PLACED, STATUS_PENDED, STATUS_CONFIRMED},
}


def _unusual_quantity() -> int:
    return int(current_app.config.get("UNUSUAL_ORDER_QUANTITY", DEFAULT_UNUSUAL_QUANTITY))


def validate_order_items(raw_items) -> tuple[list[dict], list[str], list[str]]:
    """
    Returns (lines, errors, warnings).

    Lines hold the validated quantity/price plus the product snapshot. Errors
    block confirmation; warnings do not.
    """
    if not isinstance(raw_items, (list, tuple)) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    product_ids = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise ValidationError(f"items[{idx}].product_id is required")
        product_ids.append(raw["product_id"])
    products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()}

    lines, errors, warnings = [], [], []
    threshold = _unusual_quantity()
    requested: dict[int, int] = {}

    for idx, raw in enumerate(raw_items):
        product_id = raw["product_id"]
        quantity = require_positive_quantity(raw.get("quantity"), field=f"items[{idx}].quantity")
        product: Product | None = products.get(product_id)

        if product is None:
            errors.append(f"Product {product_id} does not exist")
            name = raw.get("product_name") or f"product #{product_id}"
            lines.append(
                {
                    "product_id": product_id,
                    "product_name": name,
                    "specification": raw.get("specification"),
                    "supplier_id": None,
                    "quantity": quantity,
                    "unit_price": require_non_negative_amount(raw.get("unit_price") or 0, field=f"items[{idx}].unit_price"),
                }
            )
            continue

        if not product.is_active:
            errors.append(f"{product.name} is not available for sale")

        unit_price = raw.get("unit_price")
        if unit_price is None:
            unit_price = product.sale_price or 0
        unit_price = require_non_negative_amount(unit_price, field=f"items[{idx}].unit_price")

        requested[product_id] = requested.get(product_id, 0) + quantity
        total_requested = requested[product_id]
        if total_requested > product.stock_quantity:
            warnings.append(
                f"{product.name}: ordered {total_requested}, in stock {product.stock_quantity}"
            )
        elif product.minimum_stock and product.stock_quantity - total_requested < product.minimum_stock:
            warnings.append(
                f"{product.name}: stock would fall below minimum {product.minimum_stock}"
            )
        if quantity > threshold:
            warnings.append(f"{product.name}: unusually large quantity {quantity}")

        lines.append(
            {
                "product_id": product_id,
                "product_name": product.name,
                "specification": product.specification,
                "supplier_id": product.supplier_id,
                "quantity": quantity,
                "unit_price": unit_price,
            }
        )

    return lines, errors, warnings


def create_sale_order(
    customer_id: int,
    items,
    *,
    placed_at=None,
    memo: str | None = None,
    created_by: str | None = None,
) -> SaleOrder:
    customer = get_customer(customer_id)
    if not customer.is_active:
        raise BusinessRuleViolation(f"Customer {customer.name} is inactive")

    get_current_cycle()
    now = utcnow()
    placed = coerce_datetime(placed_at, field="placed_at") if placed_at is not None else now
    if placed > now:
        raise ValidationError("placed_at cannot be in the future", details={"placed_at": str(placed_at)})
    lines, errors, warnings = validate_order_items(items)
    cycle = cycle_for(placed)
    phase = cycle.phase if cycle is not None else PHASE_REGULAR
    order_number = next_document_number("sale_order")

    def _op():
        now = utcnow()
        order = SaleOrder(
            order_number=order_number,
            customer_id=customer_id,
            status=STATUS_PENDED if errors else STATUS_CONFIRMED,
            phase=phase,
            cycle_id=cycle.id if cycle is not None else None,
            placed_at=placed,
            pended_reason="; ".join(errors) if errors else None,
            warnings=warnings,
            memo=memo,
            created_by=created_by,
            confirmed_at=None if errors else now,
        )
        for line in lines:
            order.items.append(
                SaleOrderItem(
                    product_id=line["product_id"],
                    product_name=line["product_name"],
                    specification=line["specification"],
                    supplier_id=line["supplier_id"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    line_total=line["quantity"] * line["unit_price"],
                )
            )
        _refresh_totals(order)
        db.session.add(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def _refresh_totals(order: SaleOrder) -> None:
    order.total_amount = sum(item.line_total for item in order.items)
    order.total_quantity = sum(item.quantity for item in order.items)
    order.item_count = len(order.items)


def get_sale_order(order_id: int, *, lock: bool = False) -> SaleOrder:
    query = db.session.query(SaleOrder).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError(f"Sale order {order_id} not found", details={"order_id": order_id})
    return order


def list_sale_orders(
    *,
    cycle_id: int | None = None,
    customer_id: int | None = None,
    status: str | None = None,
    phase: str | None = None,
    limit: int = 200,
    offset: int = 0,
):
    q = db.session.query(SaleOrder)
    if cycle_id:
        q = q.filter(SaleOrder.cycle_id == cycle_id)
    if customer_id:
        q = q.filter(SaleOrder.customer_id == customer_id)
    if status:
        q = q.filter(SaleOrder.status == status)
    if phase:
        q = q.filter(SaleOrder.phase == phase)
    total = q.count()
    rows = q.order_by(SaleOrder.placed_at.desc(), SaleOrder.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def _transition(order_id: int, target: str, *, reason: str | None = None) -> SaleOrder:
    def _op():
        order = get_sale_order(order_id, lock=True)
        if order.status == target:
            return order
        if order.status not in ALLOWED_TRANSITIONS[target]:
            raise BusinessRuleViolation(
                f"Cannot move order {order.order_number} from {order.status} to {target}",
                details={"status": order.status, "target": target},
            )
        order.status = target
        now = utcnow()
        if target == STATUS_CONFIRMED:
            order.confirmed_at = now
            order.pended_reason = None
        elif target == STATUS_PENDED:
            order.pended_reason = reason
        elif target == STATUS_REJECTED:
            order.rejected_at = now
            if reason:
                order.pended_reason = reason
        db.session.commit()
        return order

    return run_with_retry(_op)


def confirm_order(order_id: int) -> SaleOrder:
    order = get_sale_order(order_id)
    if order.status == STATUS_PENDED:
        # A held order is only confirmable once its products are sellable again
        _lines, errors, _warnings = validate_order_items([item.to_dict() for item in order.items])
        if errors:
            raise BusinessRuleViolation("; ".join(errors), details={"errors": errors})
    return _transition(order_id, STATUS_CONFIRMED)


def pend_order(order_id: int, reason: str | None = None) -> SaleOrder:
    return _transition(order_id, STATUS_PENDED, reason=reason)


def reject_order(order_id: int, reason: str | None = None) -> SaleOrder:
    return _transition(order_id, STATUS_REJECTED, reason=reason)


def order_statistics(orders) -> dict:
    """Counts and amounts per bucket: regular / additional (confirmed or completed), pended, rejected."""
    buckets = {
        name: {"count": 0, "amount": 0}
        for name in (PHASE_REGULAR, PHASE_ADDITIONAL, STATUS_PENDED, STATUS_REJECTED)
    }
    total = {"count": 0, "amount": 0}
    for order in orders:
        if order.status in (STATUS_PENDED, STATUS_REJECTED):
            key = order.status
        elif order.status in (STATUS_CONFIRMED, STATUS_COMPLETED):
            key = order.phase if order.phase in (PHASE_REGULAR, PHASE_ADDITIONAL) else PHASE_REGULAR
        else:
            key = None
        total["count"] += 1
        total["amount"] += order.total_amount
        if key is not None:
            buckets[key]["count"] += 1
            buckets[key]["amount"] += order.total_amount
    buckets["total"] = total
    return buckets
