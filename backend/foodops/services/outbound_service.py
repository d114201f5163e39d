# Overview: Shipment of a sale order: FIFO lot consumption, sale ledger, customer account, order status in one transaction.

from __future__ import annotations

from ..errors import BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, SaleLedger
from ..models.orders import STATUS_COMPLETED, STATUS_CONFIRMED
from ..time_utils import utcnow
from ..validation import coerce_datetime, require_positive_quantity
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .inventory_service import _consume_lots_inner
from .ledger_service import PostingLine, _post_sale_inner
from .order_service import get_sale_order


def _shipped_lines(order, shipped_items) -> list[dict]:
    """Order lines to ship; shipped_items may reduce a line's quantity, never add products."""
    if shipped_items is None:
        return [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "specification": item.specification,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in order.items
        ]
    if not isinstance(shipped_items, (list, tuple)) or not shipped_items:
        raise ValidationError("shipped_items must be a non-empty list")

    ordered = {}
    remaining = {}
    for item in order.items:
        ordered.setdefault(item.product_id, item)
        remaining[item.product_id] = remaining.get(item.product_id, 0) + item.quantity
    lines = []
    for idx, raw in enumerate(shipped_items):
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise ValidationError(f"shipped_items[{idx}].product_id is required")
        item = ordered.get(raw["product_id"])
        if item is None:
            raise ValidationError(
                f"Product {raw['product_id']} is not on sale order {order.order_number}",
                details={"product_id": raw["product_id"]},
            )
        quantity = require_positive_quantity(raw.get("quantity", item.quantity), field=f"shipped_items[{idx}].quantity")
        if quantity > remaining[item.product_id]:
            raise ValidationError(
                f"Cannot ship more of product {item.product_id} than sale order {order.order_number} holds",
                details={"product_id": item.product_id, "requested": quantity, "remaining": remaining[item.product_id]},
            )
        remaining[item.product_id] -= quantity
        lines.append(
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "specification": item.specification,
                "quantity": quantity,
                "unit_price": item.unit_price,
            }
        )
    return lines


def complete_outbound(
    sale_order_id: int,
    shipped_items=None,
    *,
    shipped_at=None,
    created_by: str | None = None,
) -> SaleLedger:
    """
    Ship a confirmed sale order.

    Every line is consumed FIFO from its product's lots; if any product is
    short the whole shipment fails with InsufficientStockError and nothing
    changes. Otherwise an SL- ledger with the per-line lot cost breakdown is
    written, the customer account is debited and the order is completed.
    """
    order = get_sale_order(sale_order_id)
    if order.status != STATUS_CONFIRMED:
        raise BusinessRuleViolation(
            f"Sale order {order.order_number} is {order.status}; only confirmed orders can ship",
            details={"status": order.status},
        )
    lines = _shipped_lines(order, shipped_items)
    when = coerce_datetime(shipped_at, field="shipped_at") if shipped_at is not None else utcnow()
    ledger_number = next_document_number("sale_ledger")

    def _op():
        so = get_sale_order(sale_order_id, lock=True)
        if so.status != STATUS_CONFIRMED:
            raise BusinessRuleViolation(
                f"Sale order {so.order_number} was already {so.status}",
                details={"status": so.status},
            )

        posting_lines = []
        # Lock products in id order
        for line in sorted(lines, key=lambda l: l["product_id"]):
            product = lock_for_update(db.session.query(Product).filter_by(id=line["product_id"])).first()
            if product is None:
                raise NotFoundError(f"Product {line['product_id']} not found", details={"product_id": line["product_id"]})
            allocations = _consume_lots_inner(product, line["quantity"])
            posting_lines.append(
                PostingLine(
                    product_id=line["product_id"],
                    product_name=line["product_name"],
                    specification=line["specification"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    cost_amount=sum(a.cost for a in allocations),
                    lot_allocations=[a.to_dict() for a in allocations],
                )
            )

        ledger = _post_sale_inner(
            customer_id=so.customer_id,
            ledger_number=ledger_number,
            lines=posting_lines,
            amount=sum(l.line_total for l in posting_lines),
            posted_at=when,
            sale_order_id=so.id,
            created_by=created_by,
        )
        so.status = STATUS_COMPLETED
        so.completed_at = when
        db.session.commit()
        return ledger

    return run_with_retry(_op)
