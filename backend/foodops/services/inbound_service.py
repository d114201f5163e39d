# Overview: Goods receipt against a purchase order: lots, purchase ledger, supplier account, PO status in one transaction.

from __future__ import annotations

from ..errors import BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, PurchaseLedger
from ..models.orders import STATUS_COMPLETED, STATUS_CONFIRMED, STATUS_PLACED
from ..time_utils import to_business_date, utcnow
from ..validation import coerce_date, coerce_datetime, require_non_negative_amount, require_positive_quantity
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .inventory_service import _receive_lot_inner
from .ledger_service import PostingLine, _post_purchase_inner
from .purchasing_service import get_purchase_order


RECEIVABLE_STATUSES = {STATUS_PLACED, STATUS_CONFIRMED}


def _received_lines(order, received_items) -> list[dict]:
    """Lines to receive: the PO lines, or the given overrides of quantity/price per product."""
    if received_items is None:
        return [
            {"product_id": item.product_id, "quantity": item.quantity, "unit_price": item.unit_price}
            for item in order.items
        ]
    if not isinstance(received_items, (list, tuple)) or not received_items:
        raise ValidationError("received_items must be a non-empty list")

    ordered = {item.product_id: item for item in order.items}
    lines = []
    for idx, raw in enumerate(received_items):
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise ValidationError(f"received_items[{idx}].product_id is required")
        po_item = ordered.get(raw["product_id"])
        if po_item is None:
            raise ValidationError(
                f"Product {raw['product_id']} is not on purchase order {order.order_number}",
                details={"product_id": raw["product_id"]},
            )
        unit_price = raw.get("unit_price", po_item.unit_price)
        lines.append(
            {
                "product_id": po_item.product_id,
                "quantity": require_positive_quantity(raw.get("quantity", po_item.quantity), field=f"received_items[{idx}].quantity"),
                "unit_price": require_non_negative_amount(unit_price, field=f"received_items[{idx}].unit_price"),
            }
        )
    return lines


def complete_inbound(
    purchase_order_id: int,
    received_items=None,
    *,
    lot_date=None,
    received_at=None,
    created_by: str | None = None,
) -> PurchaseLedger:
    """
    Receive a purchase order.

    Each received line goes into the product's lot for lot_date (business
    today by default), a PL- ledger is written, the supplier account is
    debited and the order is marked completed. All of it commits together or
    not at all.
    """
    order = get_purchase_order(purchase_order_id)
    if order.status not in RECEIVABLE_STATUSES:
        raise BusinessRuleViolation(
            f"Purchase order {order.order_number} is {order.status}; only open orders can be received",
            details={"status": order.status},
        )
    lines = _received_lines(order, received_items)
    when = coerce_datetime(received_at, field="received_at") if received_at is not None else utcnow()
    lot_day = coerce_date(lot_date, field="lot_date") if lot_date is not None else to_business_date(when)
    ledger_number = next_document_number("purchase_ledger")

    def _op():
        po = get_purchase_order(purchase_order_id, lock=True)
        if po.status not in RECEIVABLE_STATUSES:
            raise BusinessRuleViolation(
                f"Purchase order {po.order_number} was already {po.status}",
                details={"status": po.status},
            )

        posting_lines = []
        for line in sorted(lines, key=lambda l: l["product_id"]):
            product = lock_for_update(db.session.query(Product).filter_by(id=line["product_id"])).first()
            if product is None:
                raise NotFoundError(f"Product {line['product_id']} not found", details={"product_id": line["product_id"]})
            _receive_lot_inner(product, lot_date=lot_day, quantity=line["quantity"], price=line["unit_price"])
            posting_lines.append(
                PostingLine(
                    product_id=product.id,
                    product_name=product.name,
                    specification=product.specification,
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                )
            )

        ledger = _post_purchase_inner(
            supplier_id=po.supplier_id,
            ledger_number=ledger_number,
            lines=posting_lines,
            amount=sum(l.line_total for l in posting_lines),
            posted_at=when,
            purchase_order_id=po.id,
            lot_date=lot_day,
            created_by=created_by,
        )
        po.status = STATUS_COMPLETED
        po.completed_at = when
        db.session.commit()
        return ledger

    return run_with_retry(_op)
