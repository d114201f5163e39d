# Overview: Write-once postings (ledgers, payouts, collections) paired atomically with account balance updates.

"""
Posting rules

Every posting writes its immutable record AND adjusts the party's Account in
the same transaction; the two are never committed separately.

- Purchase ledger (supplier) / sale ledger (customer): debit
    total_debit_amount += amount, current_balance += amount
- Payout (supplier) / collection (customer): credit
    total_credit_amount += amount, current_balance -= amount

Amounts are non-negative integers. A missing party or account is NotFoundError.
Document numbers are allocated first, in their own transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Account,
    CustomerCollection,
    Product,
    PurchaseLedger,
    PurchaseLedgerItem,
    SaleLedger,
    SaleLedgerItem,
    SupplierPayout,
)
from ..models.ledgers import PAYMENT_COMPLETED, PAYMENT_METHODS
from ..models.parties import PARTY_CUSTOMER, PARTY_SUPPLIER
from ..time_utils import utcnow
from ..validation import (
    coerce_datetime,
    require_choice,
    require_non_negative_amount,
    require_positive_quantity,
)
from .concurrency import run_with_retry
from .document_service import next_document_number
from .party_service import get_account


@dataclass
class PostingLine:
    product_id: int
    product_name: str
    quantity: int
    unit_price: int
    specification: str | None = None
    cost_amount: int = 0
    lot_allocations: list = field(default_factory=list)

    @property
    def line_total(self) -> int:
        return self.quantity * self.unit_price


def build_lines(raw_lines) -> list[PostingLine]:
    """Validate raw {product_id, quantity, unit_price[, product_name, specification]} dicts."""
    if raw_lines is None:
        return []
    if not isinstance(raw_lines, (list, tuple)):
        raise ValidationError("items must be a list")

    lines = []
    for idx, raw in enumerate(raw_lines):
        if isinstance(raw, PostingLine):
            lines.append(raw)
            continue
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        product_id = raw.get("product_id")
        if product_id is None:
            raise ValidationError(f"items[{idx}].product_id is required")
        quantity = require_positive_quantity(raw.get("quantity"), field=f"items[{idx}].quantity")
        unit_price = require_non_negative_amount(raw.get("unit_price"), field=f"items[{idx}].unit_price")

        name = raw.get("product_name")
        specification = raw.get("specification")
        if name is None:
            product = db.session.get(Product, product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
            name = product.name
            specification = specification if specification is not None else product.specification
        lines.append(
            PostingLine(
                product_id=product_id,
                product_name=name,
                specification=specification,
                quantity=quantity,
                unit_price=unit_price,
            )
        )
    return lines


def _posting_amount(lines: list[PostingLine], amount) -> int:
    if lines:
        total = sum(line.line_total for line in lines)
        if amount is not None and require_non_negative_amount(amount) != total:
            raise ValidationError(
                "amount does not match the sum of line totals",
                details={"amount": amount, "line_total": total},
            )
        return total
    if amount is None:
        raise ValidationError("Either items or amount is required")
    return require_non_negative_amount(amount)


def _posted_at(value) -> datetime:
    if value is None:
        return utcnow()
    return coerce_datetime(value, field="posted_at")


# =============================================================================
# Account arithmetic
# =============================================================================

def _latest(current: datetime | None, when: datetime) -> datetime:
    if current is None or when > current:
        return when
    return current


def apply_debit(account: Account, amount: int, when: datetime) -> None:
    account.total_debit_amount += amount
    account.current_balance += amount
    account.transaction_count += 1
    account.last_transaction_at = _latest(account.last_transaction_at, when)


def apply_credit(account: Account, amount: int, when: datetime) -> None:
    account.total_credit_amount += amount
    account.current_balance -= amount
    account.transaction_count += 1
    account.last_transaction_at = _latest(account.last_transaction_at, when)
    account.last_payment_at = _latest(account.last_payment_at, when)


# =============================================================================
# Inner posting helpers (no retry, no commit)
# =============================================================================

def _post_purchase_inner(
    *,
    supplier_id: int,
    ledger_number: str,
    lines: list[PostingLine],
    amount: int,
    posted_at: datetime,
    purchase_order_id: int | None = None,
    lot_date: date | None = None,
    note: str | None = None,
    created_by: str | None = None,
) -> PurchaseLedger:
    account = get_account(PARTY_SUPPLIER, supplier_id, lock=True)
    ledger = PurchaseLedger(
        ledger_number=ledger_number,
        supplier_id=supplier_id,
        purchase_order_id=purchase_order_id,
        lot_date=lot_date,
        total_amount=amount,
        total_quantity=sum(line.quantity for line in lines),
        item_count=len(lines),
        posted_at=posted_at,
        note=note,
        created_by=created_by,
    )
    for line in lines:
        ledger.items.append(
            PurchaseLedgerItem(
                product_id=line.product_id,
                product_name=line.product_name,
                specification=line.specification,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
        )
    db.session.add(ledger)
    apply_debit(account, amount, posted_at)
    db.session.flush()
    return ledger


def _post_sale_inner(
    *,
    customer_id: int,
    ledger_number: str,
    lines: list[PostingLine],
    amount: int,
    posted_at: datetime,
    sale_order_id: int | None = None,
    note: str | None = None,
    created_by: str | None = None,
) -> SaleLedger:
    account = get_account(PARTY_CUSTOMER, customer_id, lock=True)
    ledger = SaleLedger(
        ledger_number=ledger_number,
        customer_id=customer_id,
        sale_order_id=sale_order_id,
        total_amount=amount,
        total_cost=sum(line.cost_amount for line in lines),
        total_quantity=sum(line.quantity for line in lines),
        item_count=len(lines),
        posted_at=posted_at,
        note=note,
        created_by=created_by,
    )
    for line in lines:
        ledger.items.append(
            SaleLedgerItem(
                product_id=line.product_id,
                product_name=line.product_name,
                specification=line.specification,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
                cost_amount=line.cost_amount,
                lot_allocations=list(line.lot_allocations),
            )
        )
    db.session.add(ledger)
    apply_debit(account, amount, posted_at)
    db.session.flush()
    return ledger


# =============================================================================
# Public postings
# =============================================================================

def post_purchase(
    supplier_id: int,
    items=None,
    *,
    amount=None,
    posted_at=None,
    purchase_order_id: int | None = None,
    lot_date: date | None = None,
    note: str | None = None,
    created_by: str | None = None,
) -> PurchaseLedger:
    """Debit the supplier account with a purchase ledger (itemised or lump-sum)."""
    lines = build_lines(items)
    total = _posting_amount(lines, amount)
    when = _posted_at(posted_at)
    get_account(PARTY_SUPPLIER, supplier_id)
    ledger_number = next_document_number("purchase_ledger")

    def _op():
        ledger = _post_purchase_inner(
            supplier_id=supplier_id,
            ledger_number=ledger_number,
            lines=lines,
            amount=total,
            posted_at=when,
            purchase_order_id=purchase_order_id,
            lot_date=lot_date,
            note=note,
            created_by=created_by,
        )
        db.session.commit()
        return ledger

    return run_with_retry(_op)


def post_sale(
    customer_id: int,
    items=None,
    *,
    amount=None,
    posted_at=None,
    sale_order_id: int | None = None,
    note: str | None = None,
    created_by: str | None = None,
) -> SaleLedger:
    """Debit the customer account with a sale ledger (itemised or lump-sum)."""
    lines = build_lines(items)
    total = _posting_amount(lines, amount)
    when = _posted_at(posted_at)
    get_account(PARTY_CUSTOMER, customer_id)
    ledger_number = next_document_number("sale_ledger")

    def _op():
        ledger = _post_sale_inner(
            customer_id=customer_id,
            ledger_number=ledger_number,
            lines=lines,
            amount=total,
            posted_at=when,
            sale_order_id=sale_order_id,
            note=note,
            created_by=created_by,
        )
        db.session.commit()
        return ledger

    return run_with_retry(_op)


def post_payout(
    supplier_id: int,
    amount,
    *,
    method: str = "bank_transfer",
    paid_at=None,
    memo: str | None = None,
    created_by: str | None = None,
) -> SupplierPayout:
    """Credit the supplier account with a completed payout."""
    amount = require_non_negative_amount(amount)
    require_choice(method, PAYMENT_METHODS, field="method")
    when = _posted_at(paid_at)
    get_account(PARTY_SUPPLIER, supplier_id)
    payout_number = next_document_number("supplier_payout")

    def _op():
        account = get_account(PARTY_SUPPLIER, supplier_id, lock=True)
        payout = SupplierPayout(
            payout_number=payout_number,
            supplier_id=supplier_id,
            amount=amount,
            method=method,
            status=PAYMENT_COMPLETED,
            paid_at=when,
            memo=memo,
            created_by=created_by,
        )
        db.session.add(payout)
        apply_credit(account, amount, when)
        db.session.commit()
        return payout

    return run_with_retry(_op)


def post_collection(
    customer_id: int,
    amount,
    *,
    method: str = "bank_transfer",
    collected_at=None,
    memo: str | None = None,
    created_by: str | None = None,
) -> CustomerCollection:
    """Credit the customer account with a completed collection."""
    amount = require_non_negative_amount(amount)
    require_choice(method, PAYMENT_METHODS, field="method")
    when = _posted_at(collected_at)
    get_account(PARTY_CUSTOMER, customer_id)
    collection_number = next_document_number("customer_collection")

    def _op():
        account = get_account(PARTY_CUSTOMER, customer_id, lock=True)
        collection = CustomerCollection(
            collection_number=collection_number,
            customer_id=customer_id,
            amount=amount,
            method=method,
            status=PAYMENT_COMPLETED,
            collected_at=when,
            memo=memo,
            created_by=created_by,
        )
        db.session.add(collection)
        apply_credit(account, amount, when)
        db.session.commit()
        return collection

    return run_with_retry(_op)


# =============================================================================
# Reads
# =============================================================================

def _in_range(query, column, start, end):
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column <= end)
    return query


def list_purchase_ledgers(*, supplier_id: int | None = None, start=None, end=None, limit: int = 200):
    q = db.session.query(PurchaseLedger)
    if supplier_id:
        q = q.filter(PurchaseLedger.supplier_id == supplier_id)
    q = _in_range(q, PurchaseLedger.posted_at, start, end)
    return q.order_by(PurchaseLedger.posted_at.desc(), PurchaseLedger.id.desc()).limit(limit).all()


def list_sale_ledgers(*, customer_id: int | None = None, start=None, end=None, limit: int = 200):
    q = db.session.query(SaleLedger)
    if customer_id:
        q = q.filter(SaleLedger.customer_id == customer_id)
    q = _in_range(q, SaleLedger.posted_at, start, end)
    return q.order_by(SaleLedger.posted_at.desc(), SaleLedger.id.desc()).limit(limit).all()


def list_payouts(*, supplier_id: int | None = None, start=None, end=None, limit: int = 200):
    q = db.session.query(SupplierPayout)
    if supplier_id:
        q = q.filter(SupplierPayout.supplier_id == supplier_id)
    q = _in_range(q, SupplierPayout.paid_at, start, end)
    return q.order_by(SupplierPayout.paid_at.desc(), SupplierPayout.id.desc()).limit(limit).all()


def list_collections(*, customer_id: int | None = None, start=None, end=None, limit: int = 200):
    q = db.session.query(CustomerCollection)
    if customer_id:
        q = q.filter(CustomerCollection.customer_id == customer_id)
    q = _in_range(q, CustomerCollection.collected_at, start, end)
    return q.order_by(CustomerCollection.collected_at.desc(), CustomerCollection.id.desc()).limit(limit).all()


LEDGER_KINDS = {
    "purchase": PurchaseLedger,
    "sale": SaleLedger,
    "payout": SupplierPayout,
    "collection": CustomerCollection,
}


def get_posting(kind: str, posting_id: int):
    require_choice(kind, LEDGER_KINDS, field="kind")
    posting = db.session.get(LEDGER_KINDS[kind], posting_id)
    if posting is None:
        raise NotFoundError(f"{kind} posting {posting_id} not found")
    return posting
