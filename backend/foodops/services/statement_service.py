# Overview: Account statements replayed from postings, and account balance verification.

"""
Statement algorithm

1. opening = sum(ledger totals before start) - sum(completed payments before start)
2. entries = ledgers and completed payments with start <= date <= end
3. sort by date; ties put debits before credits, then by id
4. replay from opening: running = running + debit - credit
5. closing = opening + total_debit - total_credit

Supplier: debit = purchase ledgers, credit = payouts.
Customer: debit = sale ledgers, credit = collections.
Statements are derived on demand and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import CustomerCollection, PurchaseLedger, SaleLedger, SupplierPayout
from ..models.ledgers import PAYMENT_COMPLETED
from ..models.parties import PARTY_CUSTOMER, PARTY_SUPPLIER, PARTY_TYPES
from ..time_utils import to_utc_z
from ..validation import require_choice, require_period
from .party_service import get_account, get_party


@dataclass
class StatementEntry:
    date: datetime
    type: str
    reference: str
    debit: int = 0
    credit: int = 0
    running_balance: int = 0
    source_id: int | None = None
    description: str | None = None

    def to_dict(self) -> dict:
        return {
            "date": to_utc_z(self.date),
            "type": self.type,
            "reference": self.reference,
            "debit": self.debit,
            "credit": self.credit,
            "running_balance": self.running_balance,
            "source_id": self.source_id,
            "description": self.description,
        }


@dataclass
class Statement:
    party_type: str
    party_id: int
    party_name: str
    period_start: datetime
    period_end: datetime
    opening_balance: int
    entries: list[StatementEntry] = field(default_factory=list)
    total_debit: int = 0
    total_credit: int = 0
    closing_balance: int = 0

    def to_dict(self) -> dict:
        return {
            "party_type": self.party_type,
            "party_id": self.party_id,
            "party_name": self.party_name,
            "period_start": to_utc_z(self.period_start),
            "period_end": to_utc_z(self.period_end),
            "opening_balance": self.opening_balance,
            "entries": [entry.to_dict() for entry in self.entries],
            "total_debit": self.total_debit,
            "total_credit": self.total_credit,
            "closing_balance": self.closing_balance,
        }


@dataclass(frozen=True)
class _Sources:
    ledger: type
    ledger_party_col: object
    debit_type: str
    payment: type
    payment_party_col: object
    payment_date_col: object
    payment_number_attr: str
    credit_type: str


_SOURCES = {
    PARTY_SUPPLIER: _Sources(
        ledger=PurchaseLedger,
        ledger_party_col=PurchaseLedger.supplier_id,
        debit_type="purchase",
        payment=SupplierPayout,
        payment_party_col=SupplierPayout.supplier_id,
        payment_date_col=SupplierPayout.paid_at,
        payment_number_attr="payout_number",
        credit_type="payout",
    ),
    PARTY_CUSTOMER: _Sources(
        ledger=SaleLedger,
        ledger_party_col=SaleLedger.customer_id,
        debit_type="sale",
        payment=CustomerCollection,
        payment_party_col=CustomerCollection.customer_id,
        payment_date_col=CustomerCollection.collected_at,
        payment_number_attr="collection_number",
        credit_type="collection",
    ),
}


def _debit_sum(src: _Sources, party_id: int, *, before: datetime | None = None) -> int:
    q = db.session.query(func.coalesce(func.sum(src.ledger.total_amount), 0)).filter(src.ledger_party_col == party_id)
    if before is not None:
        q = q.filter(src.ledger.posted_at < before)
    return int(q.scalar() or 0)


def _credit_sum(src: _Sources, party_id: int, *, before: datetime | None = None) -> int:
    q = (
        db.session.query(func.coalesce(func.sum(src.payment.amount), 0))
        .filter(src.payment_party_col == party_id, src.payment.status == PAYMENT_COMPLETED)
    )
    if before is not None:
        q = q.filter(src.payment_date_col < before)
    return int(q.scalar() or 0)


_DEBIT_TYPES = {"purchase", "sale"}


def _sort_key(entry: StatementEntry):
    return (entry.date, 0 if entry.type in _DEBIT_TYPES else 1, entry.source_id or 0)


def generate_statement(party_type: str, party_id: int, period_start, period_end) -> Statement:
    require_choice(party_type, PARTY_TYPES, field="party_type")
    start, end = require_period(period_start, period_end)
    party = get_party(party_type, party_id)
    get_account(party_type, party_id)
    src = _SOURCES[party_type]

    opening = _debit_sum(src, party_id, before=start) - _credit_sum(src, party_id, before=start)

    entries: list[StatementEntry] = []
    ledgers = (
        db.session.query(src.ledger)
        .filter(src.ledger_party_col == party_id, src.ledger.posted_at >= start, src.ledger.posted_at <= end)
        .all()
    )
    for ledger in ledgers:
        entries.append(
            StatementEntry(
                date=ledger.posted_at,
                type=src.debit_type,
                reference=ledger.ledger_number,
                debit=ledger.total_amount,
                source_id=ledger.id,
                description=f"{ledger.item_count} item(s)",
            )
        )

    payments = (
        db.session.query(src.payment)
        .filter(
            src.payment_party_col == party_id,
            src.payment.status == PAYMENT_COMPLETED,
            src.payment_date_col >= start,
            src.payment_date_col <= end,
        )
        .all()
    )
    for payment in payments:
        entries.append(
            StatementEntry(
                date=getattr(payment, src.payment_date_col.key),
                type=src.credit_type,
                reference=getattr(payment, src.payment_number_attr),
                credit=payment.amount,
                source_id=payment.id,
                description=payment.method,
            )
        )

    entries.sort(key=_sort_key)

    running = opening
    for entry in entries:
        running = running + entry.debit - entry.credit
        entry.running_balance = running

    total_debit = sum(entry.debit for entry in entries)
    total_credit = sum(entry.credit for entry in entries)
    return Statement(
        party_type=party_type,
        party_id=party_id,
        party_name=party.name,
        period_start=start,
        period_end=end,
        opening_balance=opening,
        entries=entries,
        total_debit=total_debit,
        total_credit=total_credit,
        closing_balance=opening + total_debit - total_credit,
    )


def verify_account(party_type: str, party_id: int) -> dict:
    """Recompute the balance from every posting and compare it with the account cache."""
    require_choice(party_type, PARTY_TYPES, field="party_type")
    account = get_account(party_type, party_id)
    src = _SOURCES[party_type]

    debit = _debit_sum(src, party_id)
    credit = _credit_sum(src, party_id)
    expected = debit - credit
    in_sync = (
        expected == account.current_balance
        and debit == account.total_debit_amount
        and credit == account.total_credit_amount
    )
    if not in_sync:
        current_app.logger.warning(
            "Account %s:%s out of sync: recorded=%s expected=%s",
            party_type,
            party_id,
            account.current_balance,
            expected,
        )
    return {
        "party_type": party_type,
        "party_id": party_id,
        "expected": expected,
        "recorded": account.current_balance,
        "expected_debit": debit,
        "recorded_debit": account.total_debit_amount,
        "expected_credit": credit,
        "recorded_credit": account.total_credit_amount,
        "in_sync": in_sync,
    }
