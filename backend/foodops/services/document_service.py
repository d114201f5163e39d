# Overview: Daily-reset document numbers (PREFIX-YYMMDD-NNN) allocated atomically per domain.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import TransactionConflictError, ValidationError
from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import business_today, yymmdd
from .concurrency import run_with_retry


DOMAIN_PREFIXES = {
    "purchase_order": "PO",
    "purchase_ledger": "PL",
    "sale_ledger": "SL",
    "sale_order": "SO",
    "supplier_payout": "SP",
    "customer_collection": "CM",
}

# Rounds of update-or-insert before giving up inside a single attempt
_ALLOCATE_ROUNDS = 3


def format_document_number(prefix: str, day: date, number: int) -> str:
    return f"{prefix}-{yymmdd(day)}-{number:03d}"


def _prefix_for(domain: str) -> str:
    prefix = DOMAIN_PREFIXES.get(domain)
    if prefix is None:
        raise ValidationError(
            f"Unknown document domain: {domain}",
            details={"allowed": sorted(DOMAIN_PREFIXES)},
        )
    return prefix


def next_document_number(domain: str, *, today: date | None = None) -> str:
    """
    Atomically allocate the next number for `domain` on the business day.

    Same stored day -> last_number + 1; any other stored day -> 1. Each call
    commits its own transaction, so call it before staging the writes of the
    document that will carry the number. Numbers burned by a failed caller
    leave a gap; they are never handed out twice.
    """
    prefix = _prefix_for(domain)

    def _op() -> str:
        day = today or business_today()

        bump_same_day = (
            update(DocumentSequence)
            .where(DocumentSequence.domain == domain, DocumentSequence.counter_date == day)
            .values(
                last_number=DocumentSequence.last_number + 1,
                version_id=DocumentSequence.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        reset_for_new_day = (
            update(DocumentSequence)
            .where(DocumentSequence.domain == domain, DocumentSequence.counter_date != day)
            .values(
                last_number=1,
                counter_date=day,
                version_id=DocumentSequence.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )

        for _ in range(_ALLOCATE_ROUNDS):
            if db.session.execute(bump_same_day).rowcount:
                break
            if db.session.execute(reset_for_new_day).rowcount:
                break
            db.session.add(DocumentSequence(domain=domain, last_number=1, counter_date=day))
            try:
                db.session.flush()
                break
            except IntegrityError:
                # Another caller created the counter first; go round and bump it
                db.session.rollback()
        else:
            raise TransactionConflictError(f"Could not allocate a {domain} number")

        number = (
            db.session.query(DocumentSequence.last_number)
            .filter(DocumentSequence.domain == domain)
            .scalar()
        )
        db.session.commit()
        return format_document_number(prefix, day, number)

    return run_with_retry(_op)


def get_sequence(domain: str) -> DocumentSequence | None:
    _prefix_for(domain)
    return db.session.query(DocumentSequence).filter_by(domain=domain).first()


def list_sequences() -> list[DocumentSequence]:
    return db.session.query(DocumentSequence).order_by(DocumentSequence.domain.asc()).all()
