from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PARTY_SUPPLIER = "supplier"
PARTY_CUSTOMER = "customer"
PARTY_TYPES = {PARTY_SUPPLIER, PARTY_CUSTOMER}


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    business_number = db.Column(db.String(32), nullable=True, unique=True)
    representative = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    # Phone numbers that receive purchase orders; dispatch happens outside this system
    sms_recipients = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "business_number": self.business_number,
            "representative": self.representative,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "sms_recipients": list(self.sms_recipients or []),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    business_number = db.Column(db.String(32), nullable=True, unique=True)
    representative = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "business_number": self.business_number,
            "representative": self.representative,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Account(db.Model):
    """
    Running balance per supplier or customer.

    current_balance is a cache of (sum of ledger postings) - (sum of completed
    payouts/collections). It is only ever changed in the same transaction that
    writes the posting it reflects; statement_service.verify_account is the
    one place it gets recomputed.

    Debit side: purchase ledgers (supplier) / sale ledgers (customer).
    Credit side: payouts (supplier) / collections (customer).
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("party_type", "party_id", name="uq_accounts_party"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    party_type = db.Column(db.String(16), nullable=False)  # supplier | customer
    party_id = db.Column(db.Integer, nullable=False, index=True)

    total_debit_amount = db.Column(db.BigInteger, nullable=False, default=0)
    total_credit_amount = db.Column(db.BigInteger, nullable=False, default=0)
    current_balance = db.Column(db.BigInteger, nullable=False, default=0)
    transaction_count = db.Column(db.Integer, nullable=False, default=0)

    last_transaction_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_payment_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Account {self.party_type}:{self.party_id} balance={self.current_balance}>"

    def to_dict(self) -> dict:
        if self.party_type == PARTY_SUPPLIER:
            debit_key, credit_key = "total_purchase_amount", "total_paid_amount"
        else:
            debit_key, credit_key = "total_sale_amount", "total_collected_amount"
        return {
            "id": self.id,
            "party_type": self.party_type,
            "party_id": self.party_id,
            debit_key: self.total_debit_amount,
            credit_key: self.total_credit_amount,
            "current_balance": self.current_balance,
            "transaction_count": self.transaction_count,
            "last_transaction_at": to_utc_z(self.last_transaction_at),
            "last_payment_at": to_utc_z(self.last_payment_at),
            "version_id": self.version_id,
        }
