from __future__ import annotations

from sqlalchemy import event

from ..errors import BusinessRuleViolation
from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


PAYMENT_METHODS = {"cash", "card", "bank_transfer", "tax_invoice"}
PAYMENT_COMPLETED = "completed"


class PurchaseLedger(db.Model):
    """Immutable record of goods received from a supplier (debit on the supplier account)."""
    __tablename__ = "purchase_ledgers"
    __table_args__ = (
        db.Index("ix_purchase_ledgers_supplier_posted", "supplier_id", "posted_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ledger_number = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, index=True)

    lot_date = db.Column(db.Date, nullable=True)
    total_amount = db.Column(db.BigInteger, nullable=False)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    item_count = db.Column(db.Integer, nullable=False, default=0)

    posted_at = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier")
    items = db.relationship(
        "PurchaseLedgerItem",
        back_populates="ledger",
        order_by="PurchaseLedgerItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "ledger_number": self.ledger_number,
            "supplier_id": self.supplier_id,
            "purchase_order_id": self.purchase_order_id,
            "lot_date": to_iso_date(self.lot_date),
            "total_amount": self.total_amount,
            "total_quantity": self.total_quantity,
            "item_count": self.item_count,
            "posted_at": to_utc_z(self.posted_at),
            "note": self.note,
            "created_by": self.created_by,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseLedgerItem(db.Model):
    __tablename__ = "purchase_ledger_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    ledger_id = db.Column(db.Integer, db.ForeignKey("purchase_ledgers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.BigInteger, nullable=False)
    line_total = db.Column(db.BigInteger, nullable=False)

    ledger = db.relationship("PurchaseLedger", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "specification": self.specification,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }


class SaleLedger(db.Model):
    """Immutable record of goods shipped to a customer (debit on the customer account)."""
    __tablename__ = "sale_ledgers"
    __table_args__ = (
        db.Index("ix_sale_ledgers_customer_posted", "customer_id", "posted_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ledger_number = db.Column(db.String(32), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_order_id = db.Column(db.Integer, db.ForeignKey("sale_orders.id"), nullable=True, index=True)

    total_amount = db.Column(db.BigInteger, nullable=False)
    total_cost = db.Column(db.BigInteger, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    item_count = db.Column(db.Integer, nullable=False, default=0)

    posted_at = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer")
    items = db.relationship(
        "SaleLedgerItem",
        back_populates="ledger",
        order_by="SaleLedgerItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "ledger_number": self.ledger_number,
            "customer_id": self.customer_id,
            "sale_order_id": self.sale_order_id,
            "total_amount": self.total_amount,
            "total_cost": self.total_cost,
            "total_quantity": self.total_quantity,
            "item_count": self.item_count,
            "posted_at": to_utc_z(self.posted_at),
            "note": self.note,
            "created_by": self.created_by,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleLedgerItem(db.Model):
    __tablename__ = "sale_ledger_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    ledger_id = db.Column(db.Integer, db.ForeignKey("sale_ledgers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.BigInteger, nullable=False)
    line_total = db.Column(db.BigInteger, nullable=False)

    # Cost of goods from the lots consumed, oldest first: [{lot_date, quantity, price}]
    cost_amount = db.Column(db.BigInteger, nullable=False, default=0)
    lot_allocations = db.Column(db.JSON, nullable=True)

    ledger = db.relationship("SaleLedger", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "specification": self.specification,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
            "cost_amount": self.cost_amount,
            "lot_allocations": list(self.lot_allocations or []),
        }


class SupplierPayout(db.Model):
    """Money paid to a supplier (credit on the supplier account)."""
    __tablename__ = "supplier_payouts"
    __table_args__ = (
        db.Index("ix_supplier_payouts_supplier_paid", "supplier_id", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payout_number = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    amount = db.Column(db.BigInteger, nullable=False)
    method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_COMPLETED)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)
    memo = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payout_number": self.payout_number,
            "supplier_id": self.supplier_id,
            "amount": self.amount,
            "method": self.method,
            "status": self.status,
            "paid_at": to_utc_z(self.paid_at),
            "memo": self.memo,
            "created_by": self.created_by,
        }


class CustomerCollection(db.Model):
    """Money collected from a customer (credit on the customer account)."""
    __tablename__ = "customer_collections"
    __table_args__ = (
        db.Index("ix_customer_collections_customer_collected", "customer_id", "collected_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    collection_number = db.Column(db.String(32), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    amount = db.Column(db.BigInteger, nullable=False)
    method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_COMPLETED)
    collected_at = db.Column(db.DateTime(timezone=True), nullable=False)
    memo = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "collection_number": self.collection_number,
            "customer_id": self.customer_id,
            "amount": self.amount,
            "method": self.method,
            "status": self.status,
            "collected_at": to_utc_z(self.collected_at),
            "memo": self.memo,
            "created_by": self.created_by,
        }


WRITE_ONCE_MODELS = (
    PurchaseLedger,
    PurchaseLedgerItem,
    SaleLedger,
    SaleLedgerItem,
    SupplierPayout,
    CustomerCollection,
)


def _reject_update(mapper, connection, target):
    raise BusinessRuleViolation(
        f"{type(target).__name__} is write-once; post a correcting entry instead",
        details={"id": target.id},
    )


for _model in WRITE_ONCE_MODELS:
    event.listen(_model, "before_update", _reject_update)
    event.listen(_model, "before_delete", _reject_update)
