from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


STATUS_PLACED = "placed"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_REJECTED = "rejected"
STATUS_PENDED = "pended"
ORDER_STATUSES = {STATUS_PLACED, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_REJECTED, STATUS_PENDED}


class SaleOrder(db.Model):
    """
    Customer order.

    phase and cycle_id are stamped at creation from the cutoff cycle whose
    window contains placed_at. Items carry product snapshots so the order
    still aggregates after its product is deleted.
    """
    __tablename__ = "sale_orders"
    __table_args__ = (
        db.Index("ix_sale_orders_cycle_status", "cycle_id", "status"),
        db.Index("ix_sale_orders_customer_placed", "customer_id", "placed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PLACED, index=True)
    phase = db.Column(db.String(16), nullable=False)
    cycle_id = db.Column(db.Integer, db.ForeignKey("cutoff_cycles.id"), nullable=True)

    placed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    total_amount = db.Column(db.BigInteger, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    item_count = db.Column(db.Integer, nullable=False, default=0)

    pended_reason = db.Column(db.Text, nullable=True)
    warnings = db.Column(db.JSON, nullable=True)
    memo = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)

    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sale_orders", lazy=True))
    cycle = db.relationship("CutoffCycle")
    items = db.relationship(
        "SaleOrderItem",
        back_populates="order",
        order_by="SaleOrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SaleOrder {self.order_number} {self.status} {self.phase}>"

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "status": self.status,
            "phase": self.phase,
            "cycle_id": self.cycle_id,
            "placed_at": to_utc_z(self.placed_at),
            "total_amount": self.total_amount,
            "total_quantity": self.total_quantity,
            "item_count": self.item_count,
            "pended_reason": self.pended_reason,
            "warnings": list(self.warnings or []),
            "memo": self.memo,
            "created_by": self.created_by,
            "confirmed_at": to_utc_z(self.confirmed_at),
            "completed_at": to_utc_z(self.completed_at),
            "rejected_at": to_utc_z(self.rejected_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleOrderItem(db.Model):
    __tablename__ = "sale_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_order_id = db.Column(db.Integer, db.ForeignKey("sale_orders.id"), nullable=False, index=True)

    # No FK: the line outlives its product
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    supplier_id = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.BigInteger, nullable=False)
    line_total = db.Column(db.BigInteger, nullable=False)

    order = db.relationship("SaleOrder", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "specification": self.specification,
            "supplier_id": self.supplier_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }


class PurchaseOrder(db.Model):
    """
    Order to one supplier, either generated from a closed cycle's aggregation
    or entered by hand (cycle_id NULL). One generated order per (cycle, supplier).
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("cycle_id", "supplier_id", name="uq_purchase_orders_cycle_supplier"),
        db.Index("ix_purchase_orders_supplier_placed", "supplier_id", "placed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PLACED, index=True)
    phase = db.Column(db.String(16), nullable=False)
    cycle_id = db.Column(db.Integer, db.ForeignKey("cutoff_cycles.id"), nullable=True)

    placed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    total_amount = db.Column(db.BigInteger, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    item_count = db.Column(db.Integer, nullable=False, default=0)

    memo = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    cycle = db.relationship("CutoffCycle")
    items = db.relationship(
        "PurchaseOrderItem",
        back_populates="order",
        order_by="PurchaseOrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.order_number} {self.status}>"

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "status": self.status,
            "phase": self.phase,
            "cycle_id": self.cycle_id,
            "placed_at": to_utc_z(self.placed_at),
            "total_amount": self.total_amount,
            "total_quantity": self.total_quantity,
            "item_count": self.item_count,
            "memo": self.memo,
            "created_by": self.created_by,
            "completed_at": to_utc_z(self.completed_at),
            "rejected_at": to_utc_z(self.rejected_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.BigInteger, nullable=False)
    line_total = db.Column(db.BigInteger, nullable=False)

    order = db.relationship("PurchaseOrder", back_populates="items")

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
