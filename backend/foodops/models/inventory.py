from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


UNCLASSIFIED_CATEGORY = "unclassified"


class Product(db.Model):
    """
    Product master data plus its derived stock fields.

    stock_quantity always equals the sum of the lots' remaining stock, and
    latest_purchase_price is the price of the newest lot that still has stock.
    Both are maintained only by inventory_service; version_id makes every
    lot write a compare-and-set on this row.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_supplier", "main_category", "supplier_id"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    unit = db.Column(db.String(32), nullable=True)
    main_category = db.Column(db.String(64), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    # Standard prices; purchase_price wins over latest_purchase_price in purchasing views
    purchase_price = db.Column(db.BigInteger, nullable=True)
    sale_price = db.Column(db.BigInteger, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    minimum_stock = db.Column(db.Integer, nullable=False, default=0)
    latest_purchase_price = db.Column(db.BigInteger, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    lots = db.relationship(
        "ProductLot",
        back_populates="product",
        order_by="ProductLot.lot_date",
        cascade="save-update, merge",
        passive_deletes="all",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    @property
    def category(self) -> str:
        return self.main_category or UNCLASSIFIED_CATEGORY

    def to_dict(self, *, include_lots: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "specification": self.specification,
            "unit": self.unit,
            "main_category": self.main_category,
            "supplier_id": self.supplier_id,
            "purchase_price": self.purchase_price,
            "sale_price": self.sale_price,
            "stock_quantity": self.stock_quantity,
            "minimum_stock": self.minimum_stock,
            "latest_purchase_price": self.latest_purchase_price,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lots:
            data["lots"] = [lot.to_dict() for lot in self.lots]
        return data


class ProductLot(db.Model):
    """
    One receipt batch of a product, keyed by calendar day.

    Receipts on the same lot_date merge into one lot. Lots are never deleted:
    a lot consumed down to stock=0 stays for history.
    """
    __tablename__ = "product_lots"
    __table_args__ = (
        db.UniqueConstraint("product_id", "lot_date", name="uq_product_lots_product_date"),
        db.CheckConstraint("stock >= 0", name="ck_product_lots_stock_non_negative"),
        db.CheckConstraint("stock <= quantity", name="ck_product_lots_stock_le_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    lot_date = db.Column(db.Date, nullable=False)

    quantity = db.Column(db.Integer, nullable=False)  # total received on lot_date
    stock = db.Column(db.Integer, nullable=False)  # remaining
    price = db.Column(db.BigInteger, nullable=False)  # last receipt price wins

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="lots")

    def __repr__(self) -> str:
        return f"<ProductLot product={self.product_id} date={self.lot_date} stock={self.stock}/{self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "lot_date": to_iso_date(self.lot_date),
            "quantity": self.quantity,
            "stock": self.stock,
            "price": self.price,
            "is_exhausted": self.stock == 0,
        }
