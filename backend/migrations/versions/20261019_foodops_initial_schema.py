"""Initial foodops schema: parties, accounts, lot inventory, cutoff cycles, orders, ledgers, sequences

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def _party_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("business_number", sa.String(32), nullable=True),
        sa.Column("representative", sa.String(128), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
    ]


def upgrade():
    op.create_table(
        "suppliers",
        *_party_columns(),
        sa.Column("sms_recipients", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("business_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_suppliers_active_name", "suppliers", ["is_active", "name"], unique=False)

    op.create_table(
        "customers",
        *_party_columns(),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("business_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customers_active_name", "customers", ["is_active", "name"], unique=False)

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("party_type", sa.String(16), nullable=False),
        sa.Column("party_id", sa.Integer(), nullable=False),
        sa.Column("total_debit_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_credit_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_balance", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_transaction_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("party_type", "party_id", name="uq_accounts_party"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_accounts_party_id", "accounts", ["party_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("unit", sa.String(32), nullable=True),
        sa.Column("main_category", sa.String(64), nullable=True),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("purchase_price", sa.BigInteger(), nullable=True),
        sa.Column("sale_price", sa.BigInteger(), nullable=True),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("minimum_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("latest_purchase_price", sa.BigInteger(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_main_category", ["main_category"], unique=False)
        batch_op.create_index("ix_products_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_products_category_supplier", ["main_category", "supplier_id"], unique=False)
        batch_op.create_index("ix_products_active_name", ["is_active", "name"], unique=False)

    op.create_table(
        "product_lots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("lot_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "lot_date", name="uq_product_lots_product_date"),
        sa.CheckConstraint("stock >= 0", name="ck_product_lots_stock_non_negative"),
        sa.CheckConstraint("stock <= quantity", name="ck_product_lots_stock_le_quantity"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_lots_product_id", "product_lots", ["product_id"], unique=False)

    op.create_table(
        "cutoff_cycles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("phase", sa.String(16), nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(128), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sequence", name="uq_cutoff_cycles_sequence"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("cutoff_cycles", schema=None) as batch_op:
        batch_op.create_index("ix_cutoff_cycles_status", ["status"], unique=False)
        batch_op.create_index("ix_cutoff_cycles_window", ["opened_at", "closed_at"], unique=False)

    op.create_table(
        "sale_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("phase", sa.String(16), nullable=False),
        sa.Column("cycle_id", sa.Integer(), nullable=True),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("pended_reason", sa.Text(), nullable=True),
        sa.Column("warnings", sa.JSON(), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["cycle_id"], ["cutoff_cycles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_orders", schema=None) as batch_op:
        batch_op.create_index("ix_sale_orders_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sale_orders_status", ["status"], unique=False)
        batch_op.create_index("ix_sale_orders_placed_at", ["placed_at"], unique=False)
        batch_op.create_index("ix_sale_orders_cycle_status", ["cycle_id", "status"], unique=False)
        batch_op.create_index("ix_sale_orders_customer_placed", ["customer_id", "placed_at"], unique=False)

    op.create_table(
        "sale_order_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_order_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.BigInteger(), nullable=False),
        sa.Column("line_total", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["sale_order_id"], ["sale_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_sale_order_items_quantity_positive"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_order_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_order_items_sale_order_id", ["sale_order_id"], unique=False)
        batch_op.create_index("ix_sale_order_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("phase", sa.String(16), nullable=False),
        sa.Column("cycle_id", sa.Integer(), nullable=True),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["cycle_id"], ["cutoff_cycles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_number"),
        sa.UniqueConstraint("cycle_id", "supplier_id", name="uq_purchase_orders_cycle_supplier"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_orders", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_orders_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_purchase_orders_status", ["status"], unique=False)
        batch_op.create_index("ix_purchase_orders_placed_at", ["placed_at"], unique=False)
        batch_op.create_index("ix_purchase_orders_supplier_placed", ["supplier_id", "placed_at"], unique=False)

    op.create_table(
        "purchase_order_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.BigInteger(), nullable=False),
        sa.Column("line_total", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_purchase_order_items_quantity_positive"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_order_items", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_order_items_purchase_order_id", ["purchase_order_id"], unique=False)
        batch_op.create_index("ix_purchase_order_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "purchase_ledgers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ledger_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_id", sa.Integer(), nullable=True),
        sa.Column("lot_date", sa.Date(), nullable=True),
        sa.Column("total_amount", sa.BigInteger(), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ledger_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_ledgers", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_ledgers_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_purchase_ledgers_purchase_order_id", ["purchase_order_id"], unique=False)
        batch_op.create_index("ix_purchase_ledgers_supplier_posted", ["supplier_id", "posted_at"], unique=False)

    op.create_table(
        "purchase_ledger_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ledger_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.BigInteger(), nullable=False),
        sa.Column("line_total", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["ledger_id"], ["purchase_ledgers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_ledger_items", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_ledger_items_ledger_id", ["ledger_id"], unique=False)
        batch_op.create_index("ix_purchase_ledger_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "sale_ledgers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ledger_number", sa.String(32), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("sale_order_id", sa.Integer(), nullable=True),
        sa.Column("total_amount", sa.BigInteger(), nullable=False),
        sa.Column("total_cost", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["sale_order_id"], ["sale_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ledger_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_ledgers", schema=None) as batch_op:
        batch_op.create_index("ix_sale_ledgers_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sale_ledgers_sale_order_id", ["sale_order_id"], unique=False)
        batch_op.create_index("ix_sale_ledgers_customer_posted", ["customer_id", "posted_at"], unique=False)

    op.create_table(
        "sale_ledger_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ledger_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("specification", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.BigInteger(), nullable=False),
        sa.Column("line_total", sa.BigInteger(), nullable=False),
        sa.Column("cost_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("lot_allocations", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["ledger_id"], ["sale_ledgers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_ledger_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_ledger_items_ledger_id", ["ledger_id"], unique=False)
        batch_op.create_index("ix_sale_ledger_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "supplier_payouts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("payout_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("method", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payout_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("supplier_payouts", schema=None) as batch_op:
        batch_op.create_index("ix_supplier_payouts_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_supplier_payouts_supplier_paid", ["supplier_id", "paid_at"], unique=False)

    op.create_table(
        "customer_collections",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("collection_number", sa.String(32), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("method", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("collected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("collection_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customer_collections", schema=None) as batch_op:
        batch_op.create_index("ix_customer_collections_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_customer_collections_customer_collected", ["customer_id", "collected_at"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("domain", sa.String(32), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("counter_date", sa.Date(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("domain", name="uq_doc_sequences_domain"),
        sqlite_autoincrement=True,
    )


def downgrade():
    for table in (
        "document_sequences",
        "customer_collections",
        "supplier_payouts",
        "sale_ledger_items",
        "sale_ledgers",
        "purchase_ledger_items",
        "purchase_ledgers",
        "purchase_order_items",
        "purchase_orders",
        "sale_order_items",
        "sale_orders",
        "cutoff_cycles",
        "product_lots",
        "products",
        "accounts",
        "customers",
        "suppliers",
    ):
        op.drop_table(table)
