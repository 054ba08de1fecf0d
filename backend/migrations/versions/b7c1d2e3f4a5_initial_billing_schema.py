"""initial billing schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the billing and inventory-consistency schema:
- categories, products: catalog with on-hand quantity counter
- document_sequences: store-backed document numbering
- invoices, invoice_lines: issued invoices with snapshotted lines
- stock_movements: append-only quantity deltas
- price_history: append-only price audit
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sale_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("location", sa.String(length=128), nullable=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("code"),
        sa.CheckConstraint("purchase_price_cents >= 0", name="ck_products_purchase_price_nonneg"),
        sa.CheckConstraint("sale_price_cents >= 0", name="ck_products_sale_price_nonneg"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_category_id", "products", ["category_id"], unique=False)
    op.create_index("ix_products_active_name", "products", ["is_active", "name"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("prefix", sa.String(length=16), nullable=False),
        sa.Column("include_year", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("pad_width", sa.Integer(), nullable=False, server_default="6"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("document_type", name="uq_document_sequences_type"),
        sa.CheckConstraint("next_number >= 1", name="ck_document_sequences_next_positive"),
        sa.CheckConstraint("pad_width >= 1", name="ck_document_sequences_pad_positive"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_number", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("subtotal_cents", sa.BigInteger(), nullable=False),
        sa.Column("tax_rate_bps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tax_cents", sa.BigInteger(), nullable=False),
        sa.Column("total_cents", sa.BigInteger(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("void_reason", sa.String(length=255), nullable=True),
        sa.Column("voided_by_user_id", sa.Integer(), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("document_number", name="uq_invoices_document_number"),
        sa.CheckConstraint("total_cents = subtotal_cents + tax_cents", name="ck_invoices_total"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoices_user_id", "invoices", ["user_id"], unique=False)
    op.create_index("ix_invoices_status_issued", "invoices", ["status", "issued_at"], unique=False)

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("product_code", sa.String(length=64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("line_total_cents", sa.BigInteger(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"], unique=False)
    op.create_index("ix_invoice_lines_product_id", "invoice_lines", ["product_id"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("movement_type", sa.String(length=16), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"], unique=False)
    op.create_index("ix_stock_movements_invoice_id", "stock_movements", ["invoice_id"], unique=False)
    op.create_index("ix_stock_movements_product_occurred", "stock_movements", ["product_id", "occurred_at"], unique=False)

    op.create_table(
        "price_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("old_purchase_price_cents", sa.Integer(), nullable=False),
        sa.Column("new_purchase_price_cents", sa.Integer(), nullable=False),
        sa.Column("old_sale_price_cents", sa.Integer(), nullable=False),
        sa.Column("new_sale_price_cents", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_price_history_product_id", "price_history", ["product_id"], unique=False)
    op.create_index("ix_price_history_user_id", "price_history", ["user_id"], unique=False)
    op.create_index("ix_price_history_changed_at", "price_history", ["changed_at"], unique=False)
    op.create_index("ix_price_history_product_changed", "price_history", ["product_id", "changed_at"], unique=False)


def downgrade():
    op.drop_table("price_history")
    op.drop_table("stock_movements")
    op.drop_table("invoice_lines")
    op.drop_table("invoices")
    op.drop_table("document_sequences")
    op.drop_table("products")
    op.drop_table("categories")
