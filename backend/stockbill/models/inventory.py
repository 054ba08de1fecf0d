from __future__ import annotations

import enum

from ..extensions import db
from stockbill.time_utils import to_utc_z


class Category(db.Model):
    """Product category. Managed by the catalog layer; referenced, never owned."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "is_active": self.is_active}


class Product(db.Model):
    """
    Product master data.

    Prices are stored in minor units (cents). quantity is the authoritative
    on-hand counter and is only mutated through the stock ledger
    (stock_service.increase / decrease) or the catalog update path.

    Products are soft-deleted (is_active=False) and never hard-deleted while
    invoice lines, stock movements or price history reference them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("purchase_price_cents >= 0", name="ck_products_purchase_price_nonneg"),
        db.CheckConstraint("sale_price_cents >= 0", name="ck_products_sale_price_nonneg"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=10)
    location = db.Column(db.String(128), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category")

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "purchase_price_cents": self.purchase_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "location": self.location,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "is_active": self.is_active,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class MovementType(str, enum.Enum):
    INVOICE_ISSUE = "INVOICE_ISSUE"
    INVOICE_VOID = "INVOICE_VOID"
    MANUAL_IN = "MANUAL_IN"
    MANUAL_OUT = "MANUAL_OUT"


class StockMovement(db.Model):
    """
    Append-only record of every on-hand quantity change.

    Written in the same transaction as the quantity delta it describes.
    quantity_delta is signed: negative for exits, positive for entries.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    movement_type = db.Column(
        db.Enum(MovementType, name="stock_movement_type", native_enum=False, length=16),
        nullable=False,
    )
    quantity_delta = db.Column(db.Integer, nullable=False)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type.value,
            "quantity_delta": self.quantity_delta,
            "invoice_id": self.invoice_id,
            "user_id": self.user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
