from __future__ import annotations

import enum

from ..extensions import db
from stockbill.time_utils import to_utc_z


class InvoiceStatus(str, enum.Enum):
    ISSUED = "ISSUED"
    VOIDED = "VOIDED"


class Invoice(db.Model):
    """
    Issued invoice header.

    Amounts are in minor units. total_cents = subtotal_cents + tax_cents is
    computed once at issuance and never edited. Status moves ISSUED -> VOIDED
    exactly once; version_id guards that transition against concurrent voids.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_invoices_document_number"),
        db.CheckConstraint("total_cents = subtotal_cents + tax_cents", name="ck_invoices_total"),
        db.Index("ix_invoices_status_issued", "status", "issued_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "FAC-2026-000001")
    document_number = db.Column(db.String(64), nullable=False)

    user_id = db.Column(db.Integer, nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    subtotal_cents = db.Column(db.BigInteger, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.BigInteger, nullable=False)
    total_cents = db.Column(db.BigInteger, nullable=False)

    notes = db.Column(db.Text, nullable=True)

    status = db.Column(
        db.Enum(InvoiceStatus, name="invoice_status", native_enum=False, length=16),
        nullable=False,
        default=InvoiceStatus.ISSUED,
    )

    # Void audit trail
    void_reason = db.Column(db.String(255), nullable=True)
    voided_by_user_id = db.Column(db.Integer, nullable=True)

    issued_at = db.Column(db.DateTime(timezone=True), nullable=False)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "InvoiceLine",
        back_populates="invoice",
        order_by="InvoiceLine.id",
        lazy="select",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def tax_percent(self) -> float:
        return self.tax_rate_bps / 100

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "document_number": self.document_number,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "subtotal_cents": self.subtotal_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_percent": self.tax_percent,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "notes": self.notes,
            "status": self.status.value,
            "void_reason": self.void_reason,
            "voided_by_user_id": self.voided_by_user_id,
            "issued_at": to_utc_z(self.issued_at),
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """Line item owned by an invoice. Product name/code/price are snapshots."""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_code = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.BigInteger, nullable=False)

    invoice = db.relationship("Invoice", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_code": self.product_code,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
