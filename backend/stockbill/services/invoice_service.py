"""
Invoice Service - issuance and voiding

Issuing turns a cart into a persisted invoice, consumes one document number
and decrements stock. Voiding is its exact inverse on stock and flips the
status once. Both run as a single unit of work: any failure rolls back
the number, the header, the lines and every stock delta together.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import DocumentType, Invoice, InvoiceLine, InvoiceStatus, MovementType, Product
from ..validation import (
    AlreadyVoidedError,
    InvoiceNotFoundError,
    ProductNotFoundError,
    ValidationError,
    parse_tax_rate_bps,
    validate_invoice_items,
    validate_optional_text,
)
from stockbill.time_utils import day_bounds, utcnow
from . import sequence_service, stock_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry, unit_of_work


def compute_tax_cents(subtotal_cents: int, tax_rate_bps: int) -> int:
    """
    Tax in minor units, rounded half-up.

    333 at 19% -> 63.27 -> 63; 250 at 1% -> 2.5 -> 3.
    """
    if subtotal_cents < 0 or tax_rate_bps < 0:
        raise ValidationError("subtotal and tax rate must be non-negative")
    return (subtotal_cents * tax_rate_bps + 5000) // 10000


def _load_products(product_ids: set[int]) -> dict[int, Product]:
    products = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    by_id = {p.id: p for p in products}

    missing = sorted(product_ids - by_id.keys())
    if missing:
        raise ProductNotFoundError(
            f"Product {missing[0]} not found",
            details={"product_ids": missing},
        )

    inactive = sorted(pid for pid, p in by_id.items() if not p.is_active)
    if inactive:
        raise ProductNotFoundError(
            f"Product {inactive[0]} is inactive",
            details={"product_ids": inactive, "inactive": True},
        )
    return by_id


def _price_lines(items: list[dict], products: dict[int, Product]) -> tuple[list[dict], int]:
    priced = []
    subtotal = 0
    for item in items:
        product = products[item["product_id"]]
        line_total = product.sale_price_cents * item["quantity"]
        subtotal += line_total
        priced.append({
            "product_id": product.id,
            "product_name": product.name,
            "product_code": product.code,
            "quantity": item["quantity"],
            "unit_price_cents": product.sale_price_cents,
            "line_total_cents": line_total,
        })
    return priced, subtotal


def issue_invoice(
    *,
    user_id: int,
    items,
    tax_percent=None,
    notes: str | None = None,
    customer_name: str | None = None,
) -> Invoice:
    """
    Issue an invoice from a cart of {product_id, quantity} items.

    Input is validated before any transaction begins (EmptyCartError,
    ValidationError). Inside the transaction: price the lines from current
    sale prices, compute tax, allocate the document number, persist header
    and lines, and decrement stock. Raises ProductNotFoundError,
    ConfigurationMissingError, InsufficientStockError or StorageError; in
    every failure case nothing is written.
    """
    cleaned_items = validate_invoice_items(items)
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise ValidationError("user_id must be a positive integer")

    if tax_percent is None:
        tax_percent = current_app.config.get("INVOICE_DEFAULT_TAX_PERCENT", "19")
    tax_rate_bps = parse_tax_rate_bps(tax_percent)

    notes = validate_optional_text("notes", notes, 2000)
    customer_name = validate_optional_text("customer_name", customer_name, 255)
    if not customer_name:
        customer_name = current_app.config.get("INVOICE_DEFAULT_CUSTOMER_NAME", "General Customer")

    allow_negative = bool(current_app.config.get("STOCK_ALLOW_NEGATIVE", False))

    def _op() -> Invoice:
        with unit_of_work():
            begin_write_transaction()

            products = _load_products({item["product_id"] for item in cleaned_items})
            priced_lines, subtotal = _price_lines(cleaned_items, products)

            tax_cents = compute_tax_cents(subtotal, tax_rate_bps)
            total = subtotal + tax_cents

            now = utcnow()
            document_number = sequence_service.allocate_next(DocumentType.INVOICE, now=now)

            invoice = Invoice(
                document_number=document_number,
                user_id=user_id,
                customer_name=customer_name,
                subtotal_cents=subtotal,
                tax_rate_bps=tax_rate_bps,
                tax_cents=tax_cents,
                total_cents=total,
                notes=notes,
                status=InvoiceStatus.ISSUED,
                issued_at=now,
            )
            db.session.add(invoice)
            db.session.flush()

            for data in priced_lines:
                db.session.add(InvoiceLine(invoice_id=invoice.id, **data))
            db.session.flush()

            for data in priced_lines:
                stock_service.decrease(
                    data["product_id"],
                    data["quantity"],
                    allow_negative=allow_negative,
                    movement_type=MovementType.INVOICE_ISSUE,
                    invoice_id=invoice.id,
                    user_id=user_id,
                    note=f"Invoice {document_number}",
                )

        current_app.logger.info(
            "Issued invoice %s (%d lines, total %d)",
            invoice.document_number, len(priced_lines), invoice.total_cents,
        )
        return invoice

    return run_with_retry(_op)


def void_invoice(invoice_id: int, user_id: int, reason: str | None = None) -> Invoice:
    """
    Void an issued invoice and return its quantities to stock.

    Raises InvoiceNotFoundError or AlreadyVoidedError. The stock restore is
    a best-effort inverse: it adds back exactly what issuance removed, not a
    reconstruction of past levels if other movements happened since.
    """
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise ValidationError("user_id must be a positive integer")
    reason = validate_optional_text("reason", reason, 255) or ""

    def _op() -> Invoice:
        with unit_of_work():
            begin_write_transaction()

            invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
            if invoice is None:
                raise InvoiceNotFoundError(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})

            if invoice.status == InvoiceStatus.VOIDED:
                raise AlreadyVoidedError(
                    f"Invoice {invoice.document_number} already voided",
                    details={"invoice_id": invoice.id, "voided_at": str(invoice.voided_at)},
                )

            lines = db.session.query(InvoiceLine).filter_by(invoice_id=invoice.id).order_by(InvoiceLine.id).all()
            for line in lines:
                stock_service.increase(
                    line.product_id,
                    line.quantity,
                    movement_type=MovementType.INVOICE_VOID,
                    invoice_id=invoice.id,
                    user_id=user_id,
                    note=f"Void invoice {invoice.document_number}",
                )

            invoice.status = InvoiceStatus.VOIDED
            invoice.void_reason = reason
            invoice.voided_by_user_id = user_id
            invoice.voided_at = utcnow()

        current_app.logger.info("Voided invoice %s", invoice.document_number)
        return invoice

    return run_with_retry(_op)


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})
    return invoice


def list_invoices(
    *,
    status: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    user_id: int | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """
    Paginated invoice listing, newest first.

    status may be "ISSUED", "VOIDED" or None / "ALL". from_date is inclusive,
    to_date exclusive.
    """
    query = db.session.query(Invoice)

    if status and status.upper() != "ALL":
        try:
            query = query.filter(Invoice.status == InvoiceStatus(status.upper()))
        except ValueError:
            raise ValidationError(f"Unknown invoice status: {status}")
    if from_date is not None:
        query = query.filter(Invoice.issued_at >= from_date)
    if to_date is not None:
        query = query.filter(Invoice.issued_at < to_date)
    if user_id is not None:
        query = query.filter(Invoice.user_id == user_id)

    per_page = min(max(per_page or 20, 1), 100)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    invoices = (
        query.order_by(Invoice.issued_at.desc(), Invoice.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return {
        "items": [inv.to_dict(include_lines=False) for inv in invoices],
        "count": len(invoices),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def daily_summary(day: date) -> dict:
    """Totals of non-voided invoices issued on a UTC calendar day."""
    start, end = day_bounds(day)
    row = (
        db.session.query(
            func.count(Invoice.id).label("invoice_count"),
            func.coalesce(func.sum(Invoice.subtotal_cents), 0).label("subtotal"),
            func.coalesce(func.sum(Invoice.tax_cents), 0).label("tax"),
            func.coalesce(func.sum(Invoice.total_cents), 0).label("total"),
        )
        .filter(
            Invoice.status != InvoiceStatus.VOIDED,
            Invoice.issued_at >= start,
            Invoice.issued_at < end,
        )
        .one()
    )
    return {
        "date": day.isoformat(),
        "invoice_count": int(row.invoice_count or 0),
        "subtotal_cents": int(row.subtotal or 0),
        "tax_cents": int(row.tax or 0),
        "total_cents": int(row.total or 0),
    }
