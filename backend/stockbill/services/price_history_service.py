# Overview: Service-layer operations for price audit; append-only price history and its analytics.

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import PriceHistoryEntry, Product
from ..validation import ProductNotFoundError, ValidationError
from stockbill.time_utils import to_utc_z, utcnow
"""
Price audit invariants:

- record_price_change() writes a row only when purchase or sale price
  changed numerically; identical values return None and write nothing.
- It never commits. The catalog update path calls it inside the same
  transaction as the product UPDATE, so the audit row and the new prices
  commit or roll back together.
- Entries are never updated or deleted.
"""


def _as_cents(name: str, value) -> int:
    """Compare by number, not by string form ("2300" == 2300 == 2300.0)."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not number.is_finite() or number != number.to_integral_value():
        raise ValidationError(f"{name} must be a whole number of minor units")
    return int(number)


def _percent_change(old: int, new: int) -> float | None:
    if not old:
        return None
    pct = (Decimal(new - old) / Decimal(old) * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(pct)


def _margin_percent(purchase: int, sale: int) -> float | None:
    if not sale:
        return None
    pct = (Decimal(sale - purchase) / Decimal(sale) * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(pct)


def record_price_change(
    *,
    product_id: int,
    old_purchase_price_cents,
    new_purchase_price_cents,
    old_sale_price_cents,
    new_sale_price_cents,
    user_id: int | None = None,
    reason: str | None = None,
    changed_at: datetime | None = None,
) -> PriceHistoryEntry | None:
    """
    Append a price history entry if either price actually changed.

    Returns None (and writes nothing) when both pairs are numerically equal.
    """
    old_purchase = _as_cents("old_purchase_price_cents", old_purchase_price_cents)
    new_purchase = _as_cents("new_purchase_price_cents", new_purchase_price_cents)
    old_sale = _as_cents("old_sale_price_cents", old_sale_price_cents)
    new_sale = _as_cents("new_sale_price_cents", new_sale_price_cents)

    if old_purchase == new_purchase and old_sale == new_sale:
        return None

    entry = PriceHistoryEntry(
        product_id=product_id,
        old_purchase_price_cents=old_purchase,
        new_purchase_price_cents=new_purchase,
        old_sale_price_cents=old_sale,
        new_sale_price_cents=new_sale,
        user_id=user_id,
        reason=(reason or "").strip()[:255] or None,
        changed_at=changed_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()

    current_app.logger.info(
        "Price change recorded for product %s: purchase %d->%d, sale %d->%d",
        product_id, old_purchase, new_purchase, old_sale, new_sale,
    )
    return entry


def _entry_with_changes(entry: PriceHistoryEntry) -> dict:
    data = entry.to_dict()
    data["product_code"] = entry.product.code if entry.product else None
    data["product_name"] = entry.product.name if entry.product else None
    data["purchase_change_percent"] = _percent_change(
        entry.old_purchase_price_cents, entry.new_purchase_price_cents
    )
    data["sale_change_percent"] = _percent_change(
        entry.old_sale_price_cents, entry.new_sale_price_cents
    )
    return data


def list_product_history(product_id: int) -> list[dict]:
    """Full history of one product, newest first, with percent changes."""
    if db.session.get(Product, product_id) is None:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    entries = (
        db.session.query(PriceHistoryEntry)
        .filter(PriceHistoryEntry.product_id == product_id)
        .order_by(PriceHistoryEntry.changed_at.desc(), PriceHistoryEntry.id.desc())
        .all()
    )
    return [_entry_with_changes(e) for e in entries]


def list_history(
    *,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    product_id: int | None = None,
    user_id: int | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    query = db.session.query(PriceHistoryEntry)
    if from_date is not None:
        query = query.filter(PriceHistoryEntry.changed_at >= from_date)
    if to_date is not None:
        query = query.filter(PriceHistoryEntry.changed_at < to_date)
    if product_id is not None:
        query = query.filter(PriceHistoryEntry.product_id == product_id)
    if user_id is not None:
        query = query.filter(PriceHistoryEntry.user_id == user_id)

    per_page = min(max(per_page or 20, 1), 100)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    entries = (
        query.order_by(PriceHistoryEntry.changed_at.desc(), PriceHistoryEntry.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "items": [_entry_with_changes(e) for e in entries],
        "count": len(entries),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def price_change_statistics(from_date: datetime, to_date: datetime) -> dict:
    """Aggregate counts and average deltas for changes in [from_date, to_date)."""
    row = (
        db.session.query(
            func.count(PriceHistoryEntry.id).label("total_changes"),
            func.count(func.distinct(PriceHistoryEntry.product_id)).label("products_affected"),
            func.avg(
                PriceHistoryEntry.new_purchase_price_cents - PriceHistoryEntry.old_purchase_price_cents
            ).label("avg_purchase_delta"),
            func.avg(
                PriceHistoryEntry.new_sale_price_cents - PriceHistoryEntry.old_sale_price_cents
            ).label("avg_sale_delta"),
            func.min(PriceHistoryEntry.new_purchase_price_cents).label("min_purchase"),
            func.max(PriceHistoryEntry.new_purchase_price_cents).label("max_purchase"),
        )
        .filter(
            PriceHistoryEntry.changed_at >= from_date,
            PriceHistoryEntry.changed_at < to_date,
        )
        .one()
    )

    def _round(value) -> float:
        return round(float(value), 2) if value is not None else 0.0

    return {
        "total_changes": int(row.total_changes or 0),
        "products_affected": int(row.products_affected or 0),
        "avg_purchase_delta_cents": _round(row.avg_purchase_delta),
        "avg_sale_delta_cents": _round(row.avg_sale_delta),
        "min_purchase_price_cents": int(row.min_purchase or 0),
        "max_purchase_price_cents": int(row.max_purchase or 0),
    }


def top_price_variations(*, days: int = 30, limit: int = 10, now: datetime | None = None) -> list[dict]:
    """
    Products whose purchase price moved the most within the window.

    Variation is (highest new price - lowest old price) relative to the
    lowest old price.
    """
    since = (now or utcnow()) - timedelta(days=days)
    rows = (
        db.session.query(
            Product.id,
            Product.code,
            Product.name,
            func.max(PriceHistoryEntry.new_purchase_price_cents).label("max_new"),
            func.min(PriceHistoryEntry.old_purchase_price_cents).label("min_old"),
            func.count(PriceHistoryEntry.id).label("change_count"),
            func.max(PriceHistoryEntry.changed_at).label("last_change"),
        )
        .join(PriceHistoryEntry, PriceHistoryEntry.product_id == Product.id)
        .filter(PriceHistoryEntry.changed_at >= since)
        .group_by(Product.id, Product.code, Product.name)
        .all()
    )

    results = []
    for row in rows:
        difference = int(row.max_new) - int(row.min_old)
        results.append({
            "product_id": row.id,
            "code": row.code,
            "name": row.name,
            "current_purchase_price_cents": int(row.max_new),
            "lowest_purchase_price_cents": int(row.min_old),
            "difference_cents": difference,
            "variation_percent": _percent_change(int(row.min_old), int(row.max_new)),
            "change_count": int(row.change_count),
            "last_change": to_utc_z(row.last_change),
        })

    results.sort(key=lambda r: (r["variation_percent"] is None, -(r["variation_percent"] or 0)))
    return results[:limit]


def margin_analysis(product_id: int) -> dict:
    """Current margin against the margins recorded in the product's history."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    entries = (
        db.session.query(PriceHistoryEntry)
        .filter(PriceHistoryEntry.product_id == product_id)
        .all()
    )
    margins = [e.new_sale_price_cents - e.new_purchase_price_cents for e in entries]

    average_margin_percent = None
    if entries:
        avg_sale = sum(e.new_sale_price_cents for e in entries) / len(entries)
        avg_margin = sum(margins) / len(entries)
        if avg_sale:
            average_margin_percent = round(avg_margin / avg_sale * 100, 2)

    return {
        "product_id": product.id,
        "name": product.name,
        "purchase_price_cents": product.purchase_price_cents,
        "sale_price_cents": product.sale_price_cents,
        "current_margin_percent": _margin_percent(product.purchase_price_cents, product.sale_price_cents),
        "average_margin_percent": average_margin_percent,
        "min_margin_cents": min(margins) if margins else None,
        "max_margin_cents": max(margins) if margins else None,
        "recorded_changes": len(entries),
    }
