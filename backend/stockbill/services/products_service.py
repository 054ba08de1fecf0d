# backend/stockbill/services/products_service.py
"""
Products Service - catalog reads and writes

The update path is where price audit hooks in: the product row is locked,
its old prices captured, the patch applied and the history entry appended,
all in one transaction. A failing audit write rolls back the price change.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Category, Product
from ..validation import (
    ModelValidationPolicy,
    ProductNotFoundError,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry, unit_of_work
from .price_history_service import record_price_change

PRODUCT_MUTABLE_FIELDS = frozenset({
    "code",
    "name",
    "description",
    "purchase_price_cents",
    "sale_price_cents",
    "quantity",
    "min_stock",
    "location",
    "category_id",
    "is_active",
})

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
    required_on_create=frozenset({"code", "name", "purchase_price_cents", "sale_price_cents"}),
)

STOCK_FIELDS = frozenset({"quantity"})


def _reject_stock_fields(patch: dict) -> None:
    blocked = sorted(STOCK_FIELDS & patch.keys())
    if blocked:
        raise ValidationError(
            f"{', '.join(blocked)} cannot be updated directly; record a stock movement instead",
            details={"fields": blocked},
        )


def validate_product_payload(payload: dict, *, partial: bool) -> dict:
    """
    On-hand quantity is settable only when the product is created; after that
    it changes through stock movements.
    """
    if partial and isinstance(payload, dict):
        _reject_stock_fields(payload)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    return patch


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise ValidationError(f"Category {category_id} not found")


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_products(
    *,
    include_inactive: bool = False,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    Returns dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        base_query = base_query.filter(db.or_(Product.name.ilike(like), Product.code.ilike(like)))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(*, patch: dict) -> Product:
    """Create product using a validated patch dict. Duplicate codes raise ConflictError."""
    def _op() -> Product:
        with unit_of_work():
            _require_category(patch.get("category_id"))
            product = Product()
            apply_product_patch(product, patch)
            db.session.add(product)
            db.session.flush()
        return product

    return run_with_retry(_op)


def update_product(
    product_id: int,
    *,
    patch: dict,
    user_id: int | None = None,
    reason: str | None = None,
) -> Product:
    """
    Apply a validated patch and audit any price change in the same transaction.
    """
    _reject_stock_fields(patch)

    def _op() -> Product:
        with unit_of_work():
            begin_write_transaction()
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if product is None:
                raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

            if "category_id" in patch:
                _require_category(patch["category_id"])

            old_purchase = product.purchase_price_cents
            old_sale = product.sale_price_cents

            apply_product_patch(product, patch)
            db.session.flush()

            record_price_change(
                product_id=product.id,
                old_purchase_price_cents=old_purchase,
                new_purchase_price_cents=product.purchase_price_cents,
                old_sale_price_cents=old_sale,
                new_sale_price_cents=product.sale_price_cents,
                user_id=user_id,
                reason=reason,
            )
        return product

    return run_with_retry(_op)


def deactivate_product(product_id: int) -> Product:
    """Soft delete. Invoice lines, movements and price history keep their reference."""
    def _op() -> Product:
        with unit_of_work():
            product = db.session.get(Product, product_id)
            if product is None:
                raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
            product.is_active = False
        return product

    return run_with_retry(_op)
