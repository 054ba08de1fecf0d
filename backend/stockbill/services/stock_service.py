# Overview: Service-layer operations for the stock ledger; signed quantity deltas with movement audit.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..models import Product, StockMovement, MovementType
from ..validation import InsufficientStockError, ProductNotFoundError, ValidationError
from stockbill.time_utils import utcnow
from .concurrency import begin_write_transaction, run_with_retry, unit_of_work
"""
Stock ledger invariants:

- Product.quantity is changed only by a single UPDATE expressing the delta
  (quantity = quantity +/- amount), never by read-modify-write in Python.
  Concurrent movements on one product serialize in the store.
- With the availability guard on, the UPDATE is conditional on
  quantity >= amount; zero affected rows means the guard fired.
- Every delta appends a StockMovement row in the same transaction.
- increase()/decrease() never commit; the caller owns the transaction.
"""


def _require_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("amount must be a positive integer")


def _append_movement(
    *,
    product_id: int,
    movement_type: MovementType,
    quantity_delta: int,
    invoice_id: int | None,
    user_id: int | None,
    note: str | None,
) -> StockMovement:
    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity_delta=quantity_delta,
        invoice_id=invoice_id,
        user_id=user_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def increase(
    product_id: int,
    amount: int,
    *,
    movement_type: MovementType = MovementType.MANUAL_IN,
    invoice_id: int | None = None,
    user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """Add amount to on-hand quantity. Raises ProductNotFoundError if no such product."""
    _require_amount(amount)

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(quantity=Product.quantity + amount)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    return _append_movement(
        product_id=product_id,
        movement_type=movement_type,
        quantity_delta=amount,
        invoice_id=invoice_id,
        user_id=user_id,
        note=note,
    )


def decrease(
    product_id: int,
    amount: int,
    *,
    allow_negative: bool = False,
    movement_type: MovementType = MovementType.MANUAL_OUT,
    invoice_id: int | None = None,
    user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Subtract amount from on-hand quantity.

    Unless allow_negative is set, the update only applies when
    quantity >= amount; otherwise InsufficientStockError is raised and the
    caller's transaction must be rolled back.
    """
    _require_amount(amount)

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(quantity=Product.quantity - amount)
        .execution_options(synchronize_session=False)
    )
    if not allow_negative:
        stmt = stmt.where(Product.quantity >= amount)

    result = db.session.execute(stmt)
    if not result.rowcount:
        on_hand = (
            db.session.query(Product.quantity)
            .filter(Product.id == product_id)
            .scalar()
        )
        if on_hand is None:
            raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        raise InsufficientStockError(
            f"Insufficient stock for product {product_id}",
            details={
                "product_id": product_id,
                "requested_quantity": amount,
                "on_hand": on_hand,
            },
        )

    return _append_movement(
        product_id=product_id,
        movement_type=movement_type,
        quantity_delta=-amount,
        invoice_id=invoice_id,
        user_id=user_id,
        note=note,
    )


def record_manual_movement(
    *,
    product_id: int,
    quantity: int,
    direction: str,
    user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Stand-alone stock entry ("in") or exit ("out") in its own transaction.

    Manual exits never drive stock below zero.
    """
    direction = (direction or "").strip().lower()
    if direction not in {"in", "out"}:
        raise ValidationError("direction must be 'in' or 'out'")
    _require_amount(quantity)

    def _op() -> StockMovement:
        with unit_of_work():
            begin_write_transaction()
            product = db.session.query(Product).filter_by(id=product_id).first()
            if product is None:
                raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
            if not product.is_active:
                raise ValidationError(f"Product {product_id} is inactive")

            if direction == "in":
                movement = increase(
                    product_id, quantity,
                    movement_type=MovementType.MANUAL_IN, user_id=user_id, note=note,
                )
            else:
                movement = decrease(
                    product_id, quantity,
                    movement_type=MovementType.MANUAL_OUT, user_id=user_id, note=note,
                )
        return movement

    return run_with_retry(_op)


def get_quantity_on_hand(product_id: int) -> int:
    on_hand = db.session.query(Product.quantity).filter(Product.id == product_id).scalar()
    if on_hand is None:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return int(on_hand)


def list_low_stock() -> list[Product]:
    """Active products at or below their minimum-stock threshold, emptiest first."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.quantity <= Product.min_stock)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .all()
    )


def list_movements(
    *,
    product_id: int | None = None,
    invoice_id: int | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if invoice_id is not None:
        query = query.filter(StockMovement.invoice_id == invoice_id)
    if from_date is not None:
        query = query.filter(StockMovement.occurred_at >= from_date)
    if to_date is not None:
        query = query.filter(StockMovement.occurred_at < to_date)

    limit = min(max(limit, 1), 500)
    return query.order_by(StockMovement.id.desc()).limit(limit).all()
