from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text


# Maximum price: 999,999,999 minor units
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_LINE_QUANTITY = 1_000_000


class StockbillError(Exception):
    """
    Base for every failure surfaced by the billing engine.

    kind is stable and machine-readable; the message is for humans.
    """
    kind = "error"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind, "details": self.details}


class ValidationError(StockbillError, ValueError):
    """400-level input problem. Raised before any transaction begins."""
    kind = "validation"
    status_code = 400


class EmptyCartError(ValidationError):
    kind = "empty_cart"


class NotFoundError(StockbillError):
    """404-level missing product, invoice, or sequence configuration."""
    kind = "not_found"
    status_code = 404


class ProductNotFoundError(NotFoundError):
    kind = "product_not_found"


class InvoiceNotFoundError(NotFoundError):
    kind = "invoice_not_found"


class ConfigurationMissingError(NotFoundError):
    kind = "configuration_missing"


class ConflictError(StockbillError, ValueError):
    """409-level business rule conflict (e.g., duplicate code, already voided)."""
    kind = "conflict"
    status_code = 409


class AlreadyVoidedError(ConflictError):
    kind = "already_voided"


class InsufficientStockError(ConflictError):
    kind = "insufficient_stock"


class StorageError(StockbillError):
    """Transaction could not commit. Nothing was written; safe to retry."""
    kind = "storage"
    status_code = 503


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may write, and which a create must carry."""
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def _coerce_int(key: str, value: Any) -> int:
    # bool is a subclass of int
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_column(column, key: str, raw: Any):
    """Coerce one JSON value to what the mapped column stores."""
    if raw is None:
        if not column.nullable:
            raise ValidationError(f"{key} cannot be null")
        return None

    column_type = column.type
    if isinstance(column_type, Boolean):
        if not isinstance(raw, bool):
            raise ValidationError(f"{key} must be a boolean")
        return raw
    if isinstance(column_type, Integer):
        return _coerce_int(key, raw)
    if not isinstance(column_type, (String, Text)):
        return raw

    text = str(raw).strip()
    if not text and not column.nullable:
        raise ValidationError(f"{key} cannot be blank")
    max_length = getattr(column_type, "length", None)
    if max_length and len(text) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return text


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a patch dict for model.

    Keys outside policy.writable_fields are rejected rather than dropped.
    Values are checked against the mapped column (nullability, type, length).
    A create (partial=False) must include every policy.required_on_create key.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields or key not in columns:
            raise ValidationError(f"Field not allowed: {key}")
        patch[key] = _coerce_column(columns[key], key, raw)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """Price and stock bounds that column metadata cannot express."""
    for field in ("purchase_price_cents", "sale_price_cents"):
        if field in patch and patch[field] is not None:
            price = patch[field]
            if price < 0:
                raise ValidationError(f"{field} must be >= 0")
            if price > MAX_PRICE_CENTS:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")

    for field in ("quantity", "min_stock"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")


def parse_tax_rate_bps(value: Any) -> int:
    """
    Convert a tax percentage (19, "19.5", 7.25) to basis points (1900, 1950, 725).

    Rejects negatives and anything above 100%.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError("tax_percent must be a number")
    try:
        pct = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("tax_percent must be a number")
    if not pct.is_finite():
        raise ValidationError("tax_percent must be a number")
    if pct < 0 or pct > 100:
        raise ValidationError("tax_percent must be between 0 and 100")
    return int(pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) * 100)


def validate_invoice_items(items: Any) -> list[dict]:
    """
    Normalize a cart into [{"product_id": int, "quantity": int}, ...].

    Order is preserved and repeated products stay as separate lines.
    """
    if items is None or (isinstance(items, list) and not items):
        raise EmptyCartError("Invoice must contain at least one line item")
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    cleaned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if "product_id" not in item or "quantity" not in item:
            raise ValidationError(f"items[{index}] requires product_id and quantity")

        product_id = _coerce_int(f"items[{index}].product_id", item["product_id"])
        quantity = _coerce_int(f"items[{index}].quantity", item["quantity"])

        if product_id <= 0:
            raise ValidationError(f"items[{index}].product_id must be positive")
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be a positive integer")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_LINE_QUANTITY}")

        cleaned.append({"product_id": product_id, "quantity": quantity})

    return cleaned


def validate_optional_text(key: str, value: Any, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value


def validate_positive_int(key: str, value: Any) -> int:
    number = _coerce_int(key, value)
    if number <= 0:
        raise ValidationError(f"{key} must be a positive integer")
    return number
