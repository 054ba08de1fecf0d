from __future__ import annotations

from ..extensions import db
from stockbill.time_utils import to_utc_z


class PriceHistoryEntry(db.Model):
    """
    Append-only price audit row.

    Created only when purchase or sale price actually changed value.
    Never updated or deleted by normal operation.
    """
    __tablename__ = "price_history"
    __table_args__ = (
        db.Index("ix_price_history_product_changed", "product_id", "changed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    old_purchase_price_cents = db.Column(db.Integer, nullable=False)
    new_purchase_price_cents = db.Column(db.Integer, nullable=False)
    old_sale_price_cents = db.Column(db.Integer, nullable=False)
    new_sale_price_cents = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, nullable=True, index=True)
    reason = db.Column(db.String(255), nullable=True)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "old_purchase_price_cents": self.old_purchase_price_cents,
            "new_purchase_price_cents": self.new_purchase_price_cents,
            "old_sale_price_cents": self.old_sale_price_cents,
            "new_sale_price_cents": self.new_sale_price_cents,
            "user_id": self.user_id,
            "reason": self.reason,
            "changed_at": to_utc_z(self.changed_at),
        }
