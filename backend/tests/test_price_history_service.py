from datetime import datetime, timedelta

import pytest
from sqlalchemy import func

from stockbill.models import PriceHistoryEntry, Product, StockMovement
from stockbill.services import price_history_service, products_service
from stockbill.time_utils import utcnow
from stockbill.validation import ProductNotFoundError, StorageError, ValidationError

from conftest import ACTOR_ID


def _record(product, *, purchase, sale, changed_at=None, reason=None):
    entry = price_history_service.record_price_change(
        product_id=product.id,
        old_purchase_price_cents=product.purchase_price_cents,
        new_purchase_price_cents=purchase,
        old_sale_price_cents=product.sale_price_cents,
        new_sale_price_cents=sale,
        user_id=ACTOR_ID,
        reason=reason,
        changed_at=changed_at,
    )
    product.purchase_price_cents = purchase
    product.sale_price_cents = sale
    return entry


class TestRecordPriceChange:
    def test_unchanged_prices_write_nothing(self, db_session, product_a):
        entry = price_history_service.record_price_change(
            product_id=product_a.id,
            old_purchase_price_cents=1500,
            new_purchase_price_cents=1500,
            old_sale_price_cents=2300,
            new_sale_price_cents=2300,
        )
        assert entry is None
        assert db_session.query(PriceHistoryEntry).count() == 0

    def test_equal_values_compare_by_number_not_text(self, db_session, product_a):
        entry = price_history_service.record_price_change(
            product_id=product_a.id,
            old_purchase_price_cents="1500",
            new_purchase_price_cents=1500,
            old_sale_price_cents=2300.0,
            new_sale_price_cents=" 2300 ",
        )
        assert entry is None

    def test_changed_sale_price_writes_one_entry(self, db_session, product_a):
        entry = price_history_service.record_price_change(
            product_id=product_a.id,
            old_purchase_price_cents=1500,
            new_purchase_price_cents=1500,
            old_sale_price_cents=2300,
            new_sale_price_cents=2500,
            user_id=ACTOR_ID,
            reason="  Supplier increase  ",
        )
        db_session.commit()

        assert entry.id is not None
        assert entry.old_sale_price_cents == 2300
        assert entry.new_sale_price_cents == 2500
        assert entry.reason == "Supplier increase"
        assert entry.changed_at is not None
        assert db_session.query(PriceHistoryEntry).count() == 1

    @pytest.mark.parametrize("bad", [None, True, "abc", 12.5, "nan"])
    def test_non_numeric_prices_are_rejected(self, db_session, product_a, bad):
        with pytest.raises(ValidationError):
            price_history_service.record_price_change(
                product_id=product_a.id,
                old_purchase_price_cents=bad,
                new_purchase_price_cents=1500,
                old_sale_price_cents=2300,
                new_sale_price_cents=2300,
            )


class TestCatalogUpdatePath:
    def test_price_update_is_audited(self, db_session, product_a):
        products_service.update_product(
            product_a.id,
            patch={"purchase_price_cents": 1600, "sale_price_cents": 2400},
            user_id=ACTOR_ID,
            reason="Quarterly review",
        )

        entries = price_history_service.list_product_history(product_a.id)
        assert len(entries) == 1
        assert entries[0]["old_purchase_price_cents"] == 1500
        assert entries[0]["new_purchase_price_cents"] == 1600
        assert entries[0]["old_sale_price_cents"] == 2300
        assert entries[0]["new_sale_price_cents"] == 2400
        assert entries[0]["user_id"] == ACTOR_ID
        assert entries[0]["reason"] == "Quarterly review"

    def test_update_cannot_overwrite_on_hand_quantity(self, db_session, product_a):
        with pytest.raises(ValidationError) as exc_info:
            products_service.update_product(
                product_a.id,
                patch={"quantity": 50, "sale_price_cents": 2400},
                user_id=ACTOR_ID,
            )
        assert exc_info.value.details == {"fields": ["quantity"]}

        with pytest.raises(ValidationError):
            products_service.validate_product_payload({"quantity": 50}, partial=True)

        quantity = db_session.query(Product.quantity).filter_by(id=product_a.id).scalar()
        moved = db_session.query(func.coalesce(func.sum(StockMovement.quantity_delta), 0)).scalar()
        assert quantity == 10 + moved == 10
        assert db_session.query(PriceHistoryEntry).count() == 0

    def test_quantity_is_accepted_on_create(self, db_session):
        patch = products_service.validate_product_payload(
            {"code": "NEW-1", "name": "New", "purchase_price_cents": 1, "sale_price_cents": 2, "quantity": 4},
            partial=False,
        )
        product = products_service.create_product(patch=patch)
        assert product.quantity == 4

    def test_non_price_update_is_not_audited(self, db_session, product_a):
        products_service.update_product(
            product_a.id,
            patch={"name": "Product A v2", "sale_price_cents": 2300},
            user_id=ACTOR_ID,
        )
        assert db_session.query(PriceHistoryEntry).count() == 0
        assert products_service.get_product(product_a.id).name == "Product A v2"

    def test_audit_failure_rolls_back_price_change(self, monkeypatch, db_session, product_a):
        def failing_audit(**kwargs):
            raise StorageError("audit store unavailable")

        monkeypatch.setattr(products_service, "record_price_change", failing_audit)

        with pytest.raises(StorageError):
            products_service.update_product(
                product_a.id,
                patch={"sale_price_cents": 9999},
                user_id=ACTOR_ID,
            )

        price = db_session.query(Product.sale_price_cents).filter_by(id=product_a.id).scalar()
        assert price == 2300
        assert db_session.query(PriceHistoryEntry).count() == 0

    def test_update_missing_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            products_service.update_product(999_999, patch={"sale_price_cents": 1})


class TestHistoryQueries:
    def test_product_history_newest_first_with_percentages(self, db_session, product_a):
        base = utcnow() - timedelta(days=2)
        _record(product_a, purchase=1650, sale=2300, changed_at=base)
        _record(product_a, purchase=1650, sale=2530, changed_at=base + timedelta(days=1))
        db_session.commit()

        history = price_history_service.list_product_history(product_a.id)
        assert [h["new_sale_price_cents"] for h in history] == [2530, 2300]
        assert history[0]["sale_change_percent"] == 10.0
        assert history[0]["purchase_change_percent"] == 0.0
        assert history[1]["purchase_change_percent"] == 10.0
        assert history[0]["product_code"] == "PROD-A-001"

    def test_percent_change_from_zero_is_none(self, db_session):
        free = Product(code="FREE-1", name="Sample", purchase_price_cents=0, sale_price_cents=0)
        db_session.add(free)
        db_session.commit()

        _record(free, purchase=100, sale=150)
        db_session.commit()

        entry = price_history_service.list_product_history(free.id)[0]
        assert entry["purchase_change_percent"] is None
        assert entry["sale_change_percent"] is None

    def test_product_history_for_missing_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            price_history_service.list_product_history(999_999)

    def test_list_history_filters_by_range_and_product(self, db_session, product_a, product_b):
        _record(product_a, purchase=1600, sale=2300, changed_at=datetime(2026, 1, 10, 9, 0))
        _record(product_b, purchase=1900, sale=2500, changed_at=datetime(2026, 1, 20, 9, 0))
        _record(product_a, purchase=1700, sale=2300, changed_at=datetime(2026, 2, 5, 9, 0))
        db_session.commit()

        january = price_history_service.list_history(
            from_date=datetime(2026, 1, 1), to_date=datetime(2026, 2, 1)
        )
        assert january["pagination"]["total"] == 2

        only_a = price_history_service.list_history(product_id=product_a.id)
        assert [i["new_purchase_price_cents"] for i in only_a["items"]] == [1700, 1600]

    def test_statistics(self, db_session, product_a, product_b):
        _record(product_a, purchase=1600, sale=2400, changed_at=datetime(2026, 1, 10))
        _record(product_b, purchase=2000, sale=2500, changed_at=datetime(2026, 1, 11))
        _record(product_a, purchase=1700, sale=2400, changed_at=datetime(2026, 3, 1))
        db_session.commit()

        stats = price_history_service.price_change_statistics(datetime(2026, 1, 1), datetime(2026, 2, 1))
        assert stats["total_changes"] == 2
        assert stats["products_affected"] == 2
        # (100 + 200) / 2 and (100 + 0) / 2
        assert stats["avg_purchase_delta_cents"] == 150.0
        assert stats["avg_sale_delta_cents"] == 50.0
        assert stats["min_purchase_price_cents"] == 1600
        assert stats["max_purchase_price_cents"] == 2000

    def test_statistics_for_empty_window(self, db_session):
        stats = price_history_service.price_change_statistics(datetime(2020, 1, 1), datetime(2020, 1, 2))
        assert stats["total_changes"] == 0
        assert stats["avg_purchase_delta_cents"] == 0.0

    def test_top_variations_ranked_by_percent(self, db_session, product_a, product_b):
        now = datetime(2026, 3, 31, 12, 0)
        _record(product_a, purchase=1650, sale=2300, changed_at=now - timedelta(days=5))
        _record(product_b, purchase=2700, sale=3500, changed_at=now - timedelta(days=3))
        _record(product_b, purchase=1000, sale=3500, changed_at=now - timedelta(days=90))
        db_session.commit()

        top = price_history_service.top_price_variations(days=30, now=now)
        assert [r["code"] for r in top] == ["PROD-B-001", "PROD-A-001"]
        assert top[0]["variation_percent"] == 50.0
        assert top[0]["difference_cents"] == 900
        assert top[0]["change_count"] == 1
        assert top[0]["last_change"].endswith("Z")
        assert top[1]["variation_percent"] == 10.0

        assert len(price_history_service.top_price_variations(days=30, limit=1, now=now)) == 1

    def test_margin_analysis(self, db_session, product_a):
        _record(product_a, purchase=1500, sale=2500)
        _record(product_a, purchase=1500, sale=3000)
        db_session.commit()

        margin = price_history_service.margin_analysis(product_a.id)
        assert margin["current_margin_percent"] == 50.0
        assert margin["recorded_changes"] == 2
        assert margin["min_margin_cents"] == 1000
        assert margin["max_margin_cents"] == 1500
        # 1250 / 2750
        assert margin["average_margin_percent"] == 45.45

    def test_margin_without_history(self, db_session, product_b):
        margin = price_history_service.margin_analysis(product_b.id)
        assert margin["recorded_changes"] == 0
        assert margin["average_margin_percent"] is None
        assert margin["current_margin_percent"] == 28.0
