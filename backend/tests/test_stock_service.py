import pytest

from stockbill.models import MovementType, Product, StockMovement
from stockbill.services import stock_service
from stockbill.validation import InsufficientStockError, ProductNotFoundError, ValidationError

from conftest import ACTOR_ID, quantity_of


def test_increase_adds_and_records_movement(db_session, product_a):
    movement = stock_service.increase(product_a.id, 4, user_id=ACTOR_ID, note="Supplier delivery")
    db_session.commit()

    assert quantity_of(product_a.id) == 14
    assert movement.quantity_delta == 4
    assert movement.movement_type == MovementType.MANUAL_IN
    assert movement.user_id == ACTOR_ID


def test_decrease_subtracts_and_records_signed_movement(db_session, product_a):
    movement = stock_service.decrease(product_a.id, 3, movement_type=MovementType.INVOICE_ISSUE)
    db_session.commit()

    assert quantity_of(product_a.id) == 7
    assert movement.quantity_delta == -3
    assert movement.movement_type == MovementType.INVOICE_ISSUE


def test_decrease_to_exactly_zero_is_allowed(db_session, product_b):
    stock_service.decrease(product_b.id, 5)
    db_session.commit()
    assert quantity_of(product_b.id) == 0


def test_decrease_beyond_on_hand_is_rejected(db_session, product_b):
    with pytest.raises(InsufficientStockError) as exc_info:
        stock_service.decrease(product_b.id, 6)
    db_session.rollback()

    assert exc_info.value.details == {
        "product_id": product_b.id,
        "requested_quantity": 6,
        "on_hand": 5,
    }
    assert quantity_of(product_b.id) == 5
    assert db_session.query(StockMovement).count() == 0


def test_decrease_allow_negative(db_session, product_b):
    stock_service.decrease(product_b.id, 8, allow_negative=True)
    db_session.commit()
    assert quantity_of(product_b.id) == -3


@pytest.mark.parametrize("operation", [stock_service.increase, stock_service.decrease])
def test_unknown_product(db_session, operation):
    with pytest.raises(ProductNotFoundError):
        operation(999_999, 1)
    db_session.rollback()


@pytest.mark.parametrize("amount", [0, -2, 1.5, True, "3"])
def test_amount_must_be_positive_int(db_session, product_a, amount):
    with pytest.raises(ValidationError):
        stock_service.increase(product_a.id, amount)
    assert quantity_of(product_a.id) == 10


def test_manual_movement_in_and_out(db_session, product_a):
    stock_service.record_manual_movement(
        product_id=product_a.id, quantity=5, direction="in", user_id=ACTOR_ID
    )
    stock_service.record_manual_movement(
        product_id=product_a.id, quantity=2, direction="OUT", user_id=ACTOR_ID, note="Damaged"
    )

    assert quantity_of(product_a.id) == 13
    deltas = [m.quantity_delta for m in stock_service.list_movements(product_id=product_a.id)]
    assert deltas == [-2, 5]


def test_manual_exit_never_goes_negative(db_session, product_b):
    with pytest.raises(InsufficientStockError):
        stock_service.record_manual_movement(product_id=product_b.id, quantity=6, direction="out")

    assert quantity_of(product_b.id) == 5
    assert stock_service.list_movements(product_id=product_b.id) == []


def test_manual_movement_rejects_bad_direction(db_session, product_a):
    with pytest.raises(ValidationError):
        stock_service.record_manual_movement(product_id=product_a.id, quantity=1, direction="sideways")


def test_manual_movement_on_inactive_product(db_session, product_a):
    product_a.is_active = False
    db_session.commit()

    with pytest.raises(ValidationError):
        stock_service.record_manual_movement(product_id=product_a.id, quantity=1, direction="in")
    assert quantity_of(product_a.id) == 10


def test_quantity_on_hand(db_session, product_a):
    assert stock_service.get_quantity_on_hand(product_a.id) == 10
    with pytest.raises(ProductNotFoundError):
        stock_service.get_quantity_on_hand(999_999)


def test_low_stock_lists_active_products_at_or_below_minimum(db_session, product_a, product_b):
    low = Product(code="LOW-1", name="Low", purchase_price_cents=1, sale_price_cents=2, quantity=1, min_stock=3)
    edge = Product(code="EDGE-1", name="Edge", purchase_price_cents=1, sale_price_cents=2, quantity=3, min_stock=3)
    retired = Product(
        code="OLD-1", name="Retired", purchase_price_cents=1, sale_price_cents=2,
        quantity=0, min_stock=3, is_active=False,
    )
    db_session.add_all([low, edge, retired])
    db_session.commit()

    codes = [p.code for p in stock_service.list_low_stock()]
    assert codes == ["LOW-1", "EDGE-1"]
