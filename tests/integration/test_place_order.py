import pytest
from decimal import Decimal
from sqlalchemy import func, select, update

import services.order_service as order_service_module
from core.exceptions import PartialSuccessError, PersistenceError, ValidationError
from core.executor import execute
from models.order_items import OrderItem
from models.orders import Order
from models.products import Product
from schemas.order_schemas import CartItem, ShippingAddress


def count_rows(pool, table):
    return execute(pool, select(func.count().label("n")).select_from(table)).rows[0]["n"]


def place(service, user_id, items, **overrides):
    kwargs = dict(
        user_id=user_id,
        cart_items=[CartItem(**item) for item in items],
        shipping_address=ShippingAddress(street="1 Main St", city="Springfield", postal_code="12345", country="US"),
        shipping_phone="555-0100",
        payment_method="cash_on_delivery",
        notes=None,
    )
    kwargs.update(overrides)
    return service.place_order(**kwargs)


def test_place_order_scenario(order_service, customer, products):
    order = place(order_service, customer["id"], [{"product_id": 7, "quantity": 2, "price": "10.00"}],
                  shipping_address=ShippingAddress(street="1 Main St"))

    assert order["total_amount"] == Decimal("20.00")
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["user_id"] == customer["id"]
    assert order["shipping_address"]["street"] == "1 Main St"
    assert order["phone"] == "555-0100"
    assert order["order_number"].startswith("ORD-")

    assert len(order["order_items"]) == 1
    item = order["order_items"][0]
    assert item["product_id"] == 7
    assert item["quantity"] == 2
    assert item["price"] == Decimal("10.00")
    assert item["total"] == Decimal("20.00")
    assert item["product_name"] == "Mechanical Keyboard"


def test_total_is_sum_of_recomputed_line_totals(order_service, customer, products):
    order = place(order_service, customer["id"], [
        {"product_id": 7, "quantity": 3, "price": "10.00", "total": "1.00"},
        {"product_id": 8, "quantity": 2, "price": "4.50", "total": "999.00"},
    ], client_total=Decimal("5.00"))

    totals = [item["total"] for item in order["order_items"]]
    assert totals == [Decimal("30.00"), Decimal("9.00")]
    assert order["total_amount"] == sum(totals) == Decimal("39.00")


def test_one_order_row_and_one_row_per_item(pool, order_service, customer, products):
    place(order_service, customer["id"], [
        {"product_id": 7, "quantity": 1, "price": "10.00"},
        {"product_id": 8, "quantity": 5, "price": "4.50"},
    ])

    assert count_rows(pool, Order.__table__) == 1
    assert count_rows(pool, OrderItem.__table__) == 2
    assert pool.checked_out == 0


def test_failing_item_insert_rolls_back_everything(pool, order_service, customer, products):
    # 999 is not a product: the last item insert violates the foreign key
    with pytest.raises(PersistenceError):
        place(order_service, customer["id"], [
            {"product_id": 7, "quantity": 1, "price": "10.00"},
            {"product_id": 999, "quantity": 1, "price": "1.00"},
        ])

    assert count_rows(pool, Order.__table__) == 0
    assert count_rows(pool, OrderItem.__table__) == 0
    assert pool.checked_out == 0


def test_injected_failure_before_last_item_leaves_no_rows(pool, order_service, customer, products, monkeypatch):
    real_execute = order_service_module.execute
    statements = []

    def failing_execute(pool_, statement, params=None, connection=None):
        if connection is not None:
            statements.append(statement)
            # order insert, first item insert, then fail on the last item
            if len(statements) == 3:
                raise RuntimeError("simulated crash")
        return real_execute(pool_, statement, params, connection=connection)

    monkeypatch.setattr(order_service_module, "execute", failing_execute)

    with pytest.raises(RuntimeError, match="simulated crash"):
        place(order_service, customer["id"], [
            {"product_id": 7, "quantity": 1, "price": "10.00"},
            {"product_id": 8, "quantity": 1, "price": "4.50"},
        ])

    monkeypatch.undo()
    assert count_rows(pool, Order.__table__) == 0
    assert count_rows(pool, OrderItem.__table__) == 0
    assert pool.checked_out == 0


@pytest.mark.parametrize("items,overrides,message", [
    ([], {}, "no order items"),
    ([{"product_id": 7, "quantity": 0, "price": "10.00"}], {}, "quantity"),
    ([{"product_id": 7, "quantity": -1, "price": "10.00"}], {}, "quantity"),
    ([{"product_id": 7, "quantity": 1, "price": "-0.01"}], {}, "price"),
    ([{"product_id": 7, "quantity": 1, "price": "0.00"}], {}, "total must be positive"),
    ([{"product_id": 7, "quantity": 1, "price": "10.00"}], {"shipping_address": ShippingAddress(city="Nowhere")}, "street"),
    ([{"product_id": 7, "quantity": 1, "price": "10.00"}], {"shipping_phone": "   "}, "phone"),
    ([{"product_id": 7, "quantity": 1, "price": "10.00"}], {"payment_method": "barter"}, "payment method"),
])
def test_invalid_cart_never_touches_the_store(pool, order_service, customer, items, overrides, message, monkeypatch):
    def no_store(*args, **kwargs):
        raise AssertionError("store contacted")

    monkeypatch.setattr(pool, "acquire", no_store)

    with pytest.raises(ValidationError) as exc_info:
        place(order_service, customer["id"], items, **overrides)

    assert message in exc_info.value.message.lower()


def test_read_back_failure_is_partial_success(pool, order_service, customer, products, monkeypatch):
    def broken_load(order_id):
        raise PersistenceError("connection reset")

    monkeypatch.setattr(order_service, "_load_order", broken_load)

    with pytest.raises(PartialSuccessError) as exc_info:
        place(order_service, customer["id"], [{"product_id": 7, "quantity": 1, "price": "10.00"}])

    # The order was committed and stays committed
    assert exc_info.value.order_id is not None
    assert exc_info.value.order_number.startswith("ORD-")
    assert count_rows(pool, Order.__table__) == 1


def test_unit_price_captured_at_order_time(pool, order_service, customer, products):
    order = place(order_service, customer["id"], [{"product_id": 7, "quantity": 1, "price": "10.00"}])

    execute(pool, update(Product.__table__).where(Product.__table__.c.id == 7).values(price=Decimal("99.00")))
    reloaded = order_service._load_order(order["id"])

    assert reloaded["order_items"][0]["price"] == Decimal("10.00")
    assert reloaded["total_amount"] == Decimal("10.00")
