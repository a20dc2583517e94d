import uuid

import pytest

from shopit.errors import ConflictError, InsufficientStock, NotFoundError, OrderAlreadyDelivered
from shopit.messaging.bus import ORDER_CREATED, ORDER_DELETED, ORDER_UPDATED
from shopit.models import ORDER_DELIVERED, ORDER_PROCESSING, Order, OrderItem, Payment, Shipping
from shopit.repositories import orders as order_repo
from shopit.schemas import OrderCreate
from shopit.usecases import orders as orders_uc

from .conftest import order_payload


def _create(db, user, product, bus=None, **kwargs):
    payload = OrderCreate.model_validate(order_payload(product.id, **kwargs))
    return orders_uc.create_order(db, user, payload, bus=bus)


def test_create_order_links_every_dependent(db, customer, make_product, bus):
    user, _ = customer
    product = make_product(user)

    order = _create(db, user, product, bus=bus, paymentInfo={"id": "pi_created", "status": "succeeded"})

    assert order.order_status == ORDER_PROCESSING
    assert order.user_id == user.id
    assert order.paid_at is not None
    assert order.delivered_at is None
    assert order.shipping_info.order_id == order.id
    assert order.payment_info.order_id == order.id
    assert order.payment_info.id == "pi_created"
    assert [item.order_id for item in order.order_items] == [order.id]
    assert bus.published[0][0] == ORDER_CREATED
    assert bus.published[0][1]["order_id"] == str(order.id)


def test_create_order_keeps_prices_as_given(db, customer, make_product):
    user, _ = customer
    order = _create(db, user, make_product(user))

    fetched = orders_uc.get_order(db, order.id)
    assert (fetched.item_price, fetched.tax_price, fetched.shipping_price, fetched.total_price) == (100, 10, 20, 130)


def test_failed_shipping_insert_leaves_no_order(db, customer, make_product, monkeypatch):
    user, _ = customer
    product = make_product(user)

    def boom(db, shipping):
        raise RuntimeError("disk full")

    monkeypatch.setattr(order_repo, "insert_shipping", boom)

    with pytest.raises(RuntimeError):
        _create(db, user, product)

    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    assert db.query(Payment).count() == 0


def test_unknown_product_is_not_found(db, customer, make_product):
    user, _ = customer
    make_product(user)
    missing = uuid.uuid4()

    with pytest.raises(NotFoundError) as exc:
        orders_uc.create_order(db, user, OrderCreate.model_validate(order_payload(missing)))

    assert str(missing) in exc.value.message
    assert db.query(Order).count() == 0


def test_reused_payment_reference_conflicts(db, customer, make_product):
    user, _ = customer
    product = make_product(user)
    payment = {"id": "pi_shared", "status": "succeeded"}
    first = _create(db, user, product, paymentInfo=payment)

    with pytest.raises(ConflictError):
        _create(db, user, product, paymentInfo=payment)

    assert [o.id for o in orders_uc.get_all_orders(db)] == [first.id]


def test_get_order_missing_is_not_found(db):
    with pytest.raises(NotFoundError):
        orders_uc.get_order(db, uuid.uuid4())


def test_get_order_hides_other_users_orders(db, make_user, make_product):
    owner, _ = make_user()
    stranger, _ = make_user()
    order = _create(db, owner, make_product(owner))

    with pytest.raises(NotFoundError):
        orders_uc.get_order(db, order.id, principal=stranger)
    assert orders_uc.get_order(db, order.id, principal=owner).id == order.id


def test_get_order_without_payment_is_not_found(db, customer, make_product):
    user, _ = customer
    order = _create(db, user, make_product(user))
    db.query(Payment).filter(Payment.order_id == order.id).delete()
    db.commit()

    with pytest.raises(NotFoundError):
        orders_uc.get_order(db, order.id)


def test_bulk_read_pairs_dependents_by_order(db, make_user, make_product):
    first, _ = make_user()
    second, _ = make_user()
    product = make_product(first)
    a = _create(db, first, product)
    b = _create(db, second, product, quantity=3)
    c = _create(db, first, product, quantity=2)

    orders = orders_uc.get_all_orders(db)

    assert {o.id for o in orders} == {a.id, b.id, c.id}
    for order in orders:
        assert order.shipping_info.order_id == order.id
        assert order.payment_info.order_id == order.id
        assert all(item.order_id == order.id for item in order.order_items)

    mine = orders_uc.get_user_orders(db, first)
    assert {o.id for o in mine} == {a.id, c.id}


def test_status_transition_decrements_stock(db, customer, make_product, bus):
    user, _ = customer
    product = make_product(user, stock=10)
    order = _create(db, user, product, quantity=2)

    shipped = orders_uc.update_order_status(db, order.id, "Shipped", bus=bus)
    db.refresh(product)
    assert shipped.order_status == "Shipped"
    assert shipped.delivered_at is None
    assert product.stock == 8
    assert bus.published[-1][0] == ORDER_UPDATED

    delivered = orders_uc.update_order_status(db, order.id, ORDER_DELIVERED)
    db.refresh(product)
    assert delivered.delivered_at is not None
    assert product.stock == 6


def test_delivered_order_cannot_change(db, customer, make_product):
    user, _ = customer
    product = make_product(user, stock=10)
    order = _create(db, user, product)
    orders_uc.update_order_status(db, order.id, ORDER_DELIVERED)

    with pytest.raises(OrderAlreadyDelivered):
        orders_uc.update_order_status(db, order.id, "Shipped")
    db.refresh(product)
    assert product.stock == 9


def test_insufficient_stock_rolls_back_transition(db, customer, make_product):
    user, _ = customer
    plenty = make_product(user, name="Pear", stock=10)
    scarce = make_product(user, name="Plum", stock=1)
    payload = order_payload(plenty.id, quantity=2)
    payload["orderItems"].append(
        {"product": str(scarce.id), "name": "Plum", "price": 50, "quantity": 2, "image": ""}
    )
    order = orders_uc.create_order(db, user, OrderCreate.model_validate(payload))

    with pytest.raises(InsufficientStock):
        orders_uc.update_order_status(db, order.id, "Shipped")

    db.refresh(plenty)
    db.refresh(scarce)
    assert plenty.stock == 10
    assert scarce.stock == 1
    assert orders_uc.get_order(db, order.id).order_status == ORDER_PROCESSING


def test_update_missing_order_is_not_found(db):
    with pytest.raises(NotFoundError):
        orders_uc.update_order_status(db, uuid.uuid4(), "Shipped")


def test_delete_order_cascades(db, customer, make_product, bus):
    user, _ = customer
    order = _create(db, user, make_product(user))

    orders_uc.delete_order(db, order.id, bus=bus)

    assert db.query(Order).count() == 0
    assert db.query(Shipping).count() == 0
    assert db.query(OrderItem).count() == 0
    assert db.query(Payment).count() == 0
    assert bus.published[-1] == (ORDER_DELETED, {
        "order_id": str(order.id),
        "user_id": str(user.id),
        "status": ORDER_PROCESSING,
        "total_price": 130,
    })
