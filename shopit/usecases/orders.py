"""
Order workflows.

Creation and fulfilment each run as a single database transaction, so a
failure at any step leaves no partial order behind.
"""
import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import transaction
from ..errors import ConflictError, InsufficientStock, NotFoundError, OrderAlreadyDelivered
from ..messaging.bus import ORDER_CREATED, ORDER_DELETED, ORDER_UPDATED, order_event, publish_safely
from ..models import (
    ORDER_DELIVERED,
    ORDER_PROCESSING,
    ROLE_ADMIN,
    Order,
    OrderItem,
    Payment,
    Shipping,
    User,
    utcnow,
)
from ..repositories import orders as order_repo
from ..repositories import products as product_repo
from ..schemas import OrderCreate, OrderItemOut, OrderOut, PaymentOut, ShippingOut

logger = logging.getLogger(__name__)


def compose_order(
    order: Order,
    shipping: Optional[Shipping],
    items: List[OrderItem],
    payment: Optional[Payment],
) -> OrderOut:
    return OrderOut(
        id=order.id,
        shipping_info=ShippingOut.model_validate(shipping) if shipping else None,
        order_items=[OrderItemOut.model_validate(item) for item in items],
        payment_info=PaymentOut.model_validate(payment) if payment else None,
        user_id=order.user_id,
        paid_at=order.paid_at,
        item_price=order.item_price,
        tax_price=order.tax_price,
        shipping_price=order.shipping_price,
        total_price=order.total_price,
        order_status=order.order_status,
        delivered_at=order.delivered_at,
        created_at=order.created_at,
    )


def create_order(
    db: Session, principal: User, payload: OrderCreate, bus=None, timeout_ms: int = 0
) -> OrderOut:
    """Persists the order header, its shipping, items and payment as one unit.

    Every ordered product must exist and the payment reference must be unused.
    """
    with transaction(db, timeout_ms):
        for line in payload.order_items:
            if product_repo.fetch_product_by_id(db, line.product_id) is None:
                raise NotFoundError(f"product {line.product_id} not found")
        if order_repo.fetch_payment_by_id(db, payload.payment_info.id) is not None:
            raise ConflictError(f"payment {payload.payment_info.id} is already used by another order")

        order = order_repo.insert_order(
            db,
            Order(
                item_price=payload.item_price,
                tax_price=payload.tax_price,
                shipping_price=payload.shipping_price,
                total_price=payload.total_price,
                order_status=ORDER_PROCESSING,
                paid_at=utcnow(),
                delivered_at=None,
                user_id=principal.id,
            ),
        )

        info = payload.shipping_info
        shipping = order_repo.insert_shipping(
            db,
            Shipping(
                address=info.address,
                city=info.city,
                phone=info.phone,
                postal=info.postal,
                country=info.country,
                order_id=order.id,
            ),
        )

        items = [
            order_repo.insert_item(
                db,
                OrderItem(
                    name=line.name,
                    price=line.price,
                    quantity=line.quantity,
                    image=line.image,
                    product_id=line.product_id,
                    order_id=order.id,
                ),
            )
            for line in payload.order_items
        ]

        try:
            payment = order_repo.insert_payment(
                db,
                Payment(id=payload.payment_info.id, status=payload.payment_info.status, order_id=order.id),
            )
        except IntegrityError as e:
            # Lost a race with a concurrent order using the same reference.
            raise ConflictError(f"payment {payload.payment_info.id} is already used by another order") from e

    logger.info("Order %s created for user %s", order.id, principal.id)
    publish_safely(bus, ORDER_CREATED, order_event(order))
    return compose_order(order, shipping, items, payment)


def get_order(db: Session, order_id: UUID, principal: Optional[User] = None) -> OrderOut:
    """Reads one order with its dependents; any missing part fails the read.

    A non-admin principal only sees their own orders.
    """
    order = order_repo.fetch_order_by_id(db, order_id)
    if order is None:
        raise NotFoundError(f"order {order_id} not found")
    if principal is not None and principal.role != ROLE_ADMIN and order.user_id != principal.id:
        raise NotFoundError(f"order {order_id} not found")

    shipping = order_repo.fetch_shipping_by_order(db, order_id)
    if shipping is None:
        raise NotFoundError(f"shipping for order {order_id} not found")

    items = order_repo.fetch_items_by_order(db, order_id)

    payment = order_repo.fetch_payment_by_order(db, order_id)
    if payment is None:
        raise NotFoundError(f"payment for order {order_id} not found")

    return compose_order(order, shipping, items, payment)


def _attach_dependents(db: Session, orders: List[Order]) -> List[OrderOut]:
    ids = [order.id for order in orders]
    shippings: Dict[UUID, Shipping] = order_repo.fetch_shippings(db, ids)
    items = order_repo.fetch_items(db, ids)
    payments: Dict[UUID, Payment] = order_repo.fetch_payments(db, ids)
    return [
        compose_order(order, shippings.get(order.id), items.get(order.id, []), payments.get(order.id))
        for order in orders
    ]


def get_user_orders(db: Session, principal: User) -> List[OrderOut]:
    return _attach_dependents(db, order_repo.fetch_orders_by_user(db, principal.id))


def get_all_orders(db: Session) -> List[OrderOut]:
    return _attach_dependents(db, order_repo.fetch_all_orders(db))


def update_order_status(
    db: Session, order_id: UUID, status: str, bus=None, timeout_ms: int = 0
) -> OrderOut:
    """
    Moves an order to `status`.

    Stock for every ordered product is decremented by the ordered quantity;
    a product without enough stock aborts the whole transition. The
    delivered timestamp is stamped only for "Delivered" and cleared otherwise.
    """
    with transaction(db, timeout_ms):
        order = order_repo.fetch_order_by_id(db, order_id, for_update=True)
        if order is None:
            raise NotFoundError(f"order {order_id} not found")
        if order.order_status == ORDER_DELIVERED:
            raise OrderAlreadyDelivered()

        items = order_repo.fetch_items_by_order(db, order_id)
        for item in items:
            product = product_repo.fetch_product_by_id(db, item.product_id, for_update=True)
            if product is None:
                raise NotFoundError(f"product {item.product_id} not found")
            if product.stock < item.quantity:
                raise InsufficientStock(
                    f"not enough stock for {product.name}: have {product.stock}, need {item.quantity}"
                )
            product_repo.adjust_stock(db, product, item.quantity)

        order.order_status = status
        order.delivered_at = utcnow() if status == ORDER_DELIVERED else None
        order_repo.update_order(db, order)

    logger.info("Order %s moved to %s", order_id, status)
    publish_safely(bus, ORDER_UPDATED, order_event(order))
    return get_order(db, order_id)


def delete_order(db: Session, order_id: UUID, bus=None) -> None:
    with transaction(db):
        order = order_repo.fetch_order_by_id(db, order_id)
        if order is None:
            raise NotFoundError(f"order {order_id} not found")
        event = order_event(order)
        order_repo.delete_order_by_id(db, order_id)
    logger.info("Order %s deleted", order_id)
    publish_safely(bus, ORDER_DELETED, event)
