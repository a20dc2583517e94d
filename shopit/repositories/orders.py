from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..models import Order, OrderItem, Payment, Shipping


def insert_order(db: Session, order: Order) -> Order:
    db.add(order)
    # Flush so the generated order id is available to the dependents.
    db.flush()
    return order


def insert_shipping(db: Session, shipping: Shipping) -> Shipping:
    db.add(shipping)
    db.flush()
    return shipping


def insert_item(db: Session, item: OrderItem) -> OrderItem:
    db.add(item)
    db.flush()
    return item


def insert_payment(db: Session, payment: Payment) -> Payment:
    db.add(payment)
    db.flush()
    return payment


def fetch_payment_by_id(db: Session, payment_id: str) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.id == payment_id).first()


def fetch_order_by_id(db: Session, order_id: UUID, for_update: bool = False) -> Optional[Order]:
    query = db.query(Order).filter(Order.id == order_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def fetch_orders_by_user(db: Session, user_id: UUID) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.asc())
        .all()
    )


def fetch_all_orders(db: Session) -> List[Order]:
    return db.query(Order).order_by(Order.created_at.asc()).all()


def fetch_shipping_by_order(db: Session, order_id: UUID) -> Optional[Shipping]:
    return db.query(Shipping).filter(Shipping.order_id == order_id).first()


def fetch_items_by_order(db: Session, order_id: UUID) -> List[OrderItem]:
    return (
        db.query(OrderItem)
        .filter(OrderItem.order_id == order_id)
        .order_by(OrderItem.created_at)
        .all()
    )


def fetch_payment_by_order(db: Session, order_id: UUID) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.order_id == order_id).first()


def fetch_shippings(db: Session, order_ids: Iterable[UUID]) -> Dict[UUID, Shipping]:
    """Bulk lookup keyed by order id."""
    ids = list(order_ids)
    if not ids:
        return {}
    rows = db.query(Shipping).filter(Shipping.order_id.in_(ids)).all()
    return {row.order_id: row for row in rows}


def fetch_items(db: Session, order_ids: Iterable[UUID]) -> Dict[UUID, List[OrderItem]]:
    ids = list(order_ids)
    grouped: Dict[UUID, List[OrderItem]] = {oid: [] for oid in ids}
    if not ids:
        return grouped
    rows = (
        db.query(OrderItem)
        .filter(OrderItem.order_id.in_(ids))
        .order_by(OrderItem.created_at)
        .all()
    )
    for row in rows:
        grouped[row.order_id].append(row)
    return grouped


def fetch_payments(db: Session, order_ids: Iterable[UUID]) -> Dict[UUID, Payment]:
    ids = list(order_ids)
    if not ids:
        return {}
    rows = db.query(Payment).filter(Payment.order_id.in_(ids)).all()
    return {row.order_id: row for row in rows}


def update_order(db: Session, order: Order) -> Order:
    db.add(order)
    db.flush()
    return order


def delete_order_by_id(db: Session, order_id: UUID) -> int:
    # Shipping, items and payment go with it through ON DELETE CASCADE.
    return db.query(Order).filter(Order.id == order_id).delete(synchronize_session=False)


def update_payment_status(db: Session, order_id: UUID, status: str) -> int:
    return (
        db.query(Payment)
        .filter(Payment.order_id == order_id)
        .update({Payment.status: status}, synchronize_session=False)
    )
