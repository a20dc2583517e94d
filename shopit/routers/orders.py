from uuid import UUID

from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..deps import get_current_user, get_event_bus, get_settings, require_admin
from ..models import User
from ..schemas import OrderCreate
from ..usecases import orders as orders_uc
from ..validator import Validator

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


# Creates a new order for the logged-in user.
@router.post("/new")
def create_order(
    payload: OrderCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    bus=Depends(get_event_bus),
):
    order = orders_uc.create_order(db, user, payload, bus=bus, timeout_ms=settings.db_statement_timeout_ms)
    return {"success": True, "order": order}


# Registered before /{order_id} so "me" is not parsed as an id.
@router.get("/me")
def get_user_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "orders": orders_uc.get_user_orders(db, user)}


@router.get("/admin/orders")
def get_all_orders(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    orders = orders_uc.get_all_orders(db)
    total_amount = sum(order.total_price for order in orders)
    return {"success": True, "totalAmount": total_amount, "orders": orders}


@router.put("/admin/order/{order_id}")
def update_order(
    order_id: UUID,
    status: str = Form(""),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    bus=Depends(get_event_bus),
):
    """Moves an order to a new status (ADMIN)."""
    status = status.strip()
    v = Validator()
    v.check(status != "", "status", "status field is empty")
    v.raise_if_invalid()

    order = orders_uc.update_order_status(
        db, order_id, status, bus=bus, timeout_ms=settings.db_statement_timeout_ms
    )
    return {"success": True, "order": order}


@router.delete("/admin/order/{order_id}")
def delete_order(
    order_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    bus=Depends(get_event_bus),
):
    orders_uc.delete_order(db, order_id, bus=bus)
    return {"success": True}


@router.get("/{order_id}")
def get_single_order(
    order_id: UUID, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return {"success": True, "order": orders_uc.get_order(db, order_id, principal=user)}
