# marketplace/order_flow.py
import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..errors import AuthorizationError, NotFoundError, ValidationError
from .access_flow import has_active_access
from .models import Design, Order, OrderStatus, User, UserRole
from .schemas import page_window, total_pages

logger = logging.getLogger(__name__)

MAX_QUANTITY = 10000
VALID_STATUSES = [s.value for s in OrderStatus]


def parse_status(status: Optional[str]) -> OrderStatus:
    try:
        return OrderStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")


def order_view(order: Order) -> Dict[str, Any]:
    """Order row plus the design summary and both participants' emails."""
    return {
        "id": order.id,
        "vepari_id": order.vepari_id,
        "factory_id": order.factory_id,
        "design_id": order.design_id,
        "quantity": order.quantity,
        "printing_note": order.printing_note,
        "status": order.status.value,
        "order_date": order.order_date,
        "updated_at": order.updated_at,
        "design_number": order.design.design_number if order.design else None,
        "design_image": order.design.image_url if order.design else None,
        "color_variants": order.design.color_variants if order.design else None,
        "vepari_email": order.vepari.email if order.vepari else None,
        "factory_email": order.factory.email if order.factory else None,
    }


def place_order(db: Session, vepari_id: int, design_id: Optional[int], factory_id: Optional[int],
                quantity: Optional[int], printing_note: Optional[str] = None) -> Order:
    if not design_id or not factory_id or not quantity:
        raise ValidationError("Design ID, Factory ID, and Quantity are required")
    if quantity <= 0 or quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity must be between 1 and {MAX_QUANTITY}")

    design = db.scalar(
        select(Design)
        .join(User, Design.factory_id == User.id)
        .where(Design.id == design_id, Design.factory_id == factory_id, User.role == UserRole.factory_owner)
    )
    if design is None:
        raise NotFoundError("Design not found or does not belong to the specified factory")
    if not has_active_access(db, vepari_id, factory_id):
        raise AuthorizationError(
            "You need approved access to place orders with this factory. Please request access first."
        )

    order = Order(
        vepari_id=vepari_id,
        factory_id=factory_id,
        design_id=design_id,
        quantity=quantity,
        printing_note=(printing_note or "").strip() or None,
        status=OrderStatus.pending,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("Vepari %s placed order %s with factory %s", vepari_id, order.id, factory_id)
    return order


def list_orders(db: Session, user_id: int, role: UserRole, status: Optional[str] = None,
                page: int = 1, limit: int = 20) -> Dict[str, Any]:
    page, limit, offset = page_window(page, limit)
    own_column = Order.vepari_id if role is UserRole.vepari else Order.factory_id
    conditions = [own_column == user_id]
    if status:
        conditions.append(Order.status == parse_status(status))

    orders = db.scalars(
        select(Order)
        .where(*conditions)
        .order_by(Order.order_date.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
    ).unique().all()
    total = db.scalar(select(func.count()).select_from(Order).where(*conditions))
    pages = total_pages(total, limit)
    return {
        "orders": [order_view(o) for o in orders],
        "pagination": {
            "currentPage": page,
            "totalPages": pages,
            "totalOrders": total,
            "hasMore": page < pages,
        },
    }


def get_order(db: Session, user_id: int, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if user_id not in (order.vepari_id, order.factory_id):
        raise AuthorizationError("Access denied")
    return order


def update_status(db: Session, factory_id: int, order_id: int, status: Optional[str]) -> Order:
    new_status = parse_status(status)
    order = db.scalar(select(Order).where(Order.id == order_id, Order.factory_id == factory_id))
    if order is None:
        raise NotFoundError("Order not found or access denied")
    order.status = new_status
    db.commit()
    db.refresh(order)
    logger.info("Factory %s set order %s to %s", factory_id, order_id, new_status.value)
    return order
