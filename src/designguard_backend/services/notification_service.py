# services/notification_service.py
import logging
from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import BestEffortFailure, PersistenceError
from ..marketplace.chat_models import Notification
from ..marketplace.schemas import page_window, total_pages
from ..realtime import SessionRegistry

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed and is being prepared.",
    "in_progress": "Your order is now in progress.",
    "completed": "Your order has been completed!",
    "cancelled": "Your order has been cancelled.",
}


def notification_payload(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
        "isRead": notification.is_read,
    }


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }


class NotificationService:
    """Durably records notifications, then pushes them live when it can."""

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    def _store(self, db: Session, notification: Notification) -> Notification:
        try:
            db.add(notification)
            db.commit()
            db.refresh(notification)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Error creating notification for user %s: %s", notification.user_id, e)
            raise PersistenceError("Failed to create notification") from e
        return notification

    async def create(self, db: Session, user_id: int, type: str, title: str, message: str,
                     data: Optional[Dict[str, Any]] = None) -> Notification:
        notification = Notification(user_id=user_id, type=type, title=title, message=message, data=data)
        await run_in_threadpool(self._store, db, notification)

        # the row is the success criterion, the push is best effort
        try:
            await self.registry.emit_to_user(user_id, "new_notification", notification_payload(notification))
            logger.info("Real-time notification sent to user %s", user_id)
        except BestEffortFailure as e:
            logger.info("Live push skipped for user %s: %s", user_id, e.message)
        except Exception as e:
            logger.warning("Live push to user %s failed: %s", user_id, e)

        return notification

    async def notify_new_order(self, db: Session, factory_id: int, order: Dict[str, Any]) -> Notification:
        design_label = order.get("design_number") or order.get("design_id")
        title = f"New Order #{order['id']}"
        message = (f"You have received a new order from {order.get('vepari_email')} "
                   f"for {order.get('quantity')} units of Design {design_label}.")
        return await self.create(db, factory_id, "new_order", title, message, {
            "orderId": order["id"],
            "vepariEmail": order.get("vepari_email"),
            "designId": order.get("design_id"),
            "quantity": order.get("quantity"),
        })

    async def notify_order_status_update(self, db: Session, vepari_id: int, order: Dict[str, Any],
                                         new_status: str) -> Notification:
        title = f"Order #{order['id']} {new_status[:1].upper() + new_status[1:]}"
        message = STATUS_MESSAGES.get(new_status, f"Your order status has been updated to {new_status}.")
        return await self.create(db, vepari_id, "order_status_update", title, message, {
            "orderId": order["id"],
            "factoryEmail": order.get("factory_email"),
            "designId": order.get("design_id"),
            "status": new_status,
        })

    def get_user_notifications(self, db: Session, user_id: int, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        page, limit, offset = page_window(page, limit)
        rows = db.scalars(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
        total = db.scalar(select(func.count()).select_from(Notification).where(Notification.user_id == user_id))
        return {
            "notifications": [serialize_notification(n) for n in rows],
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }

    def mark_as_read(self, db: Session, notification_id: int, user_id: int) -> Optional[Notification]:
        notification = db.scalar(
            select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        if notification is None:
            return None
        notification.is_read = True
        db.commit()
        return notification

    def mark_all_as_read(self, db: Session, user_id: int) -> int:
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        db.commit()
        return result.rowcount

    def get_unread_count(self, db: Session, user_id: int) -> int:
        return db.scalar(
            select(func.count()).select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
