import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth_helper import CurrentUser, get_current_user
from .deps import get_db, get_notifier
from .errors import NotFoundError
from .services.notification_service import NotificationService, serialize_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/")
def get_notifications(page: int = Query(1), limit: int = Query(20),
                      user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db),
                      notifier: NotificationService = Depends(get_notifier)):
    result = notifier.get_user_notifications(db, user.id, page, limit)
    return {
        "success": True,
        "notifications": result["notifications"],
        "pagination": {
            "currentPage": result["page"],
            "totalPages": result["totalPages"],
            "total": result["total"],
        },
    }


@router.put("/read-all")
def mark_all_as_read(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db),
                     notifier: NotificationService = Depends(get_notifier)):
    updated = notifier.mark_all_as_read(db, user.id)
    return {"success": True, "msg": "All notifications marked as read", "updated": updated}


@router.put("/{notification_id}/read")
def mark_as_read(notification_id: int, user: CurrentUser = Depends(get_current_user),
                 db: Session = Depends(get_db), notifier: NotificationService = Depends(get_notifier)):
    notification = notifier.mark_as_read(db, notification_id, user.id)
    if notification is None:
        raise NotFoundError("Notification not found")
    return {
        "success": True,
        "msg": "Notification marked as read",
        "notification": serialize_notification(notification),
    }


@router.get("/unread-count")
def get_unread_count(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db),
                     notifier: NotificationService = Depends(get_notifier)):
    return {"success": True, "unreadCount": notifier.get_unread_count(db, user.id)}
