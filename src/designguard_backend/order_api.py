import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .auth_helper import CurrentUser, get_current_user, require_capability
from .deps import get_db, get_notifier
from .errors import DesignGuardError
from .marketplace import order_flow
from .marketplace.models import Capability
from .marketplace.schemas import OrderStatusReq, PlaceOrderReq
from .services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["orders"])


def _placed(db: Session, vepari_id: int, req: PlaceOrderReq):
    order = order_flow.place_order(db, vepari_id, req.designId, req.factoryId, req.quantity, req.printingNote)
    return order, order_flow.order_view(order)


def _updated(db: Session, factory_id: int, order_id: int, status: str):
    order = order_flow.update_status(db, factory_id, order_id, status)
    return order, order_flow.order_view(order)


@router.post("/orders")
async def place_order(req: PlaceOrderReq, user: CurrentUser = Depends(get_current_user),
                      db: Session = Depends(get_db), notifier: NotificationService = Depends(get_notifier)):
    """Place a pending order and notify the factory."""
    require_capability(user, Capability.place_orders)
    logger.info("Place order: vepari=%s design=%s factory=%s qty=%s",
                user.id, req.designId, req.factoryId, req.quantity)
    order, view = await run_in_threadpool(_placed, db, user.id, req)

    # never fail the order because of the notification
    try:
        await notifier.notify_new_order(db, order.factory_id, view)
    except DesignGuardError as e:
        logger.error("New-order notification for order %s failed: %s", order.id, e.message)

    return JSONResponse(status_code=201, content=jsonable_encoder({
        "msg": "Order placed successfully",
        "order": view,
    }))


@router.get("/orders")
def get_orders(status: Optional[str] = Query(None), page: int = Query(1), limit: int = Query(20),
               user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return order_flow.list_orders(db, user.id, user.role, status, page, limit)


@router.get("/orders/{order_id}")
def get_order(order_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return order_flow.order_view(order_flow.get_order(db, user.id, order_id))


@router.put("/orders/{order_id}/status")
async def update_order_status(order_id: int, req: OrderStatusReq, user: CurrentUser = Depends(get_current_user),
                              db: Session = Depends(get_db),
                              notifier: NotificationService = Depends(get_notifier)):
    require_capability(user, Capability.update_order_status)
    order, view = await run_in_threadpool(_updated, db, user.id, order_id, req.status)

    try:
        await notifier.notify_order_status_update(db, order.vepari_id, view, order.status.value)
    except DesignGuardError as e:
        logger.error("Status notification for order %s failed: %s", order.id, e.message)

    return {"msg": "Order status updated successfully", "order": view}
