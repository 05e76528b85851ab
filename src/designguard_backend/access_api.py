import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth_helper import CurrentUser, get_current_user, require_capability
from .deps import get_db
from .marketplace import access_flow
from .marketplace.models import Capability
from .marketplace.schemas import AccessRequestReq, AccessRespondReq

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["access"])


@router.get("/factories")
def list_factories(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    """Factories with the caller's access status for each."""
    require_capability(user, Capability.request_access)
    return access_flow.list_factories(db, user.id)


@router.post("/access/request")
def request_access(req: AccessRequestReq, user: CurrentUser = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    require_capability(user, Capability.request_access)
    request = access_flow.request_access(db, user.id, req.factory_id)
    return {"msg": "Access request sent", "request": access_flow.serialize_request(request)}


@router.get("/access/pending")
def pending_requests(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    require_capability(user, Capability.review_access)
    return access_flow.pending_requests(db, user.id)


@router.put("/access/respond/{request_id}")
def respond(request_id: int, req: AccessRespondReq, user: CurrentUser = Depends(get_current_user),
            db: Session = Depends(get_db)):
    """Approve for a number of days, or reject."""
    require_capability(user, Capability.review_access)
    request = access_flow.respond(db, user.id, request_id, req.status, req.durationDays)
    return {"msg": f"Request {req.status}", "request": access_flow.serialize_request(request)}
