# marketplace/access_flow.py
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from ..config import Config
from ..errors import AuthorizationError, NotFoundError
from .database import utcnow
from .models import AccessStatus, DesignAccessRequest, FactoryProfile, User, UserRole, VepariProfile

logger = logging.getLogger(__name__)


def get_factory(db: Session, factory_id: int) -> User:
    factory = db.get(User, factory_id)
    if factory is None or factory.role is not UserRole.factory_owner:
        raise NotFoundError("Factory not found")
    return factory


def has_active_access(db: Session, vepari_id: int, factory_id: int, now=None) -> bool:
    request = db.scalar(
        select(DesignAccessRequest)
        .where(DesignAccessRequest.vepari_id == vepari_id, DesignAccessRequest.factory_id == factory_id)
    )
    return request is not None and request.is_active(now or utcnow())


def serialize_request(request: DesignAccessRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "vepari_id": request.vepari_id,
        "factory_id": request.factory_id,
        "status": request.status.value,
        "access_granted_at": request.access_granted_at,
        "access_expires_at": request.access_expires_at,
        "created_at": request.created_at,
    }


def list_factories(db: Session, vepari_id: int) -> List[Dict[str, Any]]:
    """All factories with profile summary and this vepari's access state."""
    now = utcnow()
    rows = db.execute(
        select(User, FactoryProfile, DesignAccessRequest)
        .outerjoin(FactoryProfile, FactoryProfile.user_id == User.id)
        .outerjoin(
            DesignAccessRequest,
            and_(DesignAccessRequest.factory_id == User.id, DesignAccessRequest.vepari_id == vepari_id),
        )
        .where(User.role == UserRole.factory_owner)
        .order_by(User.full_name.asc(), User.id.asc())
    ).all()

    factories = []
    for user, profile, request in rows:
        factories.append({
            "id": user.id,
            "full_name": user.full_name,
            "email": user.email,
            "company_name": profile.company_name if profile else None,
            "factory_address": profile.factory_address if profile else None,
            "logo_url": profile.logo_url if profile else None,
            "profile_picture_url": profile.profile_picture_url if profile else None,
            "access_status": request.status.value if request else None,
            "access_expires_at": request.access_expires_at if request else None,
            "has_access": bool(request and request.is_active(now)),
        })
    return factories


def request_access(db: Session, vepari_id: int, factory_id: int) -> DesignAccessRequest:
    get_factory(db, factory_id)
    request = db.scalar(
        select(DesignAccessRequest)
        .where(DesignAccessRequest.vepari_id == vepari_id, DesignAccessRequest.factory_id == factory_id)
    )
    if request is None:
        request = DesignAccessRequest(vepari_id=vepari_id, factory_id=factory_id)
        db.add(request)
    request.status = AccessStatus.pending
    request.access_granted_at = None
    request.access_expires_at = None
    db.commit()
    db.refresh(request)
    logger.info("Vepari %s requested access to factory %s", vepari_id, factory_id)
    return request


def pending_requests(db: Session, factory_id: int) -> List[Dict[str, Any]]:
    rows = db.execute(
        select(DesignAccessRequest, User, VepariProfile)
        .join(User, DesignAccessRequest.vepari_id == User.id)
        .outerjoin(VepariProfile, VepariProfile.user_id == User.id)
        .where(DesignAccessRequest.factory_id == factory_id, DesignAccessRequest.status == AccessStatus.pending)
        .order_by(DesignAccessRequest.created_at.desc(), DesignAccessRequest.id.desc())
    ).all()
    result = []
    for request, vepari, profile in rows:
        item = serialize_request(request)
        item.update({
            "vepari_name": vepari.full_name,
            "vepari_email": vepari.email,
            "vepari_brand_name": profile.vepari_brand_name if profile else None,
            "city": profile.city if profile else None,
        })
        result.append(item)
    return result


def respond(db: Session, factory_id: int, request_id: int, status: str,
            duration_days: Optional[int] = None) -> DesignAccessRequest:
    request = db.get(DesignAccessRequest, request_id)
    if request is None:
        raise NotFoundError("Request not found")
    if request.factory_id != factory_id:
        raise AuthorizationError("Not authorized to respond to this request")

    request.status = AccessStatus(status)
    if request.status is AccessStatus.approved:
        now = utcnow()
        request.access_granted_at = now
        request.access_expires_at = now + timedelta(days=duration_days or Config.DEFAULT_ACCESS_DAYS)
    else:
        request.access_granted_at = None
        request.access_expires_at = None
    db.commit()
    logger.info("Factory %s %s access request %s", factory_id, status, request_id)
    return request
