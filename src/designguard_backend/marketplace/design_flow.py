# marketplace/design_flow.py
import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import Config
from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..services.media_store import ALLOWED_IMAGE_TYPES
from .access_flow import get_factory, has_active_access
from .models import Design, Order
from .schemas import DesignOut, page_window, total_pages

logger = logging.getLogger(__name__)

DUPLICATE_DESIGN = "Design number already exists for this factory"


def check_image(content_type: Optional[str], size: int):
    if (content_type or "").lower() not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Only JPEG, PNG and WebP images are allowed")
    if size <= 0:
        raise ValidationError("Design image is required")
    if size > Config.MAX_UPLOAD_BYTES:
        raise ValidationError(f"Image must be {Config.MAX_UPLOAD_BYTES // (1024 * 1024)}MB or smaller")


def ensure_number_free(db: Session, factory_id: int, design_number: str, exclude_id: Optional[int] = None):
    stmt = select(Design.id).where(Design.factory_id == factory_id, Design.design_number == design_number)
    if exclude_id is not None:
        stmt = stmt.where(Design.id != exclude_id)
    if db.scalar(stmt) is not None:
        raise ConflictError(DUPLICATE_DESIGN)


def serialize_design(design: Design) -> Dict[str, Any]:
    return DesignOut.model_validate(design).model_dump()


def create_design(db: Session, factory_id: int, design_number: str, image_url: str,
                  color_variants: Optional[str] = None) -> Design:
    design = Design(
        factory_id=factory_id,
        design_number=design_number,
        image_url=image_url,
        color_variants=color_variants,
    )
    db.add(design)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(DUPLICATE_DESIGN)
    db.refresh(design)
    logger.info("Factory %s uploaded design %s (%s)", factory_id, design.id, design_number)
    return design


def list_designs(db: Session, viewer_id: int, factory_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """Designs of a factory, newest first; non-owners need active access."""
    page, limit, offset = page_window(page, limit, max_limit=50)
    if viewer_id != factory_id:
        get_factory(db, factory_id)
        if not has_active_access(db, viewer_id, factory_id):
            raise AuthorizationError("Access denied. Request access from this factory first.")

    designs = db.scalars(
        select(Design)
        .where(Design.factory_id == factory_id)
        .order_by(Design.created_at.desc(), Design.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()
    total = db.scalar(select(func.count()).select_from(Design).where(Design.factory_id == factory_id))
    pages = total_pages(total, limit)
    return {
        "designs": [serialize_design(d) for d in designs],
        "pagination": {
            "currentPage": page,
            "totalPages": pages,
            "totalCount": total,
            "limit": limit,
            "hasNextPage": page < pages,
            "hasPrevPage": page > 1,
            "nextPage": page + 1 if page < pages else None,
            "prevPage": page - 1 if page > 1 else None,
        },
    }


def get_owned_design(db: Session, design_id: int, factory_id: int) -> Design:
    design = db.get(Design, design_id)
    if design is None:
        raise NotFoundError("Design not found")
    if design.factory_id != factory_id:
        raise AuthorizationError("Not authorized to modify this design")
    return design


def update_design(db: Session, design: Design, design_number: Optional[str] = None,
                  color_variants: Optional[str] = None, image_url: Optional[str] = None) -> Design:
    if design_number is not None:
        design.design_number = design_number
    if color_variants is not None:
        design.color_variants = color_variants
    if image_url is not None:
        design.image_url = image_url
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(DUPLICATE_DESIGN)
    db.refresh(design)
    return design


def delete_design(db: Session, design: Design):
    if db.scalar(select(Order.id).where(Order.design_id == design.id).limit(1)) is not None:
        raise ConflictError("Design has orders and cannot be deleted")
    db.delete(design)
    db.commit()
    logger.info("Deleted design %s of factory %s", design.id, design.factory_id)
