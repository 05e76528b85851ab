import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from .auth_helper import CurrentUser, get_current_user, require_capability
from .deps import get_db, get_media_store
from .errors import ValidationError
from .marketplace import design_flow
from .marketplace.models import Capability
from .services.media_store import DESIGN_FOLDER, MediaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["designs"])


async def _read_image(image: Optional[UploadFile]) -> Optional[bytes]:
    if image is None:
        return None
    data = await image.read()
    design_flow.check_image(image.content_type, len(data))
    return data


@router.post("/designs")
async def upload_design(design_number: Optional[str] = Form(None),
                        color_variants: Optional[str] = Form(None),
                        image: Optional[UploadFile] = File(None),
                        user: CurrentUser = Depends(get_current_user),
                        db: Session = Depends(get_db),
                        media: MediaStore = Depends(get_media_store)):
    """Upload a design image and add it to the caller's catalog."""
    require_capability(user, Capability.publish_designs)
    design_number = (design_number or "").strip()
    if not design_number:
        raise ValidationError("Design number is required")
    if image is None:
        raise ValidationError("Design image is required")
    data = await _read_image(image)
    await run_in_threadpool(design_flow.ensure_number_free, db, user.id, design_number)

    uploaded = await run_in_threadpool(media.upload, data, DESIGN_FOLDER)
    design = await run_in_threadpool(design_flow.create_design, db, user.id, design_number, uploaded["url"],
                                     (color_variants or "").strip() or None)
    return JSONResponse(status_code=201, content=jsonable_encoder({
        "msg": "Design uploaded successfully",
        "design": design_flow.serialize_design(design),
    }))


@router.get("/designs/{factory_id}")
def get_designs(factory_id: int, page: int = Query(1), limit: int = Query(10),
                user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return design_flow.list_designs(db, user.id, factory_id, page, limit)


@router.put("/designs/{design_id}")
async def update_design(design_id: int,
                        design_number: Optional[str] = Form(None),
                        color_variants: Optional[str] = Form(None),
                        image: Optional[UploadFile] = File(None),
                        user: CurrentUser = Depends(get_current_user),
                        db: Session = Depends(get_db),
                        media: MediaStore = Depends(get_media_store)):
    require_capability(user, Capability.publish_designs)
    if design_number is not None:
        design_number = design_number.strip() or None
    if design_number is None and color_variants is None and image is None:
        raise ValidationError("Provide at least one field to update")

    design = await run_in_threadpool(design_flow.get_owned_design, db, design_id, user.id)
    if design_number is not None:
        await run_in_threadpool(design_flow.ensure_number_free, db, user.id, design_number, exclude_id=design.id)

    image_url = None
    data = await _read_image(image)
    if data is not None:
        image_url = (await run_in_threadpool(media.upload, data, DESIGN_FOLDER))["url"]

    design = await run_in_threadpool(design_flow.update_design, db, design, design_number,
                                     color_variants, image_url)
    return {"msg": "Design updated successfully", "design": design_flow.serialize_design(design)}


@router.delete("/designs/{design_id}")
def delete_design(design_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    require_capability(user, Capability.publish_designs)
    design = design_flow.get_owned_design(db, design_id, user.id)
    design_flow.delete_design(db, design)
    return {"msg": "Design deleted successfully"}
