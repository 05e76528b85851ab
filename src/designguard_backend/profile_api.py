import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from .auth_helper import CurrentUser, get_current_user
from .deps import get_db, get_media_store
from .errors import ValidationError
from .marketplace import profile_flow
from .marketplace.design_flow import check_image
from .marketplace.schemas import ProfileUpdateReq
from .services.media_store import PROFILE_FOLDER, PROFILE_TRANSFORMATION, MediaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["profile"])


@router.get("/profile")
def get_profile(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": profile_flow.get_profile(db, user.id)}


@router.put("/profile")
def update_profile(req: ProfileUpdateReq, user: CurrentUser = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    data = profile_flow.update_profile(db, user.id, req)
    return {"success": True, "message": "Profile updated successfully", "data": data}


@router.post("/profile/picture")
async def upload_profile_picture(profile_picture: Optional[UploadFile] = File(None),
                                 user: CurrentUser = Depends(get_current_user),
                                 db: Session = Depends(get_db),
                                 media: MediaStore = Depends(get_media_store)):
    """Upload a face-cropped square picture for the caller's profile."""
    if profile_picture is None:
        raise ValidationError("No image file provided")
    data = await profile_picture.read()
    check_image(profile_picture.content_type, len(data))

    public_id = f"profile_{user.id}_{int(time.time() * 1000)}"
    uploaded = await run_in_threadpool(media.upload, data, PROFILE_FOLDER, public_id, PROFILE_TRANSFORMATION)
    url = await run_in_threadpool(profile_flow.set_profile_picture, db, user.id, uploaded["url"])
    return {
        "success": True,
        "data": {"profile_picture_url": url, "cloudinary_public_id": uploaded.get("public_id")},
        "message": "Profile picture updated successfully",
    }


@router.get("/profile/{user_id}")
def get_public_profile(user_id: int, user: CurrentUser = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    return {"success": True, "data": profile_flow.get_public_profile(db, user_id)}
