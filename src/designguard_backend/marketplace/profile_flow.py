# marketplace/profile_flow.py
import logging
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError
from .models import FactoryProfile, User, UserRole, VepariProfile
from .schemas import ProfileUpdateReq

logger = logging.getLogger(__name__)

USER_FIELDS = ("id", "full_name", "email", "mobile_number", "role", "created_at", "is_verified")
PUBLIC_USER_FIELDS = ("id", "full_name", "role", "created_at", "is_verified")

PROFILE_FIELDS = {
    UserRole.vepari: ("vepari_brand_name", "city", "vepari_gst_number", "logo_url", "bio",
                      "profile_picture_url", "business_type", "established_year"),
    UserRole.factory_owner: ("company_name", "gst_number", "factory_address", "logo_url", "bio",
                             "profile_picture_url", "established_year", "employee_count"),
}

# gst numbers stay private
PUBLIC_PROFILE_FIELDS = {
    UserRole.vepari: ("vepari_brand_name", "city", "logo_url", "bio", "profile_picture_url",
                      "business_type", "established_year"),
    UserRole.factory_owner: ("company_name", "factory_address", "logo_url", "bio", "profile_picture_url",
                             "established_year", "employee_count"),
}

EDITABLE_FIELDS = {
    UserRole.vepari: ("vepari_brand_name", "city", "vepari_gst_number", "bio", "business_type",
                      "established_year"),
    UserRole.factory_owner: ("company_name", "gst_number", "factory_address", "bio", "established_year",
                             "employee_count"),
}


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _ensure_profile(user: User):
    if user.profile is None:
        if user.role is UserRole.vepari:
            user.vepari_profile = VepariProfile()
        else:
            user.factory_profile = FactoryProfile()
    return user.profile


def _collect(user: User, user_fields, profile_fields) -> Dict[str, Any]:
    data = {}
    for field in user_fields:
        value = getattr(user, field)
        data[field] = value.value if field == "role" else value
    profile = user.profile
    if profile is not None:
        for field in profile_fields:
            data[field] = getattr(profile, field)
    return data


def get_profile(db: Session, user_id: int) -> Dict[str, Any]:
    user = _get_user(db, user_id)
    return _collect(user, USER_FIELDS, PROFILE_FIELDS[user.role])


def get_public_profile(db: Session, user_id: int) -> Dict[str, Any]:
    user = _get_user(db, user_id)
    return _collect(user, PUBLIC_USER_FIELDS, PUBLIC_PROFILE_FIELDS[user.role])


def update_profile(db: Session, user_id: int, req: ProfileUpdateReq) -> Dict[str, Any]:
    """Partial update of the user row and its role profile in one commit."""
    user = _get_user(db, user_id)
    changes = req.model_dump(exclude_none=True)

    mobile = changes.get("mobile_number")
    if mobile:
        taken = db.scalar(select(User.id).where(User.mobile_number == mobile, User.id != user_id))
        if taken is not None:
            raise ConflictError("Mobile number already in use")
        user.mobile_number = mobile
    if changes.get("full_name"):
        user.full_name = changes["full_name"]

    profile = _ensure_profile(user)
    for field in EDITABLE_FIELDS[user.role]:
        if field in changes:
            setattr(profile, field, changes[field])

    db.commit()
    logger.info("Profile updated for user %s", user_id)
    return _collect(user, USER_FIELDS, PROFILE_FIELDS[user.role])


def set_profile_picture(db: Session, user_id: int, url: str) -> str:
    user = _get_user(db, user_id)
    profile = _ensure_profile(user)
    profile.profile_picture_url = url
    db.commit()
    return url
